"""Model defaults."""

from datetime import timedelta


async def test_timestamps_default_to_utc(factory):
    department = await factory.department()

    assert department.created_at.utcoffset() == timedelta(0)
    assert department.updated_at.utcoffset() == timedelta(0)
