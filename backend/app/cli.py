"""CLI commands for database management and scheduled jobs."""
import asyncio
import sys
from datetime import datetime
from typing import Optional

import click
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.database import async_session_maker, close_db, engine, init_db
from app.core.exceptions import ApplicationError
from app.services.assessment_event_service import AssessmentEventService


@click.group()
def cli():
    """Training assessment management commands."""
    pass


@cli.command()
def test_connection():
    """Test database connection."""

    async def _test():
        try:
            async with engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
            click.echo("✓ Database connection successful")
            return True
        except SQLAlchemyError as e:
            click.echo(f"✗ Database connection failed: {e}")
            return False
        finally:
            await close_db()

    success = asyncio.run(_test())
    if not success:
        sys.exit(1)


@cli.command()
def create_tables():
    """Create all database tables (development only)."""

    async def _create():
        try:
            await init_db()
            click.echo("✓ All tables created successfully")
        except SQLAlchemyError as e:
            click.echo(f"✗ Error creating tables: {e}")
            sys.exit(1)
        finally:
            await close_db()

    asyncio.run(_create())


@cli.command()
@click.option(
    "--date",
    "on_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Activate forms dated on or before this day (default: today)",
)
def activate_due_assessments(on_date: Optional[datetime]):
    """Move NOT_STARTED assessments whose occurrence date has arrived to ON_GOING."""

    async def _activate():
        try:
            async with async_session_maker() as session:
                service = AssessmentEventService(session)
                count = await service.activate_due_assessments(on_date.date() if on_date else None)
            click.echo(f"✓ Activated {count} assessment(s)")
        except ApplicationError as e:
            click.echo(f"✗ {e.message}")
            sys.exit(1)
        finally:
            await close_db()

    asyncio.run(_activate())


if __name__ == "__main__":
    cli()
