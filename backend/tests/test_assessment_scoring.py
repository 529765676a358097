"""Final score resolution."""

import uuid

from app.models.enums import AssessmentResult, FieldType
from app.services.assessment_scoring import ScoreCandidate, parse_result_text, parse_score, resolve_result


def num(answer, section_order=1, field_order=1):
    return ScoreCandidate(uuid.uuid4(), FieldType.FINAL_SCORE_NUM, answer, section_order, field_order)


def text(answer, section_order=1, field_order=2):
    return ScoreCandidate(uuid.uuid4(), FieldType.FINAL_SCORE_TEXT, answer, section_order, field_order)


def test_parse_score():
    assert parse_score(" 85.5 ") == 85.5
    assert parse_score("") is None
    assert parse_score("eighty") is None
    assert parse_score(None) is None


def test_parse_result_text():
    assert parse_result_text(" pass ") == AssessmentResult.PASS
    assert parse_result_text("FAIL") == AssessmentResult.FAIL
    assert parse_result_text("maybe") == AssessmentResult.NOT_APPLICABLE
    assert parse_result_text(None) == AssessmentResult.NOT_APPLICABLE


def test_score_at_pass_mark_passes_and_overwrites_text():
    score, result = num("80"), text("FAIL")
    outcome = resolve_result([score, result], pass_score=80)
    assert outcome.result_score == 80
    assert outcome.result_text == AssessmentResult.PASS
    assert outcome.text_value_ids == [result.value_id]


def test_score_below_pass_mark_fails():
    outcome = resolve_result([num("79.9")], pass_score=80)
    assert outcome.result_text == AssessmentResult.FAIL
    assert outcome.text_value_ids == []


def test_score_without_pass_mark_is_not_applicable():
    outcome = resolve_result([num("90"), text("PASS")], pass_score=None)
    assert outcome.result_score == 90
    assert outcome.result_text == AssessmentResult.NOT_APPLICABLE
    assert outcome.missing_pass_score
    assert outcome.text_value_ids == []


def test_text_is_used_when_no_score_parses():
    outcome = resolve_result([num("n/a"), text("  "), text("pass", section_order=2)], pass_score=80)
    assert outcome.result_score is None
    assert outcome.result_text == AssessmentResult.PASS


def test_lowest_display_order_wins():
    late, early = num("50", section_order=3), num("95", section_order=1, field_order=4)
    outcome = resolve_result([late, early], pass_score=80)
    assert outcome.result_score == 95
    assert outcome.result_text == AssessmentResult.PASS


def test_no_candidates():
    outcome = resolve_result([], pass_score=80)
    assert outcome.result_score is None
    assert outcome.result_text == AssessmentResult.NOT_APPLICABLE
