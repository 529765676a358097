"""Final score and result resolution for approved assessments."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from uuid import UUID

from app.models.enums import AssessmentResult, FieldType


@dataclass(frozen=True)
class ScoreCandidate:
    """A FINAL_SCORE_NUM / FINAL_SCORE_TEXT value with its position in the form."""

    value_id: UUID
    field_type: FieldType
    answer_value: Optional[str]
    section_order: int
    field_order: int


@dataclass
class ScoringOutcome:
    result_score: Optional[float]
    result_text: AssessmentResult
    # FINAL_SCORE_TEXT values to overwrite with ``result_text``
    text_value_ids: List[UUID] = field(default_factory=list)
    missing_pass_score: bool = False


def parse_score(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw.strip())
    except ValueError:
        return None


def parse_result_text(raw: Optional[str]) -> AssessmentResult:
    if raw:
        try:
            return AssessmentResult(raw.strip().upper())
        except ValueError:
            pass
    return AssessmentResult.NOT_APPLICABLE


def resolve_result(candidates: Sequence[ScoreCandidate], pass_score: Optional[float]) -> ScoringOutcome:
    """Compute result score and text from the form's final-score fields.

    Candidates are considered in (section order, field order); the first
    parsable FINAL_SCORE_NUM and the first non-blank FINAL_SCORE_TEXT win.
    """
    ordered = sorted(candidates, key=lambda c: (c.section_order, c.field_order))
    num_values = [c for c in ordered if c.field_type == FieldType.FINAL_SCORE_NUM]
    text_values = [c for c in ordered if c.field_type == FieldType.FINAL_SCORE_TEXT]

    score = next(
        (parsed for parsed in (parse_score(c.answer_value) for c in num_values) if parsed is not None),
        None,
    )

    if score is not None:
        if pass_score is None:
            return ScoringOutcome(
                result_score=score,
                result_text=AssessmentResult.NOT_APPLICABLE,
                missing_pass_score=True,
            )
        result = AssessmentResult.PASS if score >= pass_score else AssessmentResult.FAIL
        return ScoringOutcome(
            result_score=score,
            result_text=result,
            text_value_ids=[c.value_id for c in text_values],
        )

    text = next((c.answer_value for c in text_values if c.answer_value and c.answer_value.strip()), None)
    return ScoringOutcome(result_score=None, result_text=parse_result_text(text))
