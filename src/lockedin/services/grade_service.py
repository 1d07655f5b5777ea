from dataclasses import dataclass, field
import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, StrictInt, field_validator
from pydantic import ValidationError as PayloadValidationError

from lockedin.config.settings import settings
from lockedin.core.grades import (
    AggregationResult,
    AssessmentRecord,
    GroupRule,
    ValidationError,
    compute_grade,
    with_hypothetical_scores,
)
from lockedin.core.term import DEFAULT_COURSE_CREDITS, calculate_term_average, calculate_weighted_term_average


logger = logging.getLogger(__name__)


class AssessmentRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    weight: float
    score: Optional[float] = None
    total_marks: Optional[float] = None
    group_tag: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("weight", "score", "total_marks", mode="before")
    @classmethod
    def _reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("must be a number, not a boolean")
        return value

    def to_record(self, default_total_marks: float) -> AssessmentRecord:
        total_marks = self.total_marks
        if "total_marks" not in self.model_fields_set:
            total_marks = default_total_marks
        elif total_marks is None:
            if self.score is not None:
                raise ValidationError(f"Assessment '{self.id}': total_marks is missing for a scored assessment", self.id)
            total_marks = default_total_marks

        return AssessmentRecord(
            id=self.id,
            name=self.name,
            weight=self.weight,
            score=self.score,
            total_marks=total_marks,
            group_tag=self.group_tag,
        )


class GradingRulePayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    drop_lowest: Optional[StrictInt] = None
    best_of: Optional[StrictInt] = None

    def to_rule(self) -> GroupRule:
        return GroupRule(drop_lowest=self.drop_lowest, best_of=self.best_of)


@dataclass
class CourseGradeSummary:
    course_id: str
    course_code: str
    current_grade: Optional[float]
    total_weight_completed: float = 0.0
    credits: float = DEFAULT_COURSE_CREDITS
    dropped_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.current_grade is not None


def parse_assessments(rows: Iterable[Mapping[str, Any]], default_total_marks: Optional[float] = None) -> List[AssessmentRecord]:
    if default_total_marks is None:
        default_total_marks = settings.default_total_marks

    records: List[AssessmentRecord] = []
    for index, row in enumerate(rows):
        try:
            parsed = AssessmentRow.model_validate(row)
        except PayloadValidationError as exc:
            source = str(row.get("id")) if isinstance(row, Mapping) and row.get("id") is not None else None
            raise ValidationError(f"Malformed assessment row at position {index}: {exc}", source) from exc
        records.append(parsed.to_record(default_total_marks))
    return records


def parse_grading_rules(raw: Any) -> Dict[str, GroupRule]:
    if raw is None or raw == "":
        return {}

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ValidationError("grading_rules is not valid JSON") from exc
        if raw is None:
            return {}

    if not isinstance(raw, Mapping):
        raise ValidationError("grading_rules must be an object keyed by group tag")

    rules: Dict[str, GroupRule] = {}
    for tag, payload in raw.items():
        if payload is None:
            continue
        try:
            rules[str(tag)] = GradingRulePayload.model_validate(payload).to_rule()
        except PayloadValidationError as exc:
            raise ValidationError(f"Rule '{tag}' is malformed: {exc}", str(tag)) from exc
    return rules


def course_credits(course: Mapping[str, Any]) -> float:
    course_id = str(course.get("id", ""))
    raw = course.get("credits") or DEFAULT_COURSE_CREDITS
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not raw > 0:
        raise ValidationError(f"Course '{course_id}': credits must be a positive number", course_id)
    return float(raw)


class GradeService:
    def __init__(self, default_total_marks: float, round_to: int) -> None:
        if default_total_marks <= 0:
            raise ValueError("default_total_marks must be greater than 0")
        self.default_total_marks = default_total_marks
        self.round_to = round_to

    @classmethod
    def from_settings(cls) -> "GradeService":
        return cls(settings.default_total_marks, settings.grade_round_to)

    def course_grade(
        self,
        course: Mapping[str, Any],
        overrides: Optional[Mapping[str, Optional[float]]] = None,
    ) -> AggregationResult:
        records = parse_assessments(course.get("assessments") or [], self.default_total_marks)
        rules = parse_grading_rules(course.get("grading_rules"))
        if overrides:
            records = with_hypothetical_scores(records, overrides)

        result = compute_grade(records, rules)
        logger.debug(
            "Course %s: grade=%.4f weight=%s dropped=%s",
            course.get("id"),
            result.current_grade,
            result.total_weight_completed,
            result.dropped_ids,
        )
        return result

    def summarize_courses(self, courses: Iterable[Mapping[str, Any]]) -> List[CourseGradeSummary]:
        summaries: List[CourseGradeSummary] = []
        for course in courses:
            course_id = str(course.get("id", ""))
            course_code = course.get("course_code") or ""
            try:
                credits = course_credits(course)
                result = self.course_grade(course)
            except ValidationError as exc:
                logger.warning("Grade unavailable for course %s (%s): %s", course_id, exc.source, exc)
                summaries.append(
                    CourseGradeSummary(
                        course_id=course_id,
                        course_code=course_code,
                        current_grade=None,
                        error=str(exc),
                    )
                )
                continue

            summaries.append(
                CourseGradeSummary(
                    course_id=course_id,
                    course_code=course_code,
                    current_grade=round(result.current_grade, self.round_to),
                    total_weight_completed=result.total_weight_completed,
                    credits=credits,
                    dropped_ids=list(result.dropped_ids),
                )
            )
        return summaries

    def term_average(self, summaries: Iterable[CourseGradeSummary]) -> float:
        return calculate_term_average(
            (s.current_grade for s in summaries if s.current_grade is not None),
            round_to=self.round_to,
        )

    def weighted_term_average(self, summaries: Iterable[CourseGradeSummary]) -> float:
        return calculate_weighted_term_average(
            ((s.current_grade, s.credits) for s in summaries if s.current_grade is not None),
            round_to=self.round_to,
        )
