from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

UNGRADED_RANK = -1.0


class ValidationError(ValueError):
    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.source = source


@dataclass(frozen=True)
class AssessmentRecord:
    id: str
    name: str
    weight: float
    score: float | None
    total_marks: float
    group_tag: str | None = None

    @property
    def is_graded(self) -> bool:
        return self.score is not None

    @property
    def normalized_score(self) -> float:
        if self.score is None:
            return UNGRADED_RANK
        return self.score / self.total_marks


@dataclass(frozen=True)
class GroupRule:
    drop_lowest: int | None = None
    best_of: int | None = None

    def drop_count(self, group_size: int) -> int:
        # best_of takes precedence when both are set
        if self.best_of is not None:
            return max(0, group_size - self.best_of)
        return min(self.drop_lowest or 0, group_size)


@dataclass(frozen=True)
class AggregationResult:
    current_grade: float
    total_weight_completed: float
    dropped_ids: List[str] = field(default_factory=list)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_rule(tag: str, rule: GroupRule) -> None:
    if rule.drop_lowest is not None:
        if not _is_int(rule.drop_lowest):
            raise ValidationError(f"Rule '{tag}': drop_lowest must be an integer", tag)
        if rule.drop_lowest < 0:
            raise ValidationError(f"Rule '{tag}': drop_lowest must not be negative", tag)
    if rule.best_of is not None:
        if not _is_int(rule.best_of):
            raise ValidationError(f"Rule '{tag}': best_of must be an integer", tag)
        if rule.best_of <= 0:
            raise ValidationError(f"Rule '{tag}': best_of must be greater than 0", tag)


def validate_record(record: AssessmentRecord) -> None:
    if not math.isfinite(record.weight):
        raise ValidationError(f"Assessment '{record.id}': weight must be a finite number", record.id)
    if record.weight < 0:
        raise ValidationError(f"Assessment '{record.id}': weight must not be negative", record.id)
    if record.score is None:
        return
    if not math.isfinite(record.score):
        raise ValidationError(f"Assessment '{record.id}': score must be a finite number", record.id)
    if not math.isfinite(record.total_marks) or record.total_marks <= 0:
        raise ValidationError(
            f"Assessment '{record.id}': total_marks must be greater than 0 for a scored assessment",
            record.id,
        )


def _group_by_tag(records: Iterable[AssessmentRecord]) -> tuple[Dict[str, List[AssessmentRecord]], List[AssessmentRecord]]:
    groups: Dict[str, List[AssessmentRecord]] = {}
    ungrouped: List[AssessmentRecord] = []
    for record in records:
        if record.group_tag:
            groups.setdefault(record.group_tag, []).append(record)
        else:
            ungrouped.append(record)
    return groups, ungrouped


def apply_group_rule(items: Sequence[AssessmentRecord], rule: GroupRule) -> tuple[List[AssessmentRecord], List[AssessmentRecord]]:
    """
    Split one group into (kept, dropped) under its rule.

    Ungraded items rank lowest, so they are the first to fill drop slots.
    sorted() is stable: equal normalized scores keep their input order.
    """
    ranked = sorted(items, key=lambda a: a.normalized_score)
    drop_count = rule.drop_count(len(ranked))
    return ranked[drop_count:], ranked[:drop_count]


def compute_grade(
    records: Sequence[AssessmentRecord],
    rules: Mapping[str, GroupRule] | None = None,
) -> AggregationResult:
    """
    Weighted current grade for one course.

    current_grade = Σ(score / total_marks * weight) / Σ(weight) * 100
    over the graded assessments left after each group's drop rule.
    """
    rules = rules or {}
    for tag, rule in rules.items():
        validate_rule(tag, rule)
    for record in records:
        validate_record(record)

    groups, ungrouped = _group_by_tag(records)

    counted: List[AssessmentRecord] = []
    dropped_ids: List[str] = []
    for tag, items in groups.items():
        rule = rules.get(tag)
        if rule is None:
            counted.extend(items)
            continue
        kept, dropped = apply_group_rule(items, rule)
        counted.extend(kept)
        dropped_ids.extend(a.id for a in dropped if a.is_graded)
    counted.extend(ungrouped)

    total_weight = 0.0
    earned_weight = 0.0
    for a in counted:
        if not a.is_graded:
            continue
        total_weight += a.weight
        earned_weight += a.normalized_score * a.weight

    if not (math.isfinite(total_weight) and math.isfinite(earned_weight)):
        raise ValidationError("Assessment weights are too large to total")

    if total_weight == 0:
        return AggregationResult(current_grade=0.0, total_weight_completed=0.0, dropped_ids=dropped_ids)

    return AggregationResult(
        current_grade=(earned_weight / total_weight) * 100,
        total_weight_completed=total_weight,
        dropped_ids=dropped_ids,
    )


def with_hypothetical_scores(
    records: Sequence[AssessmentRecord],
    overrides: Mapping[str, float | None],
) -> List[AssessmentRecord]:
    known = {a.id for a in records}
    unknown = [assessment_id for assessment_id in overrides if assessment_id not in known]
    if unknown:
        raise ValidationError(f"Unknown assessment ids: {', '.join(unknown)}", unknown[0])

    return [replace(a, score=overrides[a.id]) if a.id in overrides else a for a in records]
