"""Roll sampled learners up into the plan listing summary."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any, get_args
from uuid import UUID

from .. import schemas

# purpose: pure aggregation of plan learners for the sample plan listing
# inputs: plan record plus learner rows (ORM objects or plain dicts), explicit filter flags
# outputs: schemas.PlanLearnersResponse
# status: active

COMPLETED_STATUS = "Completed"
_SAMPLE_TYPES = frozenset(get_args(schemas.SampleType))


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _iter(value: Any) -> list[Any]:
    if value is None or isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
        return []
    return list(value)


def _coerce_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _coerce_uuid(value: Any) -> UUID | None:
    if isinstance(value, UUID):
        return value
    if value is None:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flags(value: Any) -> dict[str, bool]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): bool(flag) for key, flag in value.items()}


def dedupe_units(units: Any) -> list[Any]:
    """Return ``units`` with duplicate unit codes removed, keeping the first.

    Units without a code are keyed by their name; units with neither are dropped.
    """

    seen: set[str] = set()
    unique = []
    for unit in _iter(units):
        key = _text(_get(unit, "unit_code")) or _text(_get(unit, "unit_name"))
        if key is None or key in seen:
            continue
        seen.add(key)
        unique.append(unit)
    return unique


def learner_planned_date(learner: Any) -> date | None:
    """Learner planned date, falling back to the first unit sample-history date."""

    planned = _coerce_date(_get(learner, "planned_date"))
    if planned is not None:
        return planned
    for unit in _iter(_get(learner, "units")):
        for entry in _iter(_get(unit, "sample_history")):
            planned = _coerce_date(_get(entry, "planned_date"))
            if planned is not None:
                return planned
    return None


def planned_dates(learners: Any) -> list[date]:
    """Distinct non-empty learner planned dates sorted ascending."""

    dates = {learner_planned_date(learner) for learner in _iter(learners)}
    dates.discard(None)
    return sorted(dates)


def _history_entry(entry: Any) -> schemas.SampleHistoryEntry:
    sample_type = _get(entry, "sample_type")
    return schemas.SampleHistoryEntry(
        planned_date=_coerce_date(_get(entry, "planned_date")),
        completed_date=_coerce_date(_get(entry, "completed_date")),
        sample_type=sample_type if sample_type in _SAMPLE_TYPES else None,
    )


def _row(learner: Any) -> schemas.PlanLearnerRow:
    decision = _get(learner, "assessor_decision_correct")
    units = [
        schemas.PlanLearnerUnit(
            id=_coerce_uuid(_get(unit, "id")),
            unit_code=_text(_get(unit, "unit_code")) or "",
            unit_name=_text(_get(unit, "unit_name")),
            status=_text(_get(unit, "status")),
            sample_history=[_history_entry(entry) for entry in _iter(_get(unit, "sample_history"))],
        )
        for unit in dedupe_units(_get(learner, "units"))
    ]
    return schemas.PlanLearnerRow(
        id=_coerce_uuid(_get(learner, "id")),
        learner_name=_text(_get(learner, "learner_name")) or "",
        assessor_name=_text(_get(learner, "assessor_name")),
        status=_text(_get(learner, "status")),
        risk_level=_text(_get(learner, "risk_level")),
        sample_type=_text(_get(learner, "sample_type")),
        planned_date=learner_planned_date(learner),
        completed_date=_coerce_date(_get(learner, "completed_date")),
        iqa_conclusion=_flags(_get(learner, "iqa_conclusion")),
        assessor_decision_correct=decision if isinstance(decision, bool) else None,
        feedback=_text(_get(learner, "feedback")),
        units=units,
    )


def _matches(learner: Any, needle: str) -> bool:
    for field in ("learner_name", "assessor_name"):
        value = _text(_get(learner, field))
        if value and needle in value.casefold():
            return True
    return False


def summarize(
    plan: Any,
    learners: Any,
    *,
    only_incomplete: bool = False,
    search_text: str | None = None,
) -> schemas.PlanLearnersResponse:
    """Build the plan listing payload from explicit inputs.

    Filters only shape ``visible_rows``; ``planned_dates`` and
    ``has_planned_date`` describe every learner on the plan so date tabs stay
    stable while filtering.
    """

    all_learners = _iter(learners)
    visible = all_learners
    if only_incomplete:
        visible = [learner for learner in visible if _text(_get(learner, "status")) != COMPLETED_STATUS]
    needle = (search_text or "").strip().casefold()
    if needle:
        visible = [learner for learner in visible if _matches(learner, needle)]

    rows = [_row(learner) for learner in visible]
    dates = planned_dates(all_learners)
    summary = schemas.PlanSummary(
        plan_id=_coerce_uuid(_get(plan, "id")),
        plan_name=_text(_get(plan, "name")),
        total_learners=len(all_learners),
        completed_learners=sum(
            1 for learner in all_learners if _text(_get(learner, "status")) == COMPLETED_STATUS
        ),
        visible_learners=len(rows),
        total_units=sum(len(row.units) for row in rows),
    )
    return schemas.PlanLearnersResponse(
        plan_summary=summary,
        visible_rows=rows,
        planned_dates=dates,
        has_planned_date=bool(dates),
    )
