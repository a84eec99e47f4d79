"""Per-unit evidence progress counters."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .. import schemas

# purpose: derive pending trainer / pending IQA / IQA checked counts from evidence reviews
# inputs: evidence items as ORM rows, EvidenceItemOut schemas or plain dicts
# outputs: schemas.UnitProgress
# status: active


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _reviews_by_role(item: Any) -> dict[str, Any]:
    reviews = _get(item, "reviews")
    if isinstance(reviews, Mapping):
        return {str(role): entry for role, entry in reviews.items()}
    if isinstance(reviews, (str, bytes)) or not isinstance(reviews, Iterable):
        return {}
    by_role: dict[str, Any] = {}
    for entry in reviews:
        role = _get(entry, "role")
        if isinstance(role, str) and role not in by_role:
            by_role[role] = entry
    return by_role


def review_completed(item: Any, role: str) -> bool:
    """Return True when ``item`` carries a completed review for ``role``.

    Missing or malformed reviews count as not completed.
    """

    entry = _reviews_by_role(item).get(role)
    if entry is None:
        return False
    return _get(entry, "completed") is True


def compute_unit_progress(items: Iterable[Any] | None) -> schemas.UnitProgress:
    """Count evidence items by review stage.

    An item is pending IQA mapping only once its Trainer review is complete, so
    an item without any reviews counts towards ``pending_trainer_map`` alone.
    The function is total: unexpected shapes are treated as items with no
    reviews rather than raising.
    """

    if items is None or isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        return schemas.UnitProgress()

    pending_trainer = pending_iqa = iqa_checked = total = 0
    for item in items:
        total += 1
        trainer_done = review_completed(item, "Trainer")
        iqa_done = review_completed(item, "IQA")
        if not trainer_done:
            pending_trainer += 1
        elif not iqa_done:
            pending_iqa += 1
        if iqa_done:
            iqa_checked += 1

    return schemas.UnitProgress(
        pending_trainer_map=pending_trainer,
        pending_iqa_map=pending_iqa,
        iqa_checked=iqa_checked,
        total=total,
    )
