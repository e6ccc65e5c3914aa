from collections import Counter
from dataclasses import dataclass
from typing import List, Tuple

from gearshare.errors import ValidationError

CONDITION_ORDINALS = {
    "good": 3,
    "fair": 2,
    "damaged": 1,
}


@dataclass(frozen=True)
class DegradedItem:
    item: str
    from_status: str
    to_status: str

    def as_dict(self):
        return {"item": self.item, "from": self.from_status, "to": self.to_status}


@dataclass(frozen=True)
class ConditionReport:
    degraded_items: Tuple[DegradedItem, ...] = ()

    @property
    def has_degraded(self) -> bool:
        return bool(self.degraded_items)

    def as_dict(self):
        return {
            "has_degraded": self.has_degraded,
            "degraded_items": [item.as_dict() for item in self.degraded_items],
        }


def _field(entry, name):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def normalize_checklist(checklist) -> List[dict]:
    """Validate a checklist into ``[{"item", "status", "notes"}]`` preserving order."""
    normalized = []
    seen = set()
    for entry in checklist or []:
        name = (_field(entry, "item") or "").strip()
        status = (_field(entry, "status") or "").strip().lower()
        if not name:
            raise ValidationError("Every checklist entry needs an item name.")
        if status not in CONDITION_ORDINALS:
            raise ValidationError(f"Condition for {name} must be good, fair or damaged.")
        if name in seen:
            raise ValidationError(f"Checklist item {name} is listed twice.")
        seen.add(name)
        notes = (_field(entry, "notes") or "").strip() or None
        normalized.append({"item": name, "status": status, "notes": notes})
    return normalized


class ConditionDiff:
    @staticmethod
    def diff(pickup_checklist, return_checklist) -> ConditionReport:
        """Compare the two inspections item by item.

        An item is degraded when its return condition ranks below its pickup
        condition. Items without a pickup entry are never flagged.
        """
        pickup_status = {entry["item"]: entry["status"] for entry in normalize_checklist(pickup_checklist)}

        degraded = []
        for entry in normalize_checklist(return_checklist):
            name = entry["item"]
            before = pickup_status.get(name)
            if before is None:
                continue
            after = entry["status"]
            if CONDITION_ORDINALS[after] < CONDITION_ORDINALS[before]:
                degraded.append(DegradedItem(item=name, from_status=before, to_status=after))
        return ConditionReport(degraded_items=tuple(degraded))

    @staticmethod
    def summarize(checklist) -> dict:
        counts = Counter(entry["status"] for entry in normalize_checklist(checklist))
        return {status: counts.get(status, 0) for status in CONDITION_ORDINALS}
