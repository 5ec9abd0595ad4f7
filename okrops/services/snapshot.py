"""
ItemSnapshot — fixed-schema record for ItemUpdate.snapshot.

The JSON column on ItemUpdate is only ever written from and read into this
record, so the set of snapshot fields is closed and each one is explicitly
optional. Unknown keys in stored JSON are ignored on read.
"""

from dataclasses import asdict, dataclass, fields
from datetime import date

SNAPSHOT_FIELDS = (
    "status",
    "next_step",
    "target_date",
    "status_reason",
    "blockers_summary",
    "help_needed_summary",
)

# Item columns overwritten from the snapshot on every status update
ITEM_MIRRORED_FIELDS = SNAPSHOT_FIELDS


@dataclass(frozen=True)
class ItemSnapshot:
    status: str | None = None
    next_step: str | None = None
    target_date: str | None = None
    status_reason: str | None = None
    blockers_summary: str | None = None
    help_needed_summary: str | None = None

    @classmethod
    def from_dict(cls, data) -> "ItemSnapshot":
        data = data or {}
        values = {}
        for f in fields(cls):
            value = data.get(f.name)
            if isinstance(value, date):
                value = value.isoformat()
            values[f.name] = value
        return cls(**values)

    @classmethod
    def from_item(cls, item) -> "ItemSnapshot":
        return cls.from_dict({name: getattr(item, name, None) for name in SNAPSHOT_FIELDS})

    def to_dict(self) -> dict:
        return asdict(self)

    def non_empty_fields(self) -> dict:
        """Fields that are present and not an empty string, in schema order."""
        result = {}
        for name in SNAPSHOT_FIELDS:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, str) and value.strip() == "":
                continue
            result[name] = value
        return result
