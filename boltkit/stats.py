"""Transaction statistics counters."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import timedelta


@dataclass
class TxStats:
    """Statistics about the actions performed by a transaction."""

    page_count: int = 0
    page_alloc: int = 0
    cursor_count: int = 0
    node_count: int = 0
    node_deref: int = 0
    rebalance: int = 0
    rebalance_time: timedelta = field(default_factory=timedelta)
    split: int = 0
    spill: int = 0
    spill_time: timedelta = field(default_factory=timedelta)
    write: int = 0
    write_time: timedelta = field(default_factory=timedelta)

    def add(self, other: "TxStats") -> None:
        """Add every counter of other into this instance."""
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))

    def sub(self, other: "TxStats") -> "TxStats":
        """Return the difference between this instance and other."""
        return TxStats(
            **{f.name: getattr(self, f.name) - getattr(other, f.name) for f in fields(self)}
        )