"""
Work session data model.

Objects:
- WorkSession (one clock-in to clock-out span)
- Gap (a committed departure inside a session)

Invariants:
- At most one WorkSession system-wide has end == None
- A gap's exit/return lie within [session.start, session.end or now)
- Gaps within a session are non-overlapping and ordered by exit_time
- Soft delete is reversible: a deleted gap keeps its row, it only stops
  being subtracted from worked time
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from shopclock.clock import utc_now


def new_id() -> str:
    return str(uuid.uuid4())


class GapStatus(StrEnum):
    """Two-valued soft-delete flag for gaps."""

    ACTIVE = "active"
    DELETED = "deleted"


@dataclass
class Gap:
    exit_time: datetime
    session_id: str
    return_time: datetime | None = None
    deleted: bool = False
    id: str = field(default_factory=new_id)

    @property
    def is_open(self) -> bool:
        """Still away (no return recorded yet)."""
        return self.return_time is None

    @property
    def status(self) -> GapStatus:
        return GapStatus.DELETED if self.deleted else GapStatus.ACTIVE

    def duration_seconds(self, now: datetime | None = None) -> float:
        end = self.return_time or now or utc_now()
        return (end - self.exit_time).total_seconds()


@dataclass
class WorkSession:
    start: datetime
    end: datetime | None = None
    gaps: list[Gap] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def open_gap(self) -> Gap | None:
        """The gap still waiting for a return, if any."""
        for gap in reversed(self.gaps):
            if gap.is_open:
                return gap
        return None

    def add_gap(self, gap: Gap) -> Gap:
        """Attach *gap*, keeping gaps ordered by exit_time."""
        gap.session_id = self.id
        self.gaps.append(gap)
        if len(self.gaps) > 1 and self.gaps[-2].exit_time > gap.exit_time:
            self.gaps.sort(key=lambda g: g.exit_time)
        return gap

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        end = self.end or now or utc_now()
        return (end - self.start).total_seconds()

    def gap_seconds(self, now: datetime | None = None) -> float:
        """Total time of non-deleted gaps."""
        now = now or utc_now()
        return sum(g.duration_seconds(now) for g in self.gaps if not g.deleted)

    def worked_seconds(self, now: datetime | None = None) -> float:
        """Elapsed time minus non-deleted gaps, floored at zero."""
        now = now or utc_now()
        return max(self.elapsed_seconds(now) - self.gap_seconds(now), 0.0)

    def worked_hours(self, now: datetime | None = None) -> float:
        return self.worked_seconds(now) / 3600.0
