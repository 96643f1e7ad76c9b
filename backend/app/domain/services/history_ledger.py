"""
History ledger: completion records by date range, regrouped into
parent/subtask hierarchies, and effort statistics.
"""
from datetime import date, datetime, time, timedelta
from threading import Event
from typing import Optional, List, Dict, Union

from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.domain.models.history import HistoryRecord, HierarchicalHistoryRecord
from app.domain.models.task import TaskType
from app.infrastructure.repositories.history_repository import HistoryRepository

logger = get_logger(__name__)

RECENT_WINDOW_DAYS = 7

Bound = Union[date, datetime, None]


def _lower(bound: Bound) -> Optional[datetime]:
    if bound is None or isinstance(bound, datetime):
        return bound
    return datetime.combine(bound, time.min)


def _upper(bound: Bound) -> Optional[datetime]:
    # A bare date covers the whole day
    if bound is None or isinstance(bound, datetime):
        return bound
    return datetime.combine(bound, time.max)


def _by_completed_desc(records: List[HistoryRecord]) -> List[HistoryRecord]:
    return sorted(records, key=lambda r: r.completed_at, reverse=True)


class EffortStatsCalculator:
    """Pure aggregation over history records, no storage access."""

    def compute_effort_stats(self, records: List[HistoryRecord]) -> Dict:
        stats = {
            "total_effort": 0.0,
            "by_type": {t.value: 0.0 for t in TaskType},
            "by_date": {},
        }
        for record in records:
            stats["total_effort"] += record.effort_hours
            stats["by_type"][record.task_type.value] += record.effort_hours
            day = record.completed_at.date().isoformat()
            stats["by_date"][day] = stats["by_date"].get(day, 0.0) + record.effort_hours
        return stats

    def compute_summary(self, hierarchy: List[HierarchicalHistoryRecord], now: datetime) -> Dict:
        """Counts parents and their nested subtasks as shown in the hierarchical view."""
        since = now - timedelta(days=RECENT_WINDOW_DAYS)
        summary = {
            "total_tasks": 0,
            "total_effort": 0.0,
            "average_effort": 0.0,
            "by_type": {t.value: 0.0 for t in TaskType},
            "recent_7_days": 0.0,
        }
        for entry in hierarchy:
            for record in [entry.record, *entry.subtasks]:
                summary["total_tasks"] += 1
                summary["total_effort"] += record.effort_hours
                summary["by_type"][record.task_type.value] += record.effort_hours
                if record.completed_at >= since:
                    summary["recent_7_days"] += record.effort_hours
        if summary["total_tasks"]:
            summary["average_effort"] = summary["total_effort"] / summary["total_tasks"]
        return summary


class HistoryLedger:

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.records = HistoryRepository(db)
        self.clock = clock
        self.calculator = EffortStatsCalculator()

    def get_history(
        self,
        start: Bound = None,
        end: Bound = None,
        cancel: Optional[Event] = None,
    ) -> List[HistoryRecord]:
        lower, upper = _lower(start), _upper(end)
        if lower is not None and upper is not None and lower > upper:
            raise ValidationError("History range start must not be after its end")
        records = [HistoryRecord.from_orm(row) for row in self.records.iter_range(lower, upper, cancel)]
        logger.debug("History scanned", start=str(lower), end=str(upper), count=len(records))
        return records

    def get_hierarchical_history(
        self,
        start: Bound = None,
        end: Bound = None,
        include_orphans: bool = False,
        cancel: Optional[Event] = None,
    ) -> List[HierarchicalHistoryRecord]:
        """
        Top-level records with their subtask records attached. Subtask records
        whose parent record is not in the range are dropped unless
        include_orphans is set, in which case they are listed on their own.
        """
        records = self.get_history(start, end, cancel)
        parents = [r for r in records if r.is_top_level()]
        children: Dict[int, List[HistoryRecord]] = {}
        for record in records:
            if not record.is_top_level():
                children.setdefault(record.parent_id, []).append(record)

        hierarchy = [
            HierarchicalHistoryRecord(record=p, subtasks=_by_completed_desc(children.get(p.task_id, [])))
            for p in parents
        ]
        if include_orphans:
            present = {p.task_id for p in parents}
            hierarchy.extend(
                HierarchicalHistoryRecord(record=r)
                for parent_id, subs in children.items() if parent_id not in present
                for r in subs
            )
        hierarchy.sort(key=lambda h: h.record.completed_at, reverse=True)
        return hierarchy

    def get_effort_stats(self, start: Bound = None, end: Bound = None, cancel: Optional[Event] = None) -> Dict:
        return self.calculator.compute_effort_stats(self.get_history(start, end, cancel))

    def get_summary_stats(self, start: Bound = None, end: Bound = None) -> Dict:
        hierarchy = self.get_hierarchical_history(start, end)
        return self.calculator.compute_summary(hierarchy, self.clock())
