"""
Ranked view of active tasks.

Only top-level tasks are ranked. Sorting is descending by score and stable,
so equal scores keep retrieval order. A task whose scoring fails is ranked
as (0, low) instead of aborting the whole ranking.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from app.core.logging import get_logger
from app.domain.models.task import Task, TaskType
from app.domain.models.urgency import UrgencyLevel, UrgencyResult
from app.domain.services.events import TOPIC_SETTINGS, TOPIC_TASKS
from app.domain.services.urgency_engine import UrgencyEngine

logger = get_logger(__name__)


@dataclass
class RankedTask:
    task: Task
    urgency: UrgencyResult

    @property
    def score(self) -> float:
        return self.urgency.score

    @property
    def level(self) -> UrgencyLevel:
        return self.urgency.level


class RankingPipeline:

    def __init__(self, engine: UrgencyEngine):
        self.engine = engine

    def rank(self, active_tasks: List[Task]) -> List[RankedTask]:
        formula = self.engine.config.get_formula()
        thresholds = self.engine.config.get_thresholds()

        ranked = []
        for task in active_tasks:
            if not task.is_top_level():
                continue
            try:
                result = self.engine.score_task(task, formula, thresholds)
            except Exception:
                logger.exception("Scoring failed, ranking task as low", task_id=task.id)
                result = UrgencyResult(task_id=task.id, score=0.0, level=UrgencyLevel.LOW)
            ranked.append(RankedTask(task=task, urgency=result))

        # sorted() is stable: ties keep retrieval order
        return sorted(ranked, key=lambda r: r.score, reverse=True)

    @staticmethod
    def group_by_type(ranked: List[RankedTask], only: Optional[TaskType] = None) -> Dict[str, List[RankedTask]]:
        groups: Dict[str, List[RankedTask]] = {t.value: [] for t in TaskType}
        for item in ranked:
            if only is not None and item.task.type != only:
                continue
            groups[item.task.type.value].append(item)
        return groups


class RankedTaskView:
    """
    Cached ranking that recomputes whenever tasks or settings change.

    ``load_tasks`` is called on every refresh; subscribe the view to the
    ChangeNotifier the mutating services publish to.
    """

    def __init__(self, pipeline: RankingPipeline, load_tasks: Callable[[], List[Task]]):
        self.pipeline = pipeline
        self.load_tasks = load_tasks
        self._ranked: Optional[List[RankedTask]] = None
        self.refresh_count = 0
        self._unsubscribe = None

    def attach(self, notifier) -> "RankedTaskView":
        self._unsubscribe = notifier.subscribe(self._on_change)
        return self

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, topic: str, details: dict):
        if topic in (TOPIC_TASKS, TOPIC_SETTINGS):
            self.refresh()

    def refresh(self) -> List[RankedTask]:
        self._ranked = self.pipeline.rank(self.load_tasks())
        self.refresh_count += 1
        return self._ranked

    @property
    def ranked(self) -> List[RankedTask]:
        if self._ranked is None:
            return self.refresh()
        return self._ranked
