"""
Caller-owned bundle of the task services sharing one session and one
change notifier. Build one per request (API) or per session (scripts);
nothing here is process-global.
"""
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.domain.services.events import ChangeNotifier
from app.domain.services.history_ledger import HistoryLedger
from app.domain.services.ranking import RankedTaskView, RankingPipeline
from app.domain.services.task_hierarchy import TaskHierarchyManager
from app.domain.services.urgency_engine import UrgencyEngine
from app.infrastructure.repositories.config_store import ConfigStore


class TodoContext:

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.notifier = ChangeNotifier()
        self.config = ConfigStore(db, self.notifier)
        self.tasks = TaskHierarchyManager(db, self.notifier, clock)
        self.history = HistoryLedger(db, clock)
        self.urgency = UrgencyEngine(self.config, clock)
        self.ranking = RankingPipeline(self.urgency)

    def ranked_view(self) -> RankedTaskView:
        return RankedTaskView(self.ranking, self.tasks.get_active_tasks).attach(self.notifier)
