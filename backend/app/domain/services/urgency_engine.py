"""
Urgency scoring.

Score rules, in order:
  * no due date           -> importance * effort * 0.1
  * due today or overdue  -> URGENCY_SENTINEL (sorts above every finite score)
  * otherwise             -> configured formula over effort, importance, daysLeft,
                             falling back to the built-in formula on any error
"""
import math
import sys
from datetime import datetime, time, date
from typing import Optional, Dict

from app.core.clock import Clock, utcnow
from app.core.exceptions import ConfigEvaluationError
from app.core.logging import get_logger
from app.domain.models.task import Task
from app.domain.models.urgency import (
    FormulaDefinition, UrgencyThresholds, UrgencyLevel, UrgencyResult,
)
from app.domain.services.formula import CompiledFormula, compile_formula

logger = get_logger(__name__)

# "Infinitely urgent". Compared against, never computed with.
URGENCY_SENTINEL = sys.float_info.max
# Largest value a computed score may take, so the sentinel stays strictly on top.
MAX_FINITE_SCORE = math.nextafter(URGENCY_SENTINEL, 0.0)

UNDATED_FACTOR = 0.1
SECONDS_PER_DAY = 24 * 60 * 60


def default_urgency(effort: float, importance: float, days_left: float) -> float:
    return (effort * importance) / max(0.1, days_left ** 1.5)


def undated_urgency(effort: float, importance: float) -> float:
    return importance * effort * UNDATED_FACTOR


def is_sentinel(score: float) -> bool:
    return score >= URGENCY_SENTINEL


class UrgencyEngine:

    def __init__(self, config, clock: Clock = utcnow):
        self.config = config
        self.clock = clock
        self._compiled: Dict[str, CompiledFormula] = {}

    def days_left(self, due_date: date) -> float:
        due_at = datetime.combine(due_date, time.min)
        seconds = (due_at - self.clock()).total_seconds()
        return max(0.0, seconds / SECONDS_PER_DAY)

    def _compile(self, source: str) -> CompiledFormula:
        compiled = self._compiled.get(source)
        if compiled is None:
            compiled = compile_formula(source)
            self._compiled[source] = compiled
        return compiled

    def calculate_urgency(self, task: Task, formula: Optional[FormulaDefinition] = None) -> float:
        effort = task.effective_effort()
        importance = task.importance

        if task.due_date is None:
            return min(undated_urgency(effort, importance), MAX_FINITE_SCORE)

        days_left = self.days_left(task.due_date)
        if days_left == 0:
            return URGENCY_SENTINEL

        definition = formula if formula is not None else self.config.get_formula()
        try:
            score = self._compile(definition.formula).evaluate(
                {"effort": effort, "importance": importance, "daysLeft": days_left}
            )
        except ConfigEvaluationError as exc:
            logger.warning(
                "Urgency formula failed, using default",
                task_id=task.id, formula=definition.formula, reason=exc.message,
            )
            score = default_urgency(effort, importance, days_left)
        return min(score, MAX_FINITE_SCORE)

    def get_urgency_level(self, score: float, thresholds: Optional[UrgencyThresholds] = None) -> UrgencyLevel:
        limits = thresholds if thresholds is not None else self.config.get_thresholds()
        if score >= limits.high:
            return UrgencyLevel.HIGH
        if score >= limits.medium:
            return UrgencyLevel.MEDIUM
        return UrgencyLevel.LOW

    def score_task(
        self,
        task: Task,
        formula: Optional[FormulaDefinition] = None,
        thresholds: Optional[UrgencyThresholds] = None,
    ) -> UrgencyResult:
        score = self.calculate_urgency(task, formula)
        return UrgencyResult(task_id=task.id, score=score, level=self.get_urgency_level(score, thresholds))

    @staticmethod
    def validate_formula(source: str) -> CompiledFormula:
        """Static check used before a formula is stored."""
        return compile_formula(source)
