from dataclasses import dataclass, field
from typing import Any, List
from enum import Enum

from app.core.exceptions import ConfigEvaluationError

URGENCY_FORMULA_KEY = "urgency_formula"
URGENCY_THRESHOLDS_KEY = "urgency_thresholds"

FORMULA_VARIABLES = ("effort", "importance", "daysLeft")
DEFAULT_FORMULA = "(effort * importance) / max(0.1, daysLeft ** 1.5)"
DEFAULT_FORMULA_DESCRIPTION = "Default: (effort x importance) / (days left ^ 1.5)"


class UrgencyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class UrgencyResult:
    task_id: int
    score: float
    level: UrgencyLevel


@dataclass(frozen=True)
class FormulaDefinition:
    formula: str = DEFAULT_FORMULA
    description: str = DEFAULT_FORMULA_DESCRIPTION
    variables: List[str] = field(default_factory=lambda: list(FORMULA_VARIABLES))

    def to_value(self) -> dict:
        return {
            "formula": self.formula,
            "description": self.description,
            "variables": list(self.variables),
        }

    @classmethod
    def from_value(cls, value: Any) -> "FormulaDefinition":
        if not isinstance(value, dict):
            raise ConfigEvaluationError("urgency_formula setting must be an object")
        formula = value.get("formula")
        if not isinstance(formula, str) or not formula.strip():
            raise ConfigEvaluationError("urgency_formula.formula must be a non-empty string")
        return cls(
            formula=formula.strip(),
            description=str(value.get("description") or ""),
            variables=list(value.get("variables") or FORMULA_VARIABLES),
        )


@dataclass(frozen=True)
class UrgencyThresholds:
    high: float = 10.0
    medium: float = 3.0

    def to_value(self) -> dict:
        return {"high": self.high, "medium": self.medium}

    @classmethod
    def from_value(cls, value: Any) -> "UrgencyThresholds":
        if not isinstance(value, dict):
            raise ConfigEvaluationError("urgency_thresholds setting must be an object")
        try:
            high = value["high"]
            medium = value["medium"]
        except KeyError as exc:
            raise ConfigEvaluationError(f"urgency_thresholds is missing {exc.args[0]!r}")
        for name, number in (("high", high), ("medium", medium)):
            if isinstance(number, bool) or not isinstance(number, (int, float)):
                raise ConfigEvaluationError(f"urgency_thresholds.{name} must be a number")
        return cls(high=float(high), medium=float(medium))


DEFAULT_SETTINGS = {
    URGENCY_FORMULA_KEY: FormulaDefinition().to_value(),
    URGENCY_THRESHOLDS_KEY: UrgencyThresholds().to_value(),
}
