from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, Optional
import math
from app.core.exceptions import ConfigEvaluationError, ValidationError
from app.core.logging import get_logger
from app.domain.models.urgency import (
    URGENCY_FORMULA_KEY, URGENCY_THRESHOLDS_KEY, DEFAULT_SETTINGS,
    FormulaDefinition, UrgencyThresholds,
)
from app.domain.services.events import TOPIC_SETTINGS
from app.domain.services.formula import compile_formula
from app.infrastructure.database.models import SettingORM

logger = get_logger(__name__)


class ConfigStore:
    """
    Named configuration values stored as opaque JSON payloads.

    One row per key (unique constraint); every overwrite bumps ``version``.
    """

    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier

    def get_record(self, key: str) -> Optional[SettingORM]:
        return self.db.query(SettingORM).filter(SettingORM.key == key).first()

    def get_setting(self, key: str) -> Optional[Any]:
        setting = self.get_record(key)
        return setting.value if setting else None

    def update_setting(self, key: str, value: Any) -> SettingORM:
        self._validate_known(key, value)
        try:
            setting = self._upsert(key, value)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Setting update rolled back", key=key)
            raise
        self.db.refresh(setting)
        logger.info("Setting updated", key=key, version=setting.version)
        if self.notifier is not None:
            self.notifier.publish(TOPIC_SETTINGS, key=key)
        return setting

    def _upsert(self, key: str, value: Any) -> SettingORM:
        existing = self.get_record(key)
        if existing:
            return self._overwrite(existing, value)
        try:
            # Savepoint so a concurrent insert of the same key only undoes this row.
            with self.db.begin_nested():
                setting = SettingORM(key=key, value=value, version=1)
                self.db.add(setting)
            return setting
        except IntegrityError:
            logger.info("Setting insert raced, retrying as update", key=key)
            existing = self.get_record(key)
            if existing is None:
                raise
            return self._overwrite(existing, value)

    @staticmethod
    def _overwrite(setting: SettingORM, value: Any) -> SettingORM:
        setting.value = value
        setting.version = (setting.version or 0) + 1
        return setting

    def ensure_defaults(self) -> int:
        """Write the built-in records for keys that have never been stored."""
        created = 0
        for key, value in DEFAULT_SETTINGS.items():
            if self.get_record(key) is None:
                self._upsert(key, value)
                created += 1
        if created:
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            logger.info("Default settings seeded", count=created)
        return created

    # ──── Typed readers (never raise: absence or damage means defaults) ────
    def get_formula(self) -> FormulaDefinition:
        value = self.get_setting(URGENCY_FORMULA_KEY)
        if value is None:
            return FormulaDefinition()
        try:
            return FormulaDefinition.from_value(value)
        except ConfigEvaluationError as exc:
            logger.warning("Stored urgency formula unusable, using default", reason=exc.message)
            return FormulaDefinition()

    def get_thresholds(self) -> UrgencyThresholds:
        value = self.get_setting(URGENCY_THRESHOLDS_KEY)
        if value is None:
            return UrgencyThresholds()
        try:
            return UrgencyThresholds.from_value(value)
        except ConfigEvaluationError as exc:
            logger.warning("Stored urgency thresholds unusable, using defaults", reason=exc.message)
            return UrgencyThresholds()

    # ──── Validated writers for the well-known keys ────
    @staticmethod
    def _validate_known(key: str, value: Any):
        try:
            if key == URGENCY_FORMULA_KEY:
                compile_formula(FormulaDefinition.from_value(value).formula)
            elif key == URGENCY_THRESHOLDS_KEY:
                thresholds = UrgencyThresholds.from_value(value)
                if not (math.isfinite(thresholds.high) and math.isfinite(thresholds.medium)):
                    raise ConfigEvaluationError("urgency thresholds must be finite")
                if thresholds.high < thresholds.medium:
                    raise ConfigEvaluationError("urgency_thresholds.high must be >= medium")
        except ConfigEvaluationError as exc:
            raise ValidationError(f"Invalid {key}: {exc.message}")

    def update_urgency_formula(self, formula: str, description: str = "") -> SettingORM:
        definition = FormulaDefinition(formula=(formula or "").strip(), description=description or "")
        return self.update_setting(URGENCY_FORMULA_KEY, definition.to_value())

    def update_urgency_thresholds(self, high: float, medium: float) -> SettingORM:
        return self.update_setting(URGENCY_THRESHOLDS_KEY, {"high": high, "medium": medium})
