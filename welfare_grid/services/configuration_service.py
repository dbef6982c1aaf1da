"""Cached access to runtime-editable system settings.

Fraud thresholds are stored in the ``system_settings`` table so they can be
relaxed live (e.g. during a calamity). Reads go through an in-memory TTL
cache; writes invalidate the affected key.
"""

import asyncio
import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from welfare_grid.core.config import FraudDetectionSettings, settings
from welfare_grid.core.exceptions import ConflictError, SettingNotFoundError, ValidationError
from welfare_grid.database.models import SystemSetting
from welfare_grid.repositories.activity_log_repository import ActivityLogRepository
from welfare_grid.repositories.system_setting_repository import SystemSettingRepository
from welfare_grid.schemas.risk import RiskThresholds
from welfare_grid.utils.logging import get_logger

LOGGER = get_logger(__name__)

RISK_THRESHOLD_DAYS = "RISK_THRESHOLD_DAYS"
SAME_TYPE_THRESHOLD_DAYS = "SAME_TYPE_THRESHOLD_DAYS"
HIGH_FREQUENCY_THRESHOLD = "HIGH_FREQUENCY_THRESHOLD"
LEVENSHTEIN_DISTANCE_THRESHOLD = "LEVENSHTEIN_DISTANCE_THRESHOLD"
DUPLICATE_REPORT_DISTANCE_THRESHOLD = "DUPLICATE_REPORT_DISTANCE_THRESHOLD"

# Setting key -> field name on FraudDetectionSettings and RiskThresholds
THRESHOLD_KEYS = {
    RISK_THRESHOLD_DAYS: "risk_threshold_days",
    SAME_TYPE_THRESHOLD_DAYS: "same_type_threshold_days",
    HIGH_FREQUENCY_THRESHOLD: "high_frequency_threshold",
    LEVENSHTEIN_DISTANCE_THRESHOLD: "levenshtein_distance_threshold",
    DUPLICATE_REPORT_DISTANCE_THRESHOLD: "duplicate_report_distance_threshold",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def cast_setting_value(value: Optional[str], data_type: str) -> Any:
    """Convert a stored string value to its declared type."""
    if value is None:
        return None
    if data_type == "integer":
        return int(value)
    if data_type == "float":
        return float(value)
    if data_type == "boolean":
        return str(value).strip().lower() in _TRUE_VALUES
    if data_type == "json":
        return json.loads(value)
    return value


def serialize_setting_value(value: Any, data_type: str) -> str:
    if data_type == "json":
        return json.dumps(value)
    if data_type == "boolean":
        return "true" if value in (True, "true", "1", 1, "yes", "on") else "false"
    return str(value)


class ConfigurationService:
    """Typed, cached reads and validated writes of system settings.

    A single instance is meant to be shared (it owns the cache); each call
    opens its own short session from ``session_factory``.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        cache_ttl: Optional[int] = None,
        defaults: Optional[FraudDetectionSettings] = None,
    ):
        """Initialize configuration service.

        Args:
            session_factory: Factory for database sessions
            cache_ttl: Cache time-to-live in seconds
            defaults: Fallback threshold values for missing keys
        """
        if session_factory is None:
            from welfare_grid.database.base import async_session_maker

            session_factory = async_session_maker

        self.session_factory = session_factory
        self.defaults = defaults or settings.fraud
        self.cache_ttl = cache_ttl if cache_ttl is not None else self.defaults.settings_cache_ttl

        # key -> (typed value or None when missing, cached-at timestamp)
        self._cache: dict[str, tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    def _default_for(self, key: str) -> Any:
        attribute = THRESHOLD_KEYS.get(key)
        if attribute is None:
            return None
        return getattr(self.defaults, attribute)

    def _is_cache_valid(self, key: str) -> bool:
        entry = self._cache.get(key)
        if entry is None:
            return False
        return time.time() - entry[1] < self.cache_ttl

    async def _load(self, key: str) -> Any:
        async with self.session_factory() as session:
            setting = await SystemSettingRepository(session).get_by_key(key)
            if setting is None:
                return None
            return cast_setting_value(setting.value, setting.data_type)

    async def get(self, key: str, default: Any = None) -> Any:
        """Typed value of ``key``.

        Falls back to ``default``, then to the environment-level threshold
        default, when the key does not exist.
        """
        async with self._lock:
            if self._is_cache_valid(key):
                value = self._cache[key][0]
            else:
                value = await self._load(key)
                self._cache[key] = (value, time.time())

        if value is None:
            fallback = default if default is not None else self._default_for(key)
            LOGGER.warning(f"Setting {key} not found; using default {fallback!r}")
            return fallback
        return value

    async def get_int(self, key: str, default: Optional[int] = None) -> int:
        return int(await self.get(key, default))

    async def get_float(self, key: str, default: Optional[float] = None) -> float:
        return float(await self.get(key, default))

    async def get_bool(self, key: str, default: Optional[bool] = None) -> bool:
        value = await self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in _TRUE_VALUES
        return bool(value)

    async def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = await self.get(key, default)
        return None if value is None else str(value)

    async def get_thresholds(self) -> RiskThresholds:
        """Current detection thresholds as one typed snapshot."""
        values = {}
        for key, field_name in THRESHOLD_KEYS.items():
            values[field_name] = await self.get_int(key)
        return RiskThresholds(**values)

    async def set(self, key: str, value: Any, user_id: Optional[int] = None) -> SystemSetting:
        """Validate and store a new value for an existing setting.

        Raises:
            SettingNotFoundError: If ``key`` does not exist
            ConflictError: If the setting is not editable
            ValidationError: If the value cannot be cast or is out of range
        """
        async with self.session_factory() as session:
            repo = SystemSettingRepository(session)
            setting = await repo.get_by_key(key)
            if setting is None:
                raise SettingNotFoundError(f"Setting {key} not found")
            if not setting.is_editable:
                raise ConflictError(f"Setting {key} is not editable", context={"key": key})

            stored = serialize_setting_value(value, setting.data_type)
            try:
                typed = cast_setting_value(stored, setting.data_type)
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"Value {value!r} is not a valid {setting.data_type} for {key}", original_error=e
                ) from e
            self._check_bounds(setting, typed)

            old_value = setting.value
            setting.value = stored
            setting.updated_by = user_id
            await ActivityLogRepository(session).record(
                log_name="settings",
                action="setting_updated",
                subject_type="SystemSetting",
                subject_id=setting.id,
                causer_id=user_id,
                properties={"key": key, "old": old_value, "new": stored},
            )
            await session.commit()

        self.invalidate(key)
        LOGGER.info(f"Setting {key} changed from {old_value!r} to {stored!r} by user {user_id}")
        return setting

    @staticmethod
    def _check_bounds(setting: SystemSetting, value: Any) -> None:
        if setting.data_type not in ("integer", "float"):
            return
        try:
            number = Decimal(str(value))
        except InvalidOperation as e:
            raise ValidationError(f"Value {value!r} is not numeric", original_error=e) from e
        if setting.min_value is not None and number < Decimal(str(setting.min_value)):
            raise ValidationError(f"{setting.key} must be at least {setting.min_value}")
        if setting.max_value is not None and number > Decimal(str(setting.max_value)):
            raise ValidationError(f"{setting.key} must be at most {setting.max_value}")

    def invalidate(self, key: str) -> None:
        """Drop one key from the cache."""
        self._cache.pop(key, None)

    def flush_cache(self) -> None:
        """Drop every cached setting."""
        self._cache.clear()
        LOGGER.info("Settings cache flushed")
