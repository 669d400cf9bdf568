from typing import Optional

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.core.logging_config import get_logger
from backoffice.models.setting import Setting
from backoffice.utils.cache_manager import CacheManager

logger = get_logger(__name__)

SETTINGS_TAG = "settings"


class SettingsService:
    """
    Named runtime settings stored in settings_config, read through the cache.
    """

    def __init__(self, db: Session, cache: CacheManager):
        self.db = db
        self.cache = cache

    @staticmethod
    def _cache_key(key: str) -> str:
        return f"settings:{key}"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        def load():
            row = self.db.get(Setting, key)
            # Cache misses as "" so an absent key is not re-queried every call
            return row.value if row and row.value is not None else ""

        value = self.cache.remember(self._cache_key(key), settings.SETTINGS_CACHE_TTL, load, tags=SETTINGS_TAG)
        return value if value != "" else default

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Setting {key}={value!r} is not an integer, using default {default}")
            return default

    def set(self, key: str, value: str) -> None:
        row = self.db.get(Setting, key)
        if row is None:
            self.db.add(Setting(key=key, value=str(value)))
        else:
            row.value = str(value)
        self.db.commit()
        self.cache.delete(self._cache_key(key), tags=SETTINGS_TAG)
        logger.info(f"Setting {key} updated")
