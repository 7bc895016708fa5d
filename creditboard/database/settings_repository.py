"""Repository for key-value settings."""

import logging
from datetime import datetime
from typing import Any, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from creditboard.database.models import SettingDB
from creditboard.engine.errors import TransientStoreError

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Repository for JSON settings keyed by fixed string constants."""

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, message: str, e: Exception):
        self.db.rollback()
        logger.error(f"{message}: {type(e).__name__}: {str(e)}")
        raise TransientStoreError(message) from e

    def get(self, key: str) -> Optional[Any]:
        """Get the stored JSON value for a key (None if absent)."""
        try:
            setting_db = self.db.query(SettingDB).filter(SettingDB.key == key).first()
            return setting_db.value if setting_db else None
        except SQLAlchemyError as e:
            self._fail(f"Failed to load setting {key}", e)

    def set(self, key: str, value: Any) -> None:
        """Create or replace the value stored under a key."""
        try:
            setting_db = self.db.query(SettingDB).filter(SettingDB.key == key).first()
            if setting_db:
                setting_db.value = value
                setting_db.updated_at = datetime.utcnow()
            else:
                self.db.add(SettingDB(key=key, value=value, updated_at=datetime.utcnow()))
            self.db.commit()
            logger.debug(f"Saved setting {key}")
        except SQLAlchemyError as e:
            self._fail(f"Failed to save setting {key}", e)
