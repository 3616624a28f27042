"""
Configuration module for commsgraph.

Handles configuration settings for the case database.

Settings:
    - case_db_path: SQLite case database holding evidence artifacts and the
      communications graph (accounts, instances, relationships)
    - busy_timeout: seconds SQLite waits on a lock held by another process

Environment Variables:
    COMMSGRAPH_CASE_DB: Default case database path.
    COMMSGRAPH_BUSY_TIMEOUT: Default busy timeout in seconds.
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class Config:
    """Configuration class for commsgraph."""

    # Default location for the case database
    DEFAULT_CASE_PATH = Path.home() / ".commsgraph"
    DEFAULT_CASE_DB_NAME = "case.db"

    DEFAULT_BUSY_TIMEOUT = 30.0

    CASE_DB_ENV_VAR = "COMMSGRAPH_CASE_DB"
    BUSY_TIMEOUT_ENV_VAR = "COMMSGRAPH_BUSY_TIMEOUT"

    def __init__(
        self,
        case_db_path: Optional[str] = None,
        busy_timeout: Optional[float] = None,
    ):
        """
        Initialize configuration.

        Args:
            case_db_path: Optional path to the case database. If not provided,
                    COMMSGRAPH_CASE_DB is used, then ~/.commsgraph/case.db.
            busy_timeout: Optional SQLite busy timeout in seconds. If not
                    provided, COMMSGRAPH_BUSY_TIMEOUT is used, then 30 seconds.
        """
        self._case_db_path: Path
        if case_db_path:
            self._case_db_path = Path(case_db_path)
        elif os.getenv(self.CASE_DB_ENV_VAR):
            self._case_db_path = Path(os.environ[self.CASE_DB_ENV_VAR])
        else:
            self._case_db_path = self.DEFAULT_CASE_PATH / self.DEFAULT_CASE_DB_NAME

        self._busy_timeout: float
        if busy_timeout is not None:
            self._busy_timeout = float(busy_timeout)
        else:
            self._busy_timeout = self._read_busy_timeout_env()

    def _read_busy_timeout_env(self) -> float:
        raw = os.getenv(self.BUSY_TIMEOUT_ENV_VAR)
        if raw is None:
            return self.DEFAULT_BUSY_TIMEOUT
        try:
            value = float(raw)
        except ValueError:
            logger.warning(
                f"Ignoring invalid {self.BUSY_TIMEOUT_ENV_VAR}={raw!r}, "
                f"using {self.DEFAULT_BUSY_TIMEOUT}"
            )
            return self.DEFAULT_BUSY_TIMEOUT
        return value if value >= 0 else self.DEFAULT_BUSY_TIMEOUT

    @property
    def case_db_path(self) -> Path:
        """Get the case database path."""
        return self._case_db_path

    @property
    def case_db_path_str(self) -> str:
        """Get the case database path as a string."""
        return str(self._case_db_path)

    @property
    def busy_timeout(self) -> float:
        """Get the SQLite busy timeout in seconds."""
        return self._busy_timeout

    def validate(self) -> bool:
        """
        Validate that the case database exists and is readable.

        Returns:
            True if the case database exists and is readable, False otherwise.
        """
        return self._case_db_path.exists() and os.access(self._case_db_path, os.R_OK)

    def ensure_case_dir(self) -> None:
        """
        Ensure the case database parent directory exists.

        Creates the directory if it doesn't exist.
        """
        self._case_db_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
_config: Optional[Config] = None


def get_config(case_db_path: Optional[str] = None) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        case_db_path: Optional path to the case database.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or case_db_path is not None:
        _config = Config(case_db_path)
    return _config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Config instance to use.
    """
    global _config
    _config = config
