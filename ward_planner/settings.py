# ward_planner/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional, Dict, Any
import logging
from pathlib import Path

# Configure logging for settings module
logger = logging.getLogger(__name__)
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s SETTINGS.PY - [%(levelname)s] - %(message)s'
    )

# This settings.py file is at <project>/ward_planner/settings.py
# Two .parent calls will get to the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
DOTENV_PATH = PROJECT_ROOT / ".env"

if DOTENV_PATH.exists():
    logger.info(f"SETTINGS.PY: .env file FOUND at explicit path: {DOTENV_PATH}")
else:
    logger.info(
        f"SETTINGS.PY: .env file NOT FOUND at explicit path: {DOTENV_PATH}. "
        "Will rely on OS env vars or defaults."
    )

# Wards provisioned on first start. A missing passphrase defaults to the ward id.
DEFAULT_SEED_WARDS: List[Dict[str, Any]] = [
    {"id": "primavera", "name": "Barrio Primavera"},
    {"id": "jardines", "name": "Barrio Jardines"},
    {"id": "los_olivos", "name": "Barrio Los Olivos"},
    {"id": "san_martin", "name": "Barrio San Martín"},
]

SUPPORTED_STORAGE_BACKENDS = ("sqlite", "redis")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    app_name: str = "Ward Planner"
    debug_mode: bool = False
    log_level: str = "INFO"
    storage_backend: str = "sqlite"

    # SQLite configuration
    sqlite_db_path: str = "./ward_planner_data.sqlite3"

    # Redis configuration (document backend and live change channel)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_key_prefix: str = "ward_planner"

    # Client-side sync behaviour
    sync_debounce_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Quiet period before a burst of edits is persisted."
    )

    seed_wards: List[Dict[str, Any]] = Field(
        default_factory=lambda: [dict(w) for w in DEFAULT_SEED_WARDS],
        description="Ward id/name/passphrase entries inserted when the ward table is empty."
    )

    model_config = SettingsConfigDict(
        env_file=DOTENV_PATH if DOTENV_PATH.exists() else None,
        extra="ignore",
        env_file_encoding='utf-8'
    )

    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level.upper()


# Initialize settings instance
settings = Settings()

logger.info(
    f"SETTINGS.PY: Post-Settings() settings.debug_mode: "
    f"{settings.debug_mode} (Type: {type(settings.debug_mode)})"
)
logger.info(
    f"SETTINGS.PY: Post-Settings() settings.storage_backend: "
    f"'{settings.storage_backend}' (Type: {type(settings.storage_backend)})"
)
logger.info(
    f"SETTINGS.PY: Post-Settings() settings.seed_wards: "
    f"{[w.get('id') for w in settings.seed_wards]}"
)
