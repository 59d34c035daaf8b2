import uvicorn
from dotenv import load_dotenv
import os
from pathlib import Path
import logging

# Configure logging before any application imports to ensure visibility
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s RUN_DEV.PY - [%(levelname)s] - %(message)s'
)
logger = logging.getLogger("run_dev_script")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ["true", "1", "yes", "on", "t"]


if __name__ == "__main__":
    project_root = Path(__file__).parent.resolve()
    dotenv_path_explicit = project_root / ".env"

    logger.info(f"Project root (derived from __file__): {project_root}")

    if dotenv_path_explicit.exists():
        logger.info(f".env file FOUND at: {dotenv_path_explicit}")
        load_dotenv(dotenv_path=dotenv_path_explicit, override=True)
    else:
        logger.warning(f".env file NOT FOUND at: {dotenv_path_explicit}. "
                       "Will rely on OS environment variables or pydantic-settings defaults.")

    logger.info(f"DEBUG_MODE: {os.getenv('DEBUG_MODE')}")
    logger.info(f"STORAGE_BACKEND: {os.getenv('STORAGE_BACKEND')}")
    logger.info(f"SQLITE_DB_PATH: {os.getenv('SQLITE_DB_PATH')}")
    logger.info(f"REDIS_HOST: {os.getenv('REDIS_HOST')}")

    host = os.getenv("DEV_SERVER_HOST", "127.0.0.1")
    port = int(os.getenv("DEV_SERVER_PORT", "8000"))
    uvicorn_log_level = os.getenv("DEV_SERVER_LOG_LEVEL", "info").lower()

    # Reload follows DEBUG_MODE unless DEV_SERVER_RELOAD says otherwise
    debug_mode = _env_flag("DEBUG_MODE", "False")
    reload_bool = _env_flag("DEV_SERVER_RELOAD", str(debug_mode))

    logger.info(f"Starting Uvicorn server on {host}:{port} (log level {uvicorn_log_level}, reload {reload_bool})")
    logger.info("App module: ward_planner.main:app")

    uvicorn.run(
        "ward_planner.main:app",
        host=host,
        port=port,
        log_level=uvicorn_log_level,
        reload=reload_bool
    )
