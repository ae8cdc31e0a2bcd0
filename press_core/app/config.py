import os
import hashlib
import warnings
from pathlib import Path


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_database_url() -> str:
    """
    Prefer explicit DATABASE_URL env var. If not provided, use a local SQLite
    file in a `data/` folder adjacent to the package directory.
    """
    env_db = os.getenv("DATABASE_URL")
    if env_db:
        return env_db
    data_dir = Path(__file__).resolve().parents[1] / "data"
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        return "sqlite:///:memory:"
    return f"sqlite:///{(data_dir / 'press_core.db').as_posix()}"


def get_secret_key() -> str:
    """
    Get secret key from environment with proper validation.
    NEVER use default secret keys in production!
    """
    secret = os.getenv("PRESS_SECRET_KEY")

    if not secret:
        if ENVIRONMENT == "production":
            raise RuntimeError(
                "CRITICAL: Secret key must be set in production! "
                "Set PRESS_SECRET_KEY environment variable."
            )
        warnings.warn(
            "No secret key set! Using development key. "
            "Set PRESS_SECRET_KEY for production.",
            RuntimeWarning
        )
        secret = hashlib.sha256(b"press-dev-mode-only").hexdigest()

    return secret


def get_cors_origins():
    """Get CORS origins from environment or use defaults for development"""
    origins_env = os.getenv("CORS_ORIGINS", "")
    if origins_env:
        return [o.strip() for o in origins_env.split(",") if o.strip()]
    return [
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ]


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DATABASE_URL = get_database_url()

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("TOKEN_EXPIRE_MINUTES", "60"))

# Idle-connection-terminated errors are retried this many times per transaction
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "2"))

# Ledger policy defaults; both can be overridden per request
ALLOW_FUZZY_MATERIAL_MATCH = _env_flag("PRESS_ALLOW_FUZZY_MATERIAL_MATCH", False)
RETURN_STOCK_ON_DELETE = _env_flag("PRESS_RETURN_STOCK_ON_DELETE", False)

LOG_LEVEL = os.getenv("PRESS_LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("PRESS_LOG_DIR")
