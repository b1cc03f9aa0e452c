import os


def get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None and value != "" else default


def get_env_bool(name: str, default: bool) -> bool:
    raw_default = "1" if default else "0"
    raw = get_env(name, raw_default).strip().lower()
    return raw in {"1", "true", "yes", "y", "on"}


def get_env_int(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = get_env(name, str(default)).strip()
    try:
        parsed = int(raw)
    except (TypeError, ValueError):
        parsed = int(default)
    if min_value is not None and parsed < min_value:
        parsed = min_value
    if max_value is not None and parsed > max_value:
        parsed = max_value
    return parsed


def get_env_optional(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    clean = str(raw).strip()
    return clean or None


APP_NAME = get_env("APP_NAME", "Guildboard API")
DATABASE_URL = get_env("DATABASE_URL", "sqlite:///./data/db/guildboard.db")
AUTH_SECRET = get_env("AUTH_SECRET", "guildboard-dev-secret-change-me")

HOME_SERVER = get_env_int("HOME_SERVER", 249)

CACHE_ENABLED = get_env_bool("CACHE_ENABLED", False)
REDIS_URL = get_env_optional("REDIS_URL")
CACHE_MAX_MEMORY_ENTRIES = get_env_int("CACHE_MAX_MEMORY_ENTRIES", 1000, min_value=10)

# The document store refuses batches above 500 operations.
WRITE_BATCH_SIZE = get_env_int("WRITE_BATCH_SIZE", 500, min_value=1, max_value=500)
BATCH_COMMIT_WORKERS = get_env_int("BATCH_COMMIT_WORKERS", 4, min_value=1)
WORKBOOK_PARSE_TIMEOUT_SECONDS = get_env_int("WORKBOOK_PARSE_TIMEOUT_SECONDS", 60, min_value=1)
MAX_UPLOAD_BYTES = get_env_int("MAX_UPLOAD_BYTES", 25 * 1024 * 1024, min_value=1024)
