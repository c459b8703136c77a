from dataclasses import dataclass, field
import logging
import os

from dotenv import load_dotenv

from .constants import DEFAULT_FORMATION


def _walk_up(start: str) -> str | None:
    cur = os.path.abspath(start)
    while True:
        if os.path.isdir(os.path.join(cur, ".git")):
            return cur
        parent = os.path.dirname(cur)
        if parent == cur:
            return None
        cur = parent


def _resolve_repo_root() -> str:
    env_root = os.getenv("REPO_ROOT")
    if env_root:
        return os.path.abspath(env_root)
    for base in (os.getcwd(), os.path.dirname(__file__)):
        found = _walk_up(base)
        if found:
            return found
    return os.path.abspath(os.getcwd())


_INITIAL_ROOT = _resolve_repo_root()


def _bool_env(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("1", "true", "yes")


def _int_env(key: str, default: int) -> int:
    """Read an optional positive integer environment variable.

    Raises ValueError at startup when the variable is set to something that
    is not a positive integer, instead of quietly falling back to the default.
    """
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got: {value!r}") from None
    if parsed <= 0:
        raise ValueError(f"{key} must be positive, got: {parsed}")
    return parsed


# Load .env from repo root if present
load_dotenv(os.path.join(_INITIAL_ROOT, ".env"))

REPO_ROOT = os.path.abspath(os.getenv("REPO_ROOT", _INITIAL_ROOT))
if REPO_ROOT != _INITIAL_ROOT:
    load_dotenv(os.path.join(REPO_ROOT, ".env"))


@dataclass
class Settings:
    repo_root: str = REPO_ROOT
    api_base: str = field(default_factory=lambda: os.getenv("API_BASE", "http://localhost:5050"))
    api_token: str = field(default_factory=lambda: os.getenv("API_TOKEN", ""))
    team_id: str = field(default_factory=lambda: os.getenv("TEAM_ID", ""))
    default_formation: str = field(default_factory=lambda: os.getenv("DEFAULT_FORMATION", DEFAULT_FORMATION))
    request_timeout: int = field(default_factory=lambda: _int_env("REQUEST_TIMEOUT", 10))
    timezone: str = field(default_factory=lambda: os.getenv("REPORTS_TZ", "UTC"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    resync_enabled: bool = field(default_factory=lambda: _bool_env("RESYNC_ENABLED", "false"))
    resync_interval_minutes: int = field(default_factory=lambda: _int_env("RESYNC_INTERVAL_MINUTES", 5))


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or SETTINGS.log_level), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


SETTINGS = Settings()
