"""Summary: Application configuration for MeetPilot.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for storage, coordination, and scheduling.

    Importance: Ensures all services derive settings from a single source of truth.
    Alternatives: Store settings in a shared config file and parse at startup.
    """

    db_path: str
    api_host: str
    api_port: int
    api_key: str
    log_level: str
    lock_timeout_seconds: float
    sync_lock_timeout_seconds: float
    external_call_pool_size: int
    sync_debounce_ms: int
    availability_window_days: int
    default_duration_minutes: int
    skip_weekends: bool
    preference_cache_ttl_seconds: float
    default_locations: list[str]
    invitation_ttl_days: int
    app_url: str
    meeting_keywords: list[str]

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            db_path=os.getenv("MEETPILOT_DB_PATH", defaults["db_path"]),
            api_host=os.getenv("MEETPILOT_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("MEETPILOT_API_PORT", defaults["api_port"])),
            api_key=os.getenv("MEETPILOT_API_KEY", defaults["api_key"]),
            log_level=os.getenv("MEETPILOT_LOG_LEVEL", defaults["log_level"]),
            lock_timeout_seconds=float(
                os.getenv("MEETPILOT_LOCK_TIMEOUT_SECONDS", defaults["lock_timeout_seconds"])
            ),
            sync_lock_timeout_seconds=float(
                os.getenv(
                    "MEETPILOT_SYNC_LOCK_TIMEOUT_SECONDS", defaults["sync_lock_timeout_seconds"]
                )
            ),
            external_call_pool_size=int(
                os.getenv("MEETPILOT_EXTERNAL_CALL_POOL_SIZE", defaults["external_call_pool_size"])
            ),
            sync_debounce_ms=int(os.getenv("MEETPILOT_SYNC_DEBOUNCE_MS", defaults["sync_debounce_ms"])),
            availability_window_days=int(
                os.getenv(
                    "MEETPILOT_AVAILABILITY_WINDOW_DAYS", defaults["availability_window_days"]
                )
            ),
            default_duration_minutes=int(
                os.getenv(
                    "MEETPILOT_DEFAULT_DURATION_MINUTES", defaults["default_duration_minutes"]
                )
            ),
            skip_weekends=_parse_bool(
                os.getenv("MEETPILOT_SKIP_WEEKENDS", defaults["skip_weekends"])
            ),
            preference_cache_ttl_seconds=float(
                os.getenv(
                    "MEETPILOT_PREFERENCE_CACHE_TTL_SECONDS",
                    defaults["preference_cache_ttl_seconds"],
                )
            ),
            default_locations=_parse_list(
                os.getenv("MEETPILOT_DEFAULT_LOCATIONS", defaults["default_locations"])
            ),
            invitation_ttl_days=int(
                os.getenv("MEETPILOT_INVITATION_TTL_DAYS", defaults["invitation_ttl_days"])
            ),
            app_url=os.getenv("MEETPILOT_APP_URL", defaults["app_url"]),
            meeting_keywords=_parse_list(
                os.getenv("MEETPILOT_MEETING_KEYWORDS", defaults["meeting_keywords"])
            ),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _parse_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
