"""Configuration settings for OpenHeart Reviews."""

from __future__ import annotations

from pathlib import Path
from dataclasses import dataclass, field


@dataclass
class Settings:
    """Application settings."""

    # Site
    site_name: str = "OpenHeart Reviews"
    tagline: str = "A Privacy-First Review Platform"

    # Server (loopback by default)
    host: str = "127.0.0.1"
    port: int = 47300

    # Browser session
    session_cookie: str = "openheart_session"
    disclaimer_key: str = "disclaimerAccepted"

    # Session store: "memory" or "sqlite"
    session_backend: str = "memory"
    session_db_path: Path = field(
        default_factory=lambda: Path.home() / ".openheart" / "sessions.db"
    )
    # Sessions untouched this long are purged (browser-close cannot be observed)
    session_idle_ttl_seconds: float = 12 * 60 * 60
    session_purge_interval_seconds: float = 10 * 60

    # Auth gate
    login_enabled: bool = True
    auth_timeout_seconds: float = 5.0


# Navigation targets
REVIEWS_PATH = "/reviews"
NEW_REVIEW_PATH = "/reviews/new"
LOGIN_PATH = "/login"
