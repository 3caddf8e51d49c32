"""Process-wide settings, read once from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

from price_watch.errors import ConfigurationError

DEFAULT_API_BASE = "https://api.bestbuy.com/v1"


def _int(env: dict, name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _float(env: dict, name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """
    Configuration handed to every component at construction.

    Nothing below the entrypoint reads os.environ; tests build a Settings
    directly with fake credentials.
    """

    bestbuy_api_key: str | None = None
    bestbuy_api_base: str = DEFAULT_API_BASE
    request_timeout: float = 5.0
    check_interval_ms: int = 750
    window_days: int = 30
    db_path: Path = Path("data/price_watch.db")
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_from: str | None = None
    alert_recipient: str | None = None
    check_interval_minutes: int = 1440

    @property
    def mail_from(self) -> str | None:
        return self.smtp_from or self.smtp_user

    @classmethod
    def from_env(cls, env: dict | None = None) -> "Settings":
        """Build settings from environment variables (or a given mapping)."""
        env = dict(os.environ if env is None else env)
        window_days = _int(env, "WATCH_WINDOW_DAYS", 30)
        interval_ms = _int(env, "PRICE_CHECK_INTERVAL_MS", 750)
        timeout = _float(env, "BESTBUY_TIMEOUT_SECONDS", 5.0)
        if window_days <= 0:
            raise ConfigurationError("WATCH_WINDOW_DAYS must be positive")
        if interval_ms < 0 or timeout <= 0:
            raise ConfigurationError("PRICE_CHECK_INTERVAL_MS must be >= 0 and BESTBUY_TIMEOUT_SECONDS > 0")

        return cls(
            bestbuy_api_key=env.get("BESTBUY_API_KEY") or None,
            bestbuy_api_base=env.get("BESTBUY_API_BASE") or DEFAULT_API_BASE,
            request_timeout=timeout,
            check_interval_ms=interval_ms,
            window_days=window_days,
            db_path=Path(env.get("DB_PATH") or "data/price_watch.db"),
            smtp_host=env.get("SMTP_HOST") or "smtp.gmail.com",
            smtp_port=_int(env, "SMTP_PORT", 587),
            smtp_user=env.get("SMTP_USER") or None,
            smtp_pass=env.get("SMTP_PASS") or None,
            smtp_from=env.get("SMTP_FROM") or None,
            alert_recipient=env.get("ALERT_RECIPIENT") or None,
            check_interval_minutes=_int(env, "CHECK_INTERVAL_MINUTES", 1440),
        )

    def masked_api_key(self) -> str:
        """First four characters of the catalog key, for log lines."""
        if not self.bestbuy_api_key:
            return "undefined"
        return f"{self.bestbuy_api_key[:4]}..."
