"""Startup-time helpers for safe config logging."""

import os

from artpay.common.errors import ConfigurationError
from artpay.common.logging import logger


def _safe_env(name: str) -> str:
    """Return env value with simple redaction for secret-like variable names."""

    value = os.getenv(name)
    if value is None:
        return "<unset>"
    if any(secret in name for secret in ["KEY", "SECRET", "PASSWORD", "TOKEN", "DSN"]):
        return "<redacted>"
    return value


def log_startup_config(service_name: str, keys: list[str]) -> None:
    """Log selected startup config keys for quick troubleshooting."""

    config = {"service": service_name}
    for key in keys:
        config[key] = _safe_env(key)
    logger.info("startup_config=%s", config)


def require_settings(settings, names: list[str]) -> None:
    """Fail fast when any of the named settings is empty."""

    missing = [name.upper() for name in names if not getattr(settings, name, None)]
    if missing:
        raise ConfigurationError(f"missing required configuration: {', '.join(missing)}")
