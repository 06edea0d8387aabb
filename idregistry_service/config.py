"""
Configuration module for the registry service.

Centralizes all configuration with environment variable support and
validation. Module-level constants reflect the environment at import time;
load_settings() re-reads it, which is what create_app() uses.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from idregistry.errors import InvalidPrincipalError
from idregistry.principals import normalize_caller

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("REGISTRY_ENV", "dev")  # dev|stage|prod

# Storage
STORE_KIND = os.getenv("REGISTRY_STORE", "sqlite")  # sqlite|memory
DB_PATH = os.getenv("REGISTRY_DB_PATH", "data/registry.db")
JOURNAL_ENABLED = os.getenv("REGISTRY_JOURNAL", "1")
LOCK_STRIPES = int(os.getenv("REGISTRY_LOCK_STRIPES", "64"))

# Bootstrap
ADMIN = os.getenv("REGISTRY_ADMIN", "0x1")
AUTO_BOOTSTRAP = os.getenv("REGISTRY_AUTO_BOOTSTRAP", "1")

# Caller binding
CALLER_AUTH = os.getenv("REGISTRY_CALLER_AUTH", "signature")  # signature|header
MAX_CLOCK_SKEW_SECONDS = int(os.getenv("REGISTRY_MAX_CLOCK_SKEW_SECONDS", "300"))

# Rate limits (requests per minute, per caller)
REGISTER_RPM = int(os.getenv("REGISTER_RPM", "120"))
ATTEST_RPM = int(os.getenv("ATTEST_RPM", "120"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "1")
LOG_FILE = os.getenv("LOG_FILE", "")

STORE_KINDS = ("sqlite", "memory")
CALLER_AUTH_MODES = ("signature", "header")


def _flag(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes")


@dataclass
class Settings:
    env: str = ENV
    store: str = STORE_KIND
    db_path: str = DB_PATH
    journal: bool = _flag(JOURNAL_ENABLED)
    lock_stripes: int = LOCK_STRIPES
    admin: str = ADMIN
    auto_bootstrap: bool = _flag(AUTO_BOOTSTRAP)
    caller_auth: str = CALLER_AUTH
    max_clock_skew_seconds: int = MAX_CLOCK_SKEW_SECONDS
    register_rpm: int = REGISTER_RPM
    attest_rpm: int = ATTEST_RPM
    log_level: str = LOG_LEVEL
    log_json: bool = _flag(LOG_JSON)
    log_file: Optional[str] = LOG_FILE or None


def load_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings(
        env=os.getenv("REGISTRY_ENV", "dev"),
        store=os.getenv("REGISTRY_STORE", "sqlite"),
        db_path=os.getenv("REGISTRY_DB_PATH", "data/registry.db"),
        journal=_flag(os.getenv("REGISTRY_JOURNAL", "1")),
        lock_stripes=int(os.getenv("REGISTRY_LOCK_STRIPES", "64")),
        admin=os.getenv("REGISTRY_ADMIN", "0x1"),
        auto_bootstrap=_flag(os.getenv("REGISTRY_AUTO_BOOTSTRAP", "1")),
        caller_auth=os.getenv("REGISTRY_CALLER_AUTH", "signature"),
        max_clock_skew_seconds=int(os.getenv("REGISTRY_MAX_CLOCK_SKEW_SECONDS", "300")),
        register_rpm=int(os.getenv("REGISTER_RPM", "120")),
        attest_rpm=int(os.getenv("ATTEST_RPM", "120")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_flag(os.getenv("LOG_JSON", "1")),
        log_file=os.getenv("LOG_FILE") or None,
    )


# ============================================================
# Validation
# ============================================================

def validate_settings(settings: Settings) -> Dict[str, str]:
    """
    Check settings for values the service cannot run with.
    Returns dict of setting -> problem (empty when valid).
    """
    problems = {}
    if settings.store not in STORE_KINDS:
        problems["store"] = f"must be one of {', '.join(STORE_KINDS)}"
    if settings.caller_auth not in CALLER_AUTH_MODES:
        problems["caller_auth"] = f"must be one of {', '.join(CALLER_AUTH_MODES)}"
    try:
        normalize_caller(settings.admin)
    except InvalidPrincipalError as e:
        problems["admin"] = e.message
    if settings.max_clock_skew_seconds <= 0:
        problems["max_clock_skew_seconds"] = "must be positive"
    if settings.caller_auth == "header" and settings.env == "prod":
        problems["caller_auth"] = "header caller binding is not allowed in prod"
    return problems


# ============================================================
# Feature Flags
# ============================================================

def is_production(settings: Optional[Settings] = None) -> bool:
    """Check if running in production mode."""
    return (settings.env if settings else ENV) == "prod"
