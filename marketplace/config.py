"""Runtime configuration for the app (toggleable during tests/runtime)."""
import logging
import os
import sys
from typing import NamedTuple


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    token_ttl_seconds: int
    strict_stock: bool
    log_level: str


def _truthy(value: str) -> bool:
    return value.lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./marketplace.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", str(60 * 60 * 24 * 7))),
        strict_stock=_truthy(os.getenv("STRICT_STOCK", "1")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


state = load_settings()


def set_strict_stock(value: bool):
    global state
    state = state._replace(strict_stock=bool(value))


def is_strict_stock() -> bool:
    return state.strict_stock


def setup_logging(level: str | None = None):
    """Install one stdout handler on the package logger."""
    logger = logging.getLogger("marketplace")
    logger.setLevel((level or state.log_level).upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - [%(levelname)-7s] - %(message)s")
    )
    logger.addHandler(handler)
