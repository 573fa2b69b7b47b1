# orderfeed/config.py
from __future__ import annotations
import logging, os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from orderfeed.timetoken import DEFAULT_ALLOWED_SKEW, DEFAULT_TIME_WINDOW, InvalidConfiguration

log = logging.getLogger("config")

# ----- defaults -----
DEFAULT_API_URL = "http://localhost:8080/update"
DEFAULT_PUBLISH_URL = "http://localhost:8080/publish"
DEFAULT_WS_URL = "ws://localhost:8080/ws"
DEFAULT_USER_ID = "demo-user-123"
DEFAULT_PORT = 8080

PLACEHOLDER_TIME_TOKEN_SECRET = "your-time-token-secret"
PLACEHOLDER_JWT_SECRET = "your-jwt-secret"


def _env(key: str, default: str) -> str:
    # empty counts as unset
    return os.getenv(key) or default


def _env_secret(key: str, placeholder: str) -> str:
    # an explicitly empty secret is kept so the loader can warn about it
    value = os.getenv(key)
    return placeholder if value is None else value


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if not raw:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        log.warning("%s=%r is not an integer, using %d", key, raw, default)
        return default


def _check_secret(name: str, value: str, placeholder: Optional[str] = None) -> None:
    if not value:
        log.warning("%s is empty; tokens will be valid but trivially forgeable", name)
    elif placeholder and value == placeholder:
        log.warning("%s is still the placeholder value, set it in the environment or .env", name)


class SimulatorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_url: str = DEFAULT_API_URL
    publish_url: str = DEFAULT_PUBLISH_URL
    time_token_secret: str = PLACEHOLDER_TIME_TOKEN_SECRET
    time_window: int = DEFAULT_TIME_WINDOW
    request_timeout: float = 5.0
    batch_delay: float = 0.5


class FrontendConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    ws_url: str = DEFAULT_WS_URL
    jwt_secret: str = PLACEHOLDER_JWT_SECRET
    user_id: str = DEFAULT_USER_ID


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_token_secret: str = PLACEHOLDER_TIME_TOKEN_SECRET
    jwt_secret: str = PLACEHOLDER_JWT_SECRET
    time_window: int = Field(default=DEFAULT_TIME_WINDOW, gt=0)
    allowed_skew: int = Field(default=DEFAULT_ALLOWED_SKEW, ge=0)
    port: int = DEFAULT_PORT


def load_simulator_config(dotenv_path: Optional[str] = None) -> SimulatorConfig:
    load_dotenv(dotenv_path)
    cfg = SimulatorConfig(
        api_url=_env("API_URL", DEFAULT_API_URL),
        publish_url=_env("PUBLISH_URL", DEFAULT_PUBLISH_URL),
        time_token_secret=_env_secret("TIME_TOKEN_SECRET", PLACEHOLDER_TIME_TOKEN_SECRET),
        time_window=_env_int("TIME_WINDOW_SECONDS", DEFAULT_TIME_WINDOW),
    )
    _check_secret("TIME_TOKEN_SECRET", cfg.time_token_secret, PLACEHOLDER_TIME_TOKEN_SECRET)
    return cfg


def load_frontend_config(dotenv_path: Optional[str] = None) -> FrontendConfig:
    load_dotenv(dotenv_path)
    cfg = FrontendConfig(
        ws_url=_env("WS_URL", DEFAULT_WS_URL),
        jwt_secret=_env_secret("JWT_SECRET", PLACEHOLDER_JWT_SECRET),
        user_id=_env("USER_ID", DEFAULT_USER_ID),
    )
    _check_secret("JWT_SECRET", cfg.jwt_secret, PLACEHOLDER_JWT_SECRET)
    return cfg


def load_server_config(dotenv_path: Optional[str] = None) -> ServerConfig:
    load_dotenv(dotenv_path)
    try:
        cfg = ServerConfig(
            time_token_secret=_env_secret("TIME_TOKEN_SECRET", PLACEHOLDER_TIME_TOKEN_SECRET),
            jwt_secret=_env_secret("JWT_SECRET", PLACEHOLDER_JWT_SECRET),
            time_window=_env_int("TIME_WINDOW_SECONDS", DEFAULT_TIME_WINDOW),
            allowed_skew=_env_int("ALLOWED_CLOCK_SKEW", DEFAULT_ALLOWED_SKEW),
            port=_env_int("PORT", DEFAULT_PORT),
        )
    except ValidationError as e:
        raise InvalidConfiguration(f"invalid server configuration: {e}") from e
    _check_secret("TIME_TOKEN_SECRET", cfg.time_token_secret, PLACEHOLDER_TIME_TOKEN_SECRET)
    _check_secret("JWT_SECRET", cfg.jwt_secret, PLACEHOLDER_JWT_SECRET)
    return cfg
