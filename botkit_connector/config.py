"""
Connector Configuration.
Loads environment variables or a capability mapping into an immutable config.
"""

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .errors import ConfigurationError

DEFAULT_CONNECT_TIMEOUT_SEC = 10.0
DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
DEFAULT_RECEIVE_PATH = "/botkit/receive"

_TRUTHY = {"1", "true", "yes", "on"}


class Capabilities:
    """Capability names understood by from_caps()/config_from_caps()."""

    BOTKIT_SERVER_URL = "BOTKIT_SERVER_URL"
    BOTKIT_WEBSOCKET = "BOTKIT_WEBSOCKET"
    BOTKIT_USERID = "BOTKIT_USERID"


@dataclass(frozen=True)
class BotkitConfig:
    # Remote Botkit runtime (ws:// or http:// base URL)
    server_url: Optional[str] = None
    use_websocket: bool = False
    # Fixed session identity; a fresh uuid4 is generated on start() when unset
    user_id: Optional[str] = None

    connect_timeout_sec: float = DEFAULT_CONNECT_TIMEOUT_SEC
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    receive_path: str = DEFAULT_RECEIVE_PATH

    debug: bool = False

    def require_server_url(self) -> str:
        if not self.server_url:
            raise ConfigurationError(
                f"{Capabilities.BOTKIT_SERVER_URL} capability required"
            )
        return self.server_url


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or not str(value).strip():
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _normalize_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    url = str(url).strip().rstrip("/")
    return url or None


def load_config() -> BotkitConfig:
    """Load configuration from environment variables."""
    receive_path = os.environ.get("BOTKIT_RECEIVE_PATH", DEFAULT_RECEIVE_PATH)
    if not receive_path.startswith("/"):
        receive_path = "/" + receive_path

    return BotkitConfig(
        server_url=_normalize_url(os.environ.get("BOTKIT_SERVER_URL")),
        use_websocket=_as_bool(os.environ.get("BOTKIT_WEBSOCKET")),
        user_id=os.environ.get("BOTKIT_USERID") or None,
        connect_timeout_sec=_as_float(
            os.environ.get("BOTKIT_CONNECT_TIMEOUT_SEC"), DEFAULT_CONNECT_TIMEOUT_SEC
        ),
        request_timeout_sec=_as_float(
            os.environ.get("BOTKIT_REQUEST_TIMEOUT_SEC"), DEFAULT_REQUEST_TIMEOUT_SEC
        ),
        receive_path=receive_path,
        debug=os.environ.get("BOTKIT_CONNECTOR_DEBUG", "0") == "1",
    )


def config_from_caps(caps: Mapping[str, Any]) -> BotkitConfig:
    """Build a config from a harness capability mapping (BOTKIT_* keys)."""
    user_id = caps.get(Capabilities.BOTKIT_USERID)
    return BotkitConfig(
        server_url=_normalize_url(caps.get(Capabilities.BOTKIT_SERVER_URL)),
        use_websocket=_as_bool(caps.get(Capabilities.BOTKIT_WEBSOCKET)),
        user_id=str(user_id) if user_id else None,
    )
