import os

from pydantic import BaseModel

DEFAULT_BRIDGE_URL = "http://192.168.4.1"

# Poll intervals in seconds
STATE_POLL_INTERVAL = 5.0
MESSAGE_POLL_INTERVAL = 2.0

REQUEST_TIMEOUT = 5.0

# How long the error banner and the threshold "saved" notice stay visible
BANNER_TTL = 5.0
THRESHOLD_NOTICE_TTL = 4.0

MESSAGE_BUFFER_SIZE = 120

ENV_PREFIX = "BRIDGE_CONSOLE_"


class ConsoleConfig(BaseModel):
    bridge_url: str = DEFAULT_BRIDGE_URL
    state_interval: float = STATE_POLL_INTERVAL
    message_interval: float = MESSAGE_POLL_INTERVAL
    request_timeout: float = REQUEST_TIMEOUT
    banner_ttl: float = BANNER_TTL
    threshold_notice_ttl: float = THRESHOLD_NOTICE_TTL
    message_buffer_size: int = MESSAGE_BUFFER_SIZE
    host: str = "0.0.0.0"
    port: int = 8000
    scheduler_enabled: bool = True

    @classmethod
    def from_env(cls, environ=None) -> "ConsoleConfig":
        """Build a config from BRIDGE_CONSOLE_* variables, e.g. BRIDGE_CONSOLE_BRIDGE_URL."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None:
                values[name] = raw
        return cls(**values)
