"""
Runtime settings, read from the environment (and a .env file when present).

  HTTP_HOST      0.0.0.0   interface for the web page and WebSocket
  HTTP_PORT      3000
  OSC_HOST       0.0.0.0   interface for the OSC UDP listener
  OSC_PORT       9000
  RESET_ON_STOP  false     /stop also rewinds the timecode to 00:00:00
  TRUST_PROXY    false     log the X-Forwarded-For address of viewers
  STATIC_DIR     public    directory served at /
"""

import os
from dataclasses import dataclass
from typing import Mapping


def _flag(value) -> bool:
    return str(value).lower() == "true"


@dataclass(frozen=True)
class Settings:
    http_host: str = "0.0.0.0"
    http_port: int = 3000
    osc_host: str = "0.0.0.0"
    osc_port: int = 9000
    reset_on_stop: bool = False
    trust_proxy: bool = False
    static_dir: str = "public"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            http_host=env.get("HTTP_HOST", cls.http_host),
            http_port=int(env.get("HTTP_PORT", cls.http_port)),
            osc_host=env.get("OSC_HOST", cls.osc_host),
            osc_port=int(env.get("OSC_PORT", cls.osc_port)),
            reset_on_stop=_flag(env.get("RESET_ON_STOP", "false")),
            trust_proxy=_flag(env.get("TRUST_PROXY", "false")),
            static_dir=env.get("STATIC_DIR", cls.static_dir),
        )
