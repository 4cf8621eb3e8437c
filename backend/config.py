"""Mission Control configuration, resolved once from the environment."""
import logging
import os
from functools import lru_cache
from typing import Mapping, Optional

from pydantic import BaseModel

DEFAULT_OPENCLAW_HOME = "/data/.openclaw"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_log_level(env: Mapping[str, str], name: str, default: str) -> str:
    value = (env.get(name) or default).upper()
    if not isinstance(logging.getLevelName(value), int):
        return default
    return value


class Settings(BaseModel):
    openclaw_home: str = DEFAULT_OPENCLAW_HOME
    agents_dir: str = os.path.join(DEFAULT_OPENCLAW_HOME, "agents")
    config_path: str = os.path.join(DEFAULT_OPENCLAW_HOME, "openclaw.json")
    logs_dir: str = os.path.join(DEFAULT_OPENCLAW_HOME, "logs")

    gateway_url: str = "http://localhost:63362"
    gateway_status_path: str = "/api/status"
    gateway_check_timeout: float = 1.0
    chat_model: str = "openclaw:main"

    proc_root: str = "/proc"
    cpu_sample_interval: float = 0.1
    journal_limit: int = 300
    session_list_limit: int = 100

    remote_stats_url: Optional[str] = None
    remote_stats_key: str = ""

    host: str = "0.0.0.0"
    port: int = 3335
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Each path is taken from its own variable first, then derived from
        ``OPENCLAW_HOME``, then from the ``/data/.openclaw`` default.
        """
        env = os.environ if env is None else env
        home = env.get("OPENCLAW_HOME") or DEFAULT_OPENCLAW_HOME
        return cls(
            openclaw_home=home,
            agents_dir=env.get("OPENCLAW_AGENTS_DIR") or os.path.join(home, "agents"),
            config_path=env.get("OPENCLAW_CONFIG_PATH") or os.path.join(home, "openclaw.json"),
            logs_dir=env.get("OPENCLAW_LOGS_DIR") or os.path.join(home, "logs"),
            gateway_url=(env.get("GATEWAY_URL") or "http://localhost:63362").rstrip("/"),
            gateway_status_path=env.get("GATEWAY_STATUS_PATH") or "/api/status",
            gateway_check_timeout=_env_float(env, "GATEWAY_CHECK_TIMEOUT", 1.0),
            chat_model=env.get("MC_CHAT_MODEL") or "openclaw:main",
            proc_root=env.get("MC_PROC_ROOT") or "/proc",
            cpu_sample_interval=_env_float(env, "MC_CPU_SAMPLE_INTERVAL", 0.1),
            journal_limit=_env_int(env, "MC_JOURNAL_LIMIT", 300),
            session_list_limit=_env_int(env, "MC_SESSION_LIST_LIMIT", 100),
            remote_stats_url=env.get("MC_REMOTE_STATS_URL") or None,
            remote_stats_key=env.get("MC_REMOTE_STATS_KEY", ""),
            host=env.get("MC_HOST") or "0.0.0.0",
            port=_env_int(env, "MC_PORT", 3335),
            log_level=_env_log_level(env, "MC_LOG_LEVEL", "INFO"),
        )

    @property
    def gateway_status_url(self) -> str:
        return f"{self.gateway_url}{self.gateway_status_path}"


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


def get_transport():
    """HTTP transport for outbound gateway calls; ``None`` means the default network stack."""
    return None
