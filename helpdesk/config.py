"""Centralized configuration for the helpdesk agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/helpdesk/<VARIABLE_NAME>``.

Settings are read once per process by ``Settings.from_env()``.  The CLI
calls it in ``main()``; the server builds one ``settings`` object when
``helpdesk.server`` is imported and uses it for the CORS middleware, the
lifespan (``build_context``) and ``run()``.  No other module reads the
environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

SSM_PREFIX = "/helpdesk"


# ── Secret resolution ────────────────────────────────────────────────

def _on_aws() -> bool:
    return bool(os.getenv("AWS_EXECUTION_ENV"))


def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415  lazy: only needed on AWS

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _on_aws():
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {SSM_PREFIX}/{name} (AWS)."
    )


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# ── Settings ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, passed explicitly to whoever needs it."""

    anthropic_api_key: str
    # LLM
    model_name: str = "claude-haiku-4-5"
    analysis_model_name: str = "claude-haiku-4-5"
    temperature: float = 0.7
    max_tokens: int = 1024
    analysis_max_tokens: int = 500
    # Agent loop / retry
    max_agent_iterations: int = 10
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    turn_timeout_seconds: float | None = None
    # Persistence
    database_path: str = "conversations.db"
    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    cors_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
    )
    # Observability
    metrics_enabled: bool = False

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from the environment (after loading ``.env``)."""
        load_dotenv()
        return cls(
            anthropic_api_key=_require_env("ANTHROPIC_API_KEY"),
            model_name=os.getenv("MODEL_NAME", "claude-haiku-4-5"),
            analysis_model_name=os.getenv("ANALYSIS_MODEL_NAME", "claude-haiku-4-5"),
            temperature=float(os.getenv("MODEL_TEMPERATURE", "0.7")),
            max_tokens=_env_int("MODEL_MAX_TOKENS", 1024),
            analysis_max_tokens=_env_int("ANALYSIS_MAX_TOKENS", 500),
            max_agent_iterations=_env_int("MAX_AGENT_ITERATIONS", 10),
            retry_max_attempts=_env_int("RETRY_MAX_ATTEMPTS", 3),
            retry_base_delay_ms=_env_int("RETRY_BASE_DELAY_MS", 1000),
            turn_timeout_seconds=_env_float("TURN_TIMEOUT_SECONDS", None),
            database_path=os.getenv("DATABASE_PATH", "conversations.db"),
            server_host=os.getenv("SERVER_HOST", "0.0.0.0"),
            server_port=_env_int("SERVER_PORT", 8000),
            cors_origins=_env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"),
            metrics_enabled=_env_bool("METRICS_ENABLED"),
        )
