"""
Configuration management for gridmock

Settings come from the process environment, optionally primed from a
.env file. Two instances (e2e on 3001, unit tests on 3002) are configured
independently through PORT.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_PORT = 3001
DEFAULT_HEALTH_PATH = "/api/leagues-management/constraints"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


class ServerConfig(BaseModel):
    """Configuration model for one mock server instance"""

    host: str = Field(
        default="127.0.0.1",
        description="Interface to bind (loopback only unless overridden)",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=0,
        le=65535,
        description="Port to bind; 0 picks an ephemeral port",
    )
    reuse_existing: bool = Field(
        default=True,
        description="Treat an already-healthy server on the port as ready",
    )
    drain_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds in-flight requests get before force-close",
    )
    ready_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the health path to answer",
    )
    health_path: str = Field(
        default=DEFAULT_HEALTH_PATH,
        description="Fixture path used for the readiness check",
    )
    seed_path: Optional[Path] = Field(
        default=None,
        description="Optional JSON file overriding the built-in seed data",
    )
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING)"
    )
    log_file: Optional[str] = Field(
        default=None, description="Optional log file in addition to console"
    )

    @property
    def base_url(self) -> str:
        host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0") else self.host
        return f"http://{host}:{self.port}"


def _parse_bool(raw: str, name: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_config(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
    **overrides,
) -> ServerConfig:
    """
    Build a ServerConfig from environment variables.

    Priority: explicit overrides > environment > .env file > defaults.

    Args:
        env: Mapping to read instead of os.environ (for testing)
        dotenv_path: .env file to load into os.environ first (default ./.env)
        **overrides: Field values that win over the environment
    """
    if env is None:
        load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env")
        env = os.environ

    values: dict = {}
    if env.get("PORT"):
        values["port"] = int(env["PORT"])
    if env.get("HOST"):
        values["host"] = env["HOST"]
    if "REUSE_EXISTING_SERVER" in env:
        values["reuse_existing"] = _parse_bool(
            env["REUSE_EXISTING_SERVER"], "REUSE_EXISTING_SERVER"
        )
    else:
        # Mirrors the runners' `reuseExistingServer: !process.env.CI`
        values["reuse_existing"] = not env.get("CI")
    if env.get("DRAIN_TIMEOUT"):
        values["drain_timeout"] = float(env["DRAIN_TIMEOUT"])
    if env.get("READY_TIMEOUT"):
        values["ready_timeout"] = float(env["READY_TIMEOUT"])
    if env.get("HEALTH_PATH"):
        values["health_path"] = env["HEALTH_PATH"]
    if env.get("SEED_PATH"):
        values["seed_path"] = Path(env["SEED_PATH"])
    if env.get("LOG_LEVEL"):
        values["log_level"] = env["LOG_LEVEL"]
    if env.get("LOG_FILE"):
        values["log_file"] = env["LOG_FILE"]

    values.update({k: v for k, v in overrides.items() if v is not None})
    return ServerConfig(**values)
