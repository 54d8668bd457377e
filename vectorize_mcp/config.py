"""Environment-variable-driven configuration for the MCP adapter.

Upstream credentials are read once at startup by :func:`load_credentials`;
everything else is a module-level constant.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from vectorize_mcp.endpoint import resolve_endpoint
from vectorize_mcp.errors import ConfigurationError


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


# -- Upstream -----------------------------------------------------------------
ENDPOINT_VAR = "VECTORIZE_SECRETS_ENDPOINT"
ORG_ID_VAR = "VECTORIZE_ORG_ID"
PIPELINE_ID_VAR = "VECTORIZE_PIPELINE_ID"
TOKEN_VAR = "VECTORIZE_TOKEN"

CREDENTIAL_VARS: tuple[str, ...] = (ENDPOINT_VAR, ORG_ID_VAR, PIPELINE_ID_VAR, TOKEN_VAR)
# The endpoint template may be empty: the resolver synthesizes the public URL.
REQUIRED_CREDENTIAL_VARS: tuple[str, ...] = (ORG_ID_VAR, PIPELINE_ID_VAR, TOKEN_VAR)

VECTORIZE_TIMEOUT_SECONDS: float = _env_float("VECTORIZE_TIMEOUT_SECONDS", 30.0)
DEFAULT_NUM_RESULTS: int = 5

# -- Server identity ----------------------------------------------------------
MCP_SERVER_NAME: str = os.getenv("MCP_SERVER_NAME", "Gitpod Knowledge Base")
MCP_SERVER_VERSION: str = os.getenv("MCP_SERVER_VERSION", "1.0.0")
MCP_PROTOCOL_VERSION: str = "2024-11-05"

# -- Server -------------------------------------------------------------------
MCP_PORT: int = _env_int("MCP_PORT", 8000)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
MCP_RATE_LIMIT: str = os.getenv("MCP_RATE_LIMIT", "120/minute")
MCP_MAX_BODY_BYTES: int = _env_int("MCP_MAX_BODY_BYTES", 1024 * 1024)


@dataclass(frozen=True)
class UpstreamCredentials:
    """Credentials for the upstream retrieval pipeline. Never mutated."""

    endpoint_template: str
    org_id: str
    pipeline_id: str
    token: str

    @property
    def endpoint(self) -> str:
        return resolve_endpoint(self.endpoint_template, self.org_id, self.pipeline_id)

    def __repr__(self) -> str:
        return (
            f"UpstreamCredentials(endpoint={self.endpoint!r}, org_id={self.org_id!r}, "
            f"pipeline_id={self.pipeline_id!r}, token=***)"
        )


def load_credentials(environ: Mapping[str, str] | None = None) -> UpstreamCredentials:
    """Read the upstream credentials from the environment.

    Raises:
        ConfigurationError: If any required variable is unset or blank. The
            error lists the missing names but never their values.
    """
    env = os.environ if environ is None else environ
    values = {name: (env.get(name) or "").strip() for name in CREDENTIAL_VARS}
    missing = [name for name in REQUIRED_CREDENTIAL_VARS if not values[name]]
    if missing:
        raise ConfigurationError(missing)

    return UpstreamCredentials(
        endpoint_template=values[ENDPOINT_VAR],
        org_id=values[ORG_ID_VAR],
        pipeline_id=values[PIPELINE_ID_VAR],
        token=values[TOKEN_VAR],
    )


def config_status(environ: Mapping[str, str] | None = None) -> dict[str, bool]:
    """Report which credential variables are set, without their values."""
    env = os.environ if environ is None else environ
    return {name: bool((env.get(name) or "").strip()) for name in CREDENTIAL_VARS}
