"""
Backend connection settings.

The backend API base URL is built from three parts, any of which may be
empty: ``{base_url}/{api_prefix}/{api_version}``, e.g.
``http://localhost:8000/api/v1``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

ENV_BACKEND_URL = "KYC_BACKEND_URL"
ENV_API_VERSION = "KYC_BACKEND_API_VERSION"
ENV_TIMEOUT = "KYC_BACKEND_TIMEOUT"


@dataclass(frozen=True)
class BackendSettings:
    base_url: str = "http://localhost:8000"
    api_prefix: str = "api"
    api_version: str = "v1"
    timeout_seconds: float = 15.0
    access_cookie: str = "access_token"
    expires_cookie: str = "token_expires_at"

    @property
    def api_base_url(self) -> str:
        parts = [self.base_url.rstrip("/")]
        for part in (self.api_prefix, self.api_version):
            if part:
                parts.append(part.strip("/"))
        return "/".join(parts)

    def build_url(self, endpoint: str) -> str:
        return f"{self.api_base_url}/{endpoint.lstrip('/')}"


def get_backend_settings(environ: Mapping[str, str] | None = None) -> BackendSettings:
    """Read backend settings from the environment.

    Raises:
        ValueError: if ``KYC_BACKEND_TIMEOUT`` is not a positive number.
    """
    env = os.environ if environ is None else environ
    defaults = BackendSettings()

    timeout = defaults.timeout_seconds
    raw_timeout = env.get(ENV_TIMEOUT)
    if raw_timeout:
        timeout = float(raw_timeout)
        if timeout <= 0:
            raise ValueError(f"{ENV_TIMEOUT} must be positive, got {raw_timeout!r}")

    return BackendSettings(
        base_url=env.get(ENV_BACKEND_URL) or defaults.base_url,
        api_version=env.get(ENV_API_VERSION, defaults.api_version),
        timeout_seconds=timeout,
    )
