# Copyright 2026 icecake0141
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# This file was created or modified with the assistance of an AI (Large Language Model).
# Review required for correctness, security, and licensing.
"""Runtime settings read from HOSTDEPLOY_* environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "HOSTDEPLOY_"


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default).strip() or default


def _float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must not be negative")
    return value


def _int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(
            f"{ENV_PREFIX}{name} must be an integer, got {raw!r}"
        ) from exc
    if value < 1:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive")
    return value


def _optional_timeout(name: str, default: float) -> Optional[float]:
    raw = _env(name, str(default)).lower()
    if raw in {"0", "none", "off"}:
        return None
    return _float(name, default)


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    hosts_file: str = "hosts.json"
    ready_timeout: float = 10.0
    keepalive_interval: float = 30.0
    health_interval: float = 30.0
    health_command_timeout: float = 15.0
    step_timeout: Optional[float] = 900.0
    known_hosts: Optional[str] = None
    token_env: str = "HOSTDEPLOY_GIT_TOKEN"
    event_buffer: int = 1000
    log_level: str = "INFO"
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @property
    def hosts_path(self) -> Path:
        return self.data_dir / self.hosts_file

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment; invalid values raise ValueError."""
        known_hosts = os.getenv(ENV_PREFIX + "KNOWN_HOSTS", "").strip()
        return cls(
            data_dir=Path(_env("DATA_DIR", "~/.hostdeploy")).expanduser(),
            hosts_file=_env("HOSTS_FILE", "hosts.json"),
            ready_timeout=_float("READY_TIMEOUT", 10.0),
            keepalive_interval=_float("KEEPALIVE_INTERVAL", 30.0),
            health_interval=_float("HEALTH_INTERVAL", 30.0),
            health_command_timeout=_float("HEALTH_COMMAND_TIMEOUT", 15.0),
            step_timeout=_optional_timeout("STEP_TIMEOUT", 900.0),
            known_hosts=str(Path(known_hosts).expanduser()) if known_hosts else None,
            token_env=_env("TOKEN_ENV", "HOSTDEPLOY_GIT_TOKEN"),
            event_buffer=_int("EVENT_BUFFER", 1000),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            api_host=_env("API_HOST", "127.0.0.1"),
            api_port=_int("API_PORT", 8000),
        )
