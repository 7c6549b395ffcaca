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
"""asyncssh-based session adapter for the connection manager."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import asyncssh

from hostdeploy.app.application.connection_manager import Session, SessionFactory
from hostdeploy.app.domain.errors import ConnectionFailedError
from hostdeploy.app.domain.models import AuthMaterial, CommandResult, SessionTarget

logger = logging.getLogger(__name__)

READY_TIMEOUT = 10.0
KEEPALIVE_INTERVAL = 30.0


class _CloseNotifier(asyncssh.SSHClient):
    """Reports connection loss back to the owner of the session."""

    def __init__(self, on_closed: Callable[[Optional[Exception]], None]):
        self._on_closed = on_closed

    def connection_lost(self, exc: Optional[Exception]) -> None:
        self._on_closed(exc)


class AsyncsshSession(Session):
    """One authenticated asyncssh connection."""

    def __init__(self, connection: asyncssh.SSHClientConnection):
        self.connection = connection

    async def run(self, command: str) -> CommandResult:
        completed = await self.connection.run(command, check=False, errors="replace")
        exit_code = completed.exit_status
        return CommandResult(
            stdout=_as_text(completed.stdout),
            stderr=_as_text(completed.stderr),
            exit_code=exit_code if exit_code is not None else -1,
        )

    def close(self) -> None:
        self.connection.close()

    async def wait_closed(self) -> None:
        await self.connection.wait_closed()


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class AsyncsshSessionFactory(SessionFactory):
    """Opens sessions with asyncssh.connect."""

    def __init__(
        self,
        ready_timeout: float = READY_TIMEOUT,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        known_hosts: Optional[str] = None,
    ):
        self.ready_timeout = ready_timeout
        self.keepalive_interval = keepalive_interval
        self.known_hosts = known_hosts

    def _connect_options(self, auth: AuthMaterial) -> dict:
        options: dict = {
            "known_hosts": self.known_hosts,
            "login_timeout": self.ready_timeout,
            "keepalive_interval": self.keepalive_interval,
            "agent_path": None,
        }
        if auth.private_key:
            try:
                key = asyncssh.import_private_key(auth.private_key, auth.passphrase)
            except (asyncssh.KeyImportError, ValueError) as exc:
                raise ConnectionFailedError(
                    f"Failed to load private key: {exc}"
                ) from exc
            options["client_keys"] = [key]
            options["password"] = None
        elif auth.password:
            options["client_keys"] = None
            options["password"] = auth.password
        else:
            raise ConnectionFailedError("No authentication method provided")
        return options

    async def open(
        self,
        target: SessionTarget,
        auth: AuthMaterial,
        on_closed: Callable[[Optional[Exception]], None],
    ) -> AsyncsshSession:
        options = self._connect_options(auth)
        logger.info("Opening session to %s", target.key)
        try:
            connection = await asyncio.wait_for(
                asyncssh.connect(
                    target.address,
                    port=target.port,
                    username=target.username,
                    client_factory=lambda: _CloseNotifier(on_closed),
                    **options,
                ),
                timeout=self.ready_timeout + 1,
            )
        except asyncssh.PermissionDenied as exc:
            raise ConnectionFailedError(f"Authentication failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise ConnectionFailedError(
                f"Connection timeout after {self.ready_timeout:g}s"
            ) from exc
        except (asyncssh.Error, OSError) as exc:
            raise ConnectionFailedError(f"Connection error: {exc}") from exc
        return AsyncsshSession(connection)
