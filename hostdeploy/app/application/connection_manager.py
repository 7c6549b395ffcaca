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
"""Per-host secure-shell session lifecycle."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Protocol

from hostdeploy.app.application.events import EventPublisher, EventType, emit, utc_now
from hostdeploy.app.application.host_registry import HostRegistry
from hostdeploy.app.domain.errors import ConnectionFailedError
from hostdeploy.app.domain.models import (
    AuthMaterial,
    CommandResult,
    ConnectResult,
    Host,
    HostEvent,
    HostStatus,
    InlineKeyCredential,
    KeyFileCredential,
    PasswordCredential,
    SessionTarget,
)
from hostdeploy.app.domain.state_machine import HostStateMachine

logger = logging.getLogger(__name__)


class Session(Protocol):
    """Live authenticated session to one host."""

    async def run(self, command: str) -> CommandResult:
        """Run one command and wait for its channel to close."""

    def close(self) -> None:
        """Start closing the session."""

    async def wait_closed(self) -> None:
        """Wait until the session is fully closed."""


class SessionFactory(Protocol):
    """Opens sessions (asyncssh adapter implements this)."""

    async def open(
        self,
        target: SessionTarget,
        auth: AuthMaterial,
        on_closed: Callable[[Optional[Exception]], None],
    ) -> Session:
        """Open a session or raise ConnectionFailedError."""


async def resolve_auth(host: Host) -> AuthMaterial:
    """
    Turn a host credential into authentication input.

    Precedence follows the credential variant: key file (read now, failing
    fast if unreadable), inline key, password. A host without a credential
    fails before any network I/O.
    """
    credential = host.credential
    if isinstance(credential, KeyFileCredential):
        key_path = Path(credential.path).expanduser()
        try:
            private_key = await asyncio.to_thread(key_path.read_text, "utf-8")
        except OSError as exc:
            raise ConnectionFailedError(
                f"Failed to read private key: {exc}"
            ) from exc
        return AuthMaterial(private_key=private_key, passphrase=credential.passphrase)
    if isinstance(credential, InlineKeyCredential):
        return AuthMaterial(
            private_key=credential.private_key, passphrase=credential.passphrase
        )
    if isinstance(credential, PasswordCredential):
        return AuthMaterial(password=credential.password)
    raise ConnectionFailedError("No authentication method provided")


def target_for(host: Host) -> SessionTarget:
    return SessionTarget(address=host.address, port=host.port, username=host.username)


class ConnectionManager:
    """Owns one live session per host id and drives the host state machine."""

    def __init__(
        self,
        registry: HostRegistry,
        session_factory: SessionFactory,
        publisher: EventPublisher | None = None,
        state_machine: HostStateMachine | None = None,
    ):
        self.registry = registry
        self.session_factory = session_factory
        self.publisher = publisher
        self.state_machine = state_machine or HostStateMachine()
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, host_id: str) -> asyncio.Lock:
        lock = self._locks.get(host_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[host_id] = lock
        return lock

    def get_session(self, host_id: str) -> Session | None:
        return self._sessions.get(host_id)

    def is_connected(self, host_id: str) -> bool:
        host = self.registry.find(host_id)
        return (
            host is not None
            and host.status == HostStatus.CONNECTED
            and host_id in self._sessions
        )

    def _apply(self, host_id: str, event: HostEvent, **fields) -> Host:
        host = self.registry.get(host_id)
        transition = self.state_machine.transition(host.status, event)
        host = self.registry.apply_runtime_state(
            host_id, status=transition.next_status, **fields
        )
        if transition.current == transition.next_status:
            return host
        logger.info(
            "Host %s: %s -> %s",
            host_id,
            transition.current.value,
            transition.next_status.value,
        )
        emit(
            self.publisher,
            EventType.HOST_STATUS_CHANGED,
            host_id,
            {"host_id": host_id, "status": transition.next_status.value},
        )
        return host

    def _drop_session(self, host_id: str) -> None:
        session = self._sessions.pop(host_id, None)
        if session is not None:
            session.close()

    def _on_session_closed(
        self, host_id: str, session_ref: list[Session], exc: Optional[Exception]
    ) -> None:
        # Only the session currently registered for the host may demote it.
        if not session_ref or self._sessions.get(host_id) is not session_ref[0]:
            return
        self._sessions.pop(host_id, None)
        host = self.registry.find(host_id)
        if host is None or host.status != HostStatus.CONNECTED:
            return
        if exc is not None:
            logger.warning("Session to host %s lost: %s", host_id, exc)
        self._apply(host_id, HostEvent.CLOSE)

    async def connect(self, host_id: str) -> ConnectResult:
        """
        Open a session for a registered host.

        Returns:
            ConnectResult; failures set the host status to error

        Raises:
            HostNotFoundError: If the host is not registered
        """
        self.registry.get(host_id)
        async with self._lock_for(host_id):
            host = self.registry.get(host_id)
            if host.status == HostStatus.CONNECTED and host_id in self._sessions:
                return ConnectResult(success=True)
            if host.status in (HostStatus.CONNECTED, HostStatus.CONNECTING):
                # stale status without a live session; restart from scratch
                self._apply(host_id, HostEvent.DISCONNECT)
            self._drop_session(host_id)

            host = self._apply(host_id, HostEvent.CONNECT)
            session_ref: list[Session] = []
            try:
                auth = await resolve_auth(host)
                session = await self.session_factory.open(
                    target_for(host),
                    auth,
                    lambda exc: self._on_session_closed(host_id, session_ref, exc),
                )
            except (ConnectionFailedError, OSError, asyncio.TimeoutError) as exc:
                logger.warning("Connection to host %s failed: %s", host_id, exc)
                self._apply(host_id, HostEvent.FAIL)
                return ConnectResult(
                    success=False, error=str(exc) or "Connection timed out"
                )

            session_ref.append(session)
            self._sessions[host_id] = session
            self._apply(host_id, HostEvent.READY, last_connected=utc_now())
            return ConnectResult(success=True)

    async def ensure_connected(self, host_id: str) -> None:
        """No-op if connected, otherwise connect or raise ConnectionFailedError."""
        if self.is_connected(host_id):
            return
        result = await self.connect(host_id)
        if not result.success:
            raise ConnectionFailedError(result.error or "Connection failed")

    async def disconnect(self, host_id: str) -> None:
        """Close any session and force the host to disconnected."""
        async with self._lock_for(host_id):
            session = self._sessions.pop(host_id, None)
            if session is not None:
                session.close()
            if self.registry.find(host_id) is not None:
                self._apply(host_id, HostEvent.DISCONNECT)
            if session is not None:
                await session.wait_closed()

    def mark_error(self, host_id: str, reason: str) -> None:
        """Demote a connected host to error and discard its session."""
        host = self.registry.find(host_id)
        if host is None or host.status != HostStatus.CONNECTED:
            return
        logger.error("Host %s marked as error: %s", host_id, reason)
        self._apply(host_id, HostEvent.FAIL)
        self._drop_session(host_id)

    async def forget(self, host_id: str) -> None:
        """Disconnect a host that is being deleted and drop its per-host lock."""
        await self.disconnect(host_id)
        self._locks.pop(host_id, None)

    async def close_all(self) -> None:
        """Close every live session (process shutdown)."""
        for host_id in list(self._sessions):
            await self.disconnect(host_id)
