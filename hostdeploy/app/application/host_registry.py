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
"""Host registry with save-on-mutate persistence."""

from __future__ import annotations

import asyncio
import logging
from threading import Lock
from typing import Any, Optional, Protocol
from uuid import uuid4

from hostdeploy.app.application.events import EventPublisher, EventType, emit
from hostdeploy.app.domain.errors import HostNotFoundError
from hostdeploy.app.domain.models import Host, HostCreate, HostStatus, HostUpdate

logger = logging.getLogger(__name__)

# Fields a partial update may not clear
REQUIRED_FIELDS = frozenset({"name", "address", "port", "username", "tags"})

Snapshot = tuple[int, list[Host]]


class HostRepository(Protocol):
    """Durable storage for host records."""

    def load(self) -> list[Host]:
        """Return all stored hosts (empty if nothing stored yet)."""

    def save(self, hosts: list[Host]) -> None:
        """Replace stored hosts."""


class HostRegistry:
    """
    Owns the canonical host records keyed by host id.

    Mutations called from the event loop hand a snapshot to a background
    writer that saves in a worker thread; outside a running loop the snapshot
    is saved inline. Saves are versioned so an older snapshot never
    overwrites a newer one.
    """

    def __init__(
        self, repository: HostRepository, publisher: EventPublisher | None = None
    ):
        self.repository = repository
        self.publisher = publisher
        self._lock = Lock()
        self._hosts: dict[str, Host] = {}
        self._version = 0
        self._save_lock = Lock()
        self._saved_version = 0
        self._pending: Optional[Snapshot] = None
        self._writer: Optional[asyncio.Task] = None

    def load(self) -> int:
        """Load hosts from storage; sessions never survive a restart."""
        hosts = self.repository.load()
        with self._lock:
            self._hosts = {}
            for host in hosts:
                host.status = HostStatus.DISCONNECTED
                self._hosts[host.host_id] = host
            count = len(self._hosts)
        logger.info("Loaded %s host(s)", count)
        return count

    def _persist_locked(self) -> None:
        self._version += 1
        snapshot = (
            self._version,
            [h.model_copy(deep=True) for h in self._hosts.values()],
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write(snapshot)
            return
        self._pending = snapshot
        if self._writer is None or self._writer.done():
            self._writer = loop.create_task(self._drain())

    def _write(self, snapshot: Snapshot) -> None:
        version, hosts = snapshot
        with self._save_lock:
            if version <= self._saved_version:
                return
            self.repository.save(hosts)
            self._saved_version = version

    async def _drain(self) -> None:
        while True:
            with self._lock:
                snapshot, self._pending = self._pending, None
                if snapshot is None:
                    self._writer = None
                    return
            try:
                await asyncio.to_thread(self._write, snapshot)
            except Exception:
                logger.exception("Failed to persist hosts")

    async def flush(self) -> None:
        """Wait until every scheduled save has been written."""
        while self._writer is not None and not self._writer.done():
            await asyncio.shield(self._writer)

    def list(self) -> list[Host]:
        with self._lock:
            return list(self._hosts.values())

    def find(self, host_id: str) -> Host | None:
        with self._lock:
            return self._hosts.get(host_id)

    def get(self, host_id: str) -> Host:
        """Fetch a host or raise HostNotFoundError."""
        host = self.find(host_id)
        if host is None:
            raise HostNotFoundError(host_id)
        return host

    def list_by_status(self, status: HostStatus) -> list[Host]:
        with self._lock:
            return [h for h in self._hosts.values() if h.status == status]

    def add(self, data: HostCreate) -> Host:
        """Register a new host in the disconnected state."""
        host = Host(
            host_id=str(uuid4()),
            status=HostStatus.DISCONNECTED,
            **data.model_dump(),
        )
        with self._lock:
            self._hosts[host.host_id] = host
            self._persist_locked()
        logger.info("Registered host %s (%s)", host.name, host.host_id)
        emit(self.publisher, EventType.HOST_ADDED, host.host_id, host.public_view())
        return host

    def update(self, host_id: str, changes: HostUpdate) -> Host:
        """
        Apply descriptive/connection field changes.

        An explicit null for a required field leaves it unchanged. The merged
        record is re-validated before it replaces the stored one, so a bad
        update raises ValidationError and never reaches storage.
        """
        updates = {
            key: value
            for key, value in changes.model_dump(exclude_unset=True).items()
            if value is not None or key not in REQUIRED_FIELDS
        }
        if "credential" in updates:
            # keep the typed union instance rather than its dict dump
            updates["credential"] = changes.credential
        with self._lock:
            current = self._hosts.get(host_id)
            if current is None:
                raise HostNotFoundError(host_id)
            host = Host.model_validate({**current.model_dump(), **updates})
            self._hosts[host_id] = host
            self._persist_locked()
        emit(self.publisher, EventType.HOST_UPDATED, host_id, host.public_view())
        return host

    def delete(self, host_id: str) -> None:
        """Remove a host record. Callers disconnect it first."""
        with self._lock:
            if host_id not in self._hosts:
                raise HostNotFoundError(host_id)
            del self._hosts[host_id]
            self._persist_locked()
        logger.info("Deleted host %s", host_id)
        emit(self.publisher, EventType.HOST_DELETED, host_id, {"host_id": host_id})

    def apply_runtime_state(self, host_id: str, **fields: Any) -> Host:
        """Mutate runtime fields (status, timestamps, stats) and persist."""
        with self._lock:
            host = self._hosts.get(host_id)
            if host is None:
                raise HostNotFoundError(host_id)
            for key, value in fields.items():
                setattr(host, key, value)
            self._persist_locked()
            return host
