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
"""Single-command execution against connected hosts."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from hostdeploy.app.application.connection_manager import ConnectionManager
from hostdeploy.app.domain.errors import CommandTimeoutError, HostNotConnectedError
from hostdeploy.app.domain.models import CommandResult, HostStatus

logger = logging.getLogger(__name__)


class CommandRunner(Protocol):
    """The only seam higher-level operations use to touch a remote host."""

    async def execute(
        self, host_id: str, command: str, timeout: float | None = None
    ) -> CommandResult:
        """Run one command on a connected host."""


class CommandExecutor(CommandRunner):
    """Runs commands over the session owned by the connection manager."""

    def __init__(self, connections: ConnectionManager):
        self.connections = connections

    async def execute(
        self, host_id: str, command: str, timeout: float | None = None
    ) -> CommandResult:
        """
        Execute a command and collect its output.

        Args:
            host_id: Registered host id; must already be connected
            command: Shell command line
            timeout: Optional bound in seconds; no bound when None

        Returns:
            CommandResult with stdout, stderr and exit code

        Raises:
            HostNotConnectedError: If the host has no live session
            CommandTimeoutError: If timeout elapsed
        """
        host = self.connections.registry.find(host_id)
        session = self.connections.get_session(host_id)
        if host is None or session is None or host.status != HostStatus.CONNECTED:
            raise HostNotConnectedError(host_id)

        if timeout is None:
            return await session.run(command)
        try:
            return await asyncio.wait_for(session.run(command), timeout=timeout)
        except asyncio.TimeoutError as exc:
            label = command.splitlines()[0] if command else ""
            logger.warning("Command on host %s timed out after %ss", host_id, timeout)
            raise CommandTimeoutError(label[:80], timeout) from exc
