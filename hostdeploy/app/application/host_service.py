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
"""Service object tying host management, execution and deployment together."""

from __future__ import annotations

import asyncio
import logging
import time
from uuid import uuid4

from hostdeploy.app.application.command_executor import CommandExecutor
from hostdeploy.app.application.connection_manager import (
    ConnectionManager,
    SessionFactory,
    resolve_auth,
    target_for,
)
from hostdeploy.app.application.deployment import (
    CredentialProvider,
    DeploymentOrchestrator,
)
from hostdeploy.app.application.events import EventPublisher
from hostdeploy.app.application.health_monitor import (
    DEFAULT_INTERVAL,
    HealthMonitor,
    collect_stats,
)
from hostdeploy.app.application.host_registry import HostRegistry, HostRepository
from hostdeploy.app.application.provisioning import ProvisioningService
from hostdeploy.app.domain.errors import ConnectionFailedError
from hostdeploy.app.domain.models import (
    CommandResult,
    ConnectionTestResult,
    ConnectResult,
    DeploymentRequest,
    DeploymentResult,
    GitHook,
    Host,
    HostCreate,
    HostStats,
    HostUpdate,
    PermissionConfig,
    ProvisionResult,
    SuggestedDeployPath,
)

logger = logging.getLogger(__name__)

SYSLOG_PATH = "/var/log/syslog"
MAX_LOG_LINES = 5000


class HostService:
    """
    Single entry point for hosts, sessions, deployments and provisioning.

    Constructed once by the process entry point and passed to consumers.
    """

    def __init__(
        self,
        repository: HostRepository,
        session_factory: SessionFactory,
        publisher: EventPublisher | None = None,
        credentials: CredentialProvider | None = None,
        health_interval: float = DEFAULT_INTERVAL,
        health_command_timeout: float | None = None,
        step_timeout: float | None = None,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.registry = HostRegistry(repository, publisher)
        self.connections = ConnectionManager(self.registry, session_factory, publisher)
        self.executor = CommandExecutor(self.connections)
        self.monitor = HealthMonitor(
            self.connections,
            self.executor,
            publisher,
            interval=health_interval,
            command_timeout=health_command_timeout,
        )
        self.deployments = DeploymentOrchestrator(
            self.registry,
            self.connections,
            self.executor,
            credentials=credentials,
            publisher=publisher,
            step_timeout=step_timeout,
        )
        self.provisioning = ProvisioningService(self.connections, self.executor)
        self.health_command_timeout = health_command_timeout

    async def start(self) -> None:
        """Load stored hosts and start the health monitor."""
        await asyncio.to_thread(self.registry.load)
        self.monitor.start()

    async def shutdown(self) -> None:
        """Stop the monitor, close every live session and flush host storage."""
        await self.monitor.stop()
        await self.connections.close_all()
        await self.registry.flush()
        logger.info("Host service stopped")

    def list_hosts(self) -> list[Host]:
        return self.registry.list()

    def get_host(self, host_id: str) -> Host:
        return self.registry.get(host_id)

    def add_host(self, data: HostCreate) -> Host:
        return self.registry.add(data)

    def update_host(self, host_id: str, changes: HostUpdate) -> Host:
        return self.registry.update(host_id, changes)

    async def delete_host(self, host_id: str) -> None:
        """Disconnect, then remove the host record."""
        self.registry.get(host_id)
        await self.connections.forget(host_id)
        self.registry.delete(host_id)

    async def connect(self, host_id: str) -> ConnectResult:
        return await self.connections.connect(host_id)

    async def disconnect(self, host_id: str) -> None:
        await self.connections.disconnect(host_id)

    async def execute(
        self, host_id: str, command: str, timeout: float | None = None
    ) -> CommandResult:
        return await self.executor.execute(host_id, command, timeout)

    async def test_connection(self, draft: HostCreate) -> ConnectionTestResult:
        """Open and close a throw-away session for an unregistered host."""
        host = Host(host_id=f"test-{uuid4()}", **draft.model_dump())
        started = time.monotonic()
        try:
            auth = await resolve_auth(host)
            session = await self.session_factory.open(
                target_for(host), auth, lambda exc: None
            )
        except (ConnectionFailedError, OSError, asyncio.TimeoutError) as exc:
            logger.info("Connection test to %s failed: %s", host.target, exc)
            return ConnectionTestResult(
                success=False, error=str(exc) or "Connection timed out"
            )
        latency_ms = int((time.monotonic() - started) * 1000)
        session.close()
        await session.wait_closed()
        return ConnectionTestResult(success=True, latency_ms=latency_ms)

    async def get_host_stats(self, host_id: str) -> HostStats:
        """Run the stat battery once; failures propagate and leave status alone."""
        self.registry.get(host_id)
        return await collect_stats(self.executor, host_id, self.health_command_timeout)

    async def get_host_logs(self, host_id: str, lines: int = 100) -> list[str]:
        """Return the last ``lines`` lines of the host's syslog."""
        if lines < 1 or lines > MAX_LOG_LINES:
            raise ValueError(f"lines must be between 1 and {MAX_LOG_LINES}")
        self.registry.get(host_id)
        result = await self.executor.execute(
            host_id, f"tail -n {int(lines)} {SYSLOG_PATH}"
        )
        if result.exit_code != 0:
            raise RuntimeError(f"Failed to get logs: {result.stderr.strip()}")
        return result.stdout.splitlines()

    async def deploy(self, request: DeploymentRequest) -> DeploymentResult:
        return await self.deployments.deploy(request)

    async def upload_public_key(
        self, host_id: str, public_key: str
    ) -> ProvisionResult:
        return await self.provisioning.upload_public_key(host_id, public_key)

    async def detect_deploy_paths(self, host_id: str) -> list[SuggestedDeployPath]:
        return await self.provisioning.detect_deploy_paths(host_id)

    async def setup_permissions(
        self, host_id: str, target_path: str, config: PermissionConfig
    ) -> ProvisionResult:
        return await self.provisioning.setup_permissions(host_id, target_path, config)

    async def install_git_hooks(
        self, host_id: str, repo_path: str, hooks: list[GitHook]
    ) -> ProvisionResult:
        return await self.provisioning.install_git_hooks(host_id, repo_path, hooks)
