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
"""Periodic resource polling for connected hosts."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from hostdeploy.app.application.command_executor import CommandRunner
from hostdeploy.app.application.connection_manager import ConnectionManager
from hostdeploy.app.application.events import EventPublisher, EventType, emit, utc_now
from hostdeploy.app.domain.models import HostStats, HostStatus, ResourceUsage

logger = logging.getLogger(__name__)

# Read-only stat battery, one command per metric
STAT_COMMANDS = {
    "cpu": "top -bn1 | grep 'Cpu(s)' | awk '{print 100 - $8}'",
    "memory": (
        "free -b | grep '^Mem:' | "
        "awk '{printf \"%d %d %.1f\", $3, $2, ($3/$2)*100}'"
    ),
    "disk": (
        "df -B1 / | tail -1 | "
        "awk '{printf \"%d %d %.1f\", $3, $2, ($3/$2)*100}'"
    ),
    "uptime": "cat /proc/uptime | awk '{print $1}'",
    "load_average": "cat /proc/loadavg | awk '{print $1, $2, $3}'",
}

DEFAULT_INTERVAL = 30.0


def _parse_float(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def _parse_usage(text: str) -> Optional[ResourceUsage]:
    parts = [_parse_float(p) for p in text.split()]
    if len(parts) < 3 or any(p is None for p in parts[:3]):
        return None
    used, total, percentage = parts[0], parts[1], parts[2]
    return ResourceUsage(used=used, total=total, percentage=round(percentage, 2))


def parse_stats(outputs: dict[str, str]) -> HostStats:
    """
    Build HostStats from raw battery output.

    Unparsable metrics are reported as 0 and listed in ``unparsed``.
    """
    unparsed: list[str] = []

    cpu = _parse_float(outputs.get("cpu", "").strip())
    if cpu is None:
        unparsed.append("cpu")

    memory = _parse_usage(outputs.get("memory", "").strip())
    if memory is None:
        unparsed.append("memory")

    disk = _parse_usage(outputs.get("disk", "").strip())
    if disk is None:
        unparsed.append("disk")

    uptime = _parse_float(outputs.get("uptime", "").strip())
    if uptime is None:
        unparsed.append("uptime")

    load_parts = [_parse_float(p) for p in outputs.get("load_average", "").split()]
    load_average = [p for p in load_parts[:3] if p is not None]
    if len(load_average) < 3:
        unparsed.append("load_average")
        load_average = [0.0, 0.0, 0.0]

    return HostStats(
        cpu=round(cpu or 0.0, 2),
        memory=memory or ResourceUsage(),
        disk=disk or ResourceUsage(),
        uptime=round(uptime or 0.0),
        load_average=load_average,
        unparsed=unparsed,
    )


async def collect_stats(
    runner: CommandRunner, host_id: str, timeout: float | None = None
) -> HostStats:
    """Run the stat battery in parallel; any command exception propagates."""
    names = list(STAT_COMMANDS)
    results = await asyncio.gather(
        *(runner.execute(host_id, STAT_COMMANDS[name], timeout) for name in names)
    )
    return parse_stats({name: r.stdout for name, r in zip(names, results)})


class HealthMonitor:
    """Repeating timer that refreshes metrics for every connected host."""

    def __init__(
        self,
        connections: ConnectionManager,
        runner: CommandRunner,
        publisher: EventPublisher | None = None,
        interval: float = DEFAULT_INTERVAL,
        command_timeout: float | None = None,
    ):
        self.connections = connections
        self.runner = runner
        self.publisher = publisher
        self.interval = interval
        self.command_timeout = command_timeout
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="hostdeploy-health")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Health check tick failed")

    async def tick(self) -> None:
        """Check every host currently connected."""
        hosts = self.connections.registry.list_by_status(HostStatus.CONNECTED)
        await asyncio.gather(*(self.check_host(h.host_id) for h in hosts))

    async def check_host(self, host_id: str) -> HostStats | None:
        """Refresh one host; failures demote it to error instead of raising."""
        try:
            stats = await collect_stats(self.runner, host_id, self.command_timeout)
        except Exception as exc:
            logger.error("Health check failed for host %s: %s", host_id, exc)
            self.connections.mark_error(host_id, f"Health check failed: {exc}")
            return None

        if self.connections.registry.find(host_id) is None:
            return None
        self.connections.registry.apply_runtime_state(
            host_id, stats=stats, last_seen=utc_now()
        )
        emit(
            self.publisher,
            EventType.HOST_STATS,
            host_id,
            {"host_id": host_id, "stats": stats.model_dump(mode="json")},
        )
        return stats
