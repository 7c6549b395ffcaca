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
"""Unit tests for stat parsing and the health monitor."""

import pytest

from hostdeploy.app.application.connection_manager import ConnectionManager
from hostdeploy.app.application.health_monitor import HealthMonitor, parse_stats
from hostdeploy.app.application.host_registry import HostRegistry
from hostdeploy.app.domain.models import CommandResult, HostStatus
from tests.unit.fakes import (
    FakeSessionFactory,
    MemoryHostRepository,
    RecordingPublisher,
    make_host,
)

GOOD_OUTPUT = {
    "Cpu(s)": "12.3456\n",
    "free -b": "1000 4000 25.0",
    "df -B1": "50 200 25.04",
    "/proc/uptime": "3600.7\n",
    "/proc/loadavg": "0.10 0.20 0.30\n",
}


def _result(stdout: str) -> CommandResult:
    return CommandResult(stdout=stdout, stderr="", exit_code=0)


class StatRunner:
    """Answers the stat battery; hosts in ``failing`` raise."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    async def execute(self, host_id, command, timeout=None):
        self.calls.append((host_id, timeout))
        if host_id in self.failing:
            raise RuntimeError("channel closed")
        for needle, stdout in GOOD_OUTPUT.items():
            if needle in command:
                return _result(stdout)
        return _result("")


def test_parse_stats_reads_every_metric():
    stats = parse_stats(
        {
            "cpu": "12.3456",
            "memory": "1000 4000 25.0",
            "disk": "50 200 25.0466",
            "uptime": "3600.7",
            "load_average": "0.10 0.20 0.30",
        }
    )

    assert stats.cpu == 12.35
    assert stats.memory.used == 1000 and stats.memory.total == 4000
    assert stats.disk.percentage == 25.05
    assert stats.uptime == 3601
    assert stats.load_average == [0.1, 0.2, 0.3]
    assert stats.unparsed == []


def test_parse_stats_defaults_unparsable_to_zero_and_reports_it():
    stats = parse_stats({"cpu": "n/a", "memory": "", "load_average": "0.1"})

    assert stats.cpu == 0
    assert stats.memory.percentage == 0
    assert stats.load_average == [0.0, 0.0, 0.0]
    assert stats.unparsed == ["cpu", "memory", "disk", "uptime", "load_average"]


async def _monitor(runner, *host_ids):
    publisher = RecordingPublisher()
    registry = HostRegistry(
        MemoryHostRepository([make_host(h) for h in host_ids]), publisher
    )
    registry.load()
    manager = ConnectionManager(registry, FakeSessionFactory(), publisher)
    for host_id in host_ids:
        await manager.connect(host_id)
    monitor = HealthMonitor(
        manager, runner, publisher, interval=3600, command_timeout=7
    )
    return monitor, manager, publisher


@pytest.mark.asyncio
async def test_check_host_stores_stats_and_emits():
    runner = StatRunner()
    monitor, manager, publisher = await _monitor(runner, "a")

    stats = await monitor.check_host("a")

    assert stats.cpu == 12.35
    host = manager.registry.get("a")
    assert host.stats == stats
    assert host.last_seen is not None
    stats_events = [e for e in publisher.events if e.type.value == "host-stats"]
    assert stats_events[-1].payload["host_id"] == "a"
    assert stats_events[-1].payload["stats"]["uptime"] == 3601
    assert {timeout for _, timeout in runner.calls} == {7}


@pytest.mark.asyncio
async def test_failing_host_is_demoted_and_skipped_next_tick():
    runner = StatRunner(failing={"bad"})
    monitor, manager, _ = await _monitor(runner, "good", "bad")

    await monitor.tick()

    assert manager.registry.get("bad").status == HostStatus.ERROR
    assert manager.get_session("bad") is None
    assert manager.registry.get("good").stats is not None

    runner.calls.clear()
    await monitor.tick()

    assert {host_id for host_id, _ in runner.calls} == {"good"}


@pytest.mark.asyncio
async def test_start_and_stop():
    monitor, _, _ = await _monitor(StatRunner(), "a")

    monitor.start()
    assert monitor.running
    await monitor.stop()
    assert not monitor.running
