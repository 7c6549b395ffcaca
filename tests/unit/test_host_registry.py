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
"""Unit tests for the host registry and its JSON file repository."""

import asyncio
import json
import threading

import pytest

from hostdeploy.app.application.host_registry import HostRegistry
from hostdeploy.app.domain.errors import HostNotFoundError
from hostdeploy.app.domain.models import (
    HostStatus,
    HostUpdate,
    KeyFileCredential,
    PasswordCredential,
)
from hostdeploy.app.infrastructure.json_host_repository import JsonHostRepository
from tests.unit.fakes import (
    MemoryHostRepository,
    RecordingPublisher,
    make_draft,
    make_host,
)


def test_add_persists_and_emits_without_secrets():
    repo = MemoryHostRepository()
    publisher = RecordingPublisher()
    registry = HostRegistry(repo, publisher)

    host = registry.add(make_draft())

    assert host.status == HostStatus.DISCONNECTED
    assert isinstance(host.credential, PasswordCredential)
    assert repo.saves == 1
    assert [h.host_id for h in repo.hosts] == [host.host_id]
    assert publisher.types() == ["host-added"]
    payload = publisher.events[0].payload
    assert payload["auth_method"] == "password"
    assert "s3cret" not in json.dumps(payload)


def test_load_resets_status_to_disconnected():
    repo = MemoryHostRepository(
        [
            make_host("a", status=HostStatus.CONNECTED),
            make_host("b", status=HostStatus.ERROR),
        ]
    )
    registry = HostRegistry(repo)

    assert registry.load() == 2
    assert {h.status for h in registry.list()} == {HostStatus.DISCONNECTED}


def test_update_changes_only_given_fields():
    repo = MemoryHostRepository([make_host("a")])
    publisher = RecordingPublisher()
    registry = HostRegistry(repo, publisher)
    registry.load()

    host = registry.update(
        "a",
        HostUpdate(
            name="renamed",
            credential=KeyFileCredential(path="~/.ssh/id_ed25519"),
        ),
    )

    assert host.name == "renamed"
    assert host.address == "192.0.2.10"
    assert isinstance(host.credential, KeyFileCredential)
    assert publisher.types() == ["host-updated"]
    assert repo.hosts[0].name == "renamed"


def test_delete_and_missing_host_errors():
    registry = HostRegistry(MemoryHostRepository([make_host("a")]))
    registry.load()

    registry.delete("a")

    assert registry.find("a") is None
    with pytest.raises(HostNotFoundError, match="Host not found: a"):
        registry.get("a")
    with pytest.raises(HostNotFoundError):
        registry.delete("a")
    with pytest.raises(HostNotFoundError):
        registry.update("a", HostUpdate(name="x"))


def test_list_by_status():
    registry = HostRegistry(MemoryHostRepository([make_host("a"), make_host("b")]))
    registry.load()
    registry.apply_runtime_state("b", status=HostStatus.CONNECTED)

    assert [h.host_id for h in registry.list_by_status(HostStatus.CONNECTED)] == ["b"]


def test_json_repository_missing_file_creates_empty(tmp_path):
    path = tmp_path / "data" / "hosts.json"
    repo = JsonHostRepository(path)

    assert repo.load() == []
    assert json.loads(path.read_text()) == []


def test_json_repository_round_trips_credential_variants(tmp_path):
    path = tmp_path / "hosts.json"
    repo = JsonHostRepository(path)
    hosts = [
        make_host("a"),
        make_host("b", credential=KeyFileCredential(path="/keys/id", passphrase="p")),
        make_host("c", credential=None),
    ]

    repo.save(hosts)
    loaded = repo.load()

    assert [h.host_id for h in loaded] == ["a", "b", "c"]
    assert isinstance(loaded[0].credential, PasswordCredential)
    assert isinstance(loaded[1].credential, KeyFileCredential)
    assert loaded[2].credential is None
    assert list(tmp_path.iterdir()) == [path]


def test_update_keeps_required_fields_on_explicit_null(tmp_path):
    path = tmp_path / "hosts.json"
    registry = HostRegistry(JsonHostRepository(path))
    host = registry.add(make_draft())

    updated = registry.update(
        host.host_id,
        HostUpdate.model_validate(
            {
                "name": None,
                "address": None,
                "port": None,
                "username": None,
                "tags": None,
                "environment": "prod",
            }
        ),
    )

    assert (updated.name, updated.address, updated.port) == ("web-1", "192.0.2.10", 22)
    assert updated.environment == "prod"
    reloaded = HostRegistry(JsonHostRepository(path))
    assert reloaded.load() == 1
    stored = reloaded.get(host.host_id)
    assert (stored.name, stored.username, stored.tags) == ("web-1", "deploy", [])
    assert stored.environment == "prod"


def test_update_can_clear_optional_fields():
    registry = HostRegistry(MemoryHostRepository([make_host("a", environment="x")]))
    registry.load()

    host = registry.update(
        "a", HostUpdate.model_validate({"credential": None, "environment": None})
    )

    assert host.credential is None
    assert host.environment is None


class GatedRepository(MemoryHostRepository):
    """Blocks inside save until released; records the saving thread."""

    def __init__(self, hosts):
        super().__init__(hosts)
        self.release = threading.Event()
        self.threads: list[int] = []

    def save(self, hosts):
        self.threads.append(threading.get_ident())
        self.release.wait(5)
        super().save(hosts)


@pytest.mark.asyncio
async def test_saves_run_off_the_event_loop_in_order():
    repo = GatedRepository([make_host("a")])
    registry = HostRegistry(repo)
    registry.load()

    registry.update("a", HostUpdate(name="first"))
    await asyncio.sleep(0.05)
    # the loop stays responsive while the first save is parked
    registry.update("a", HostUpdate(name="second"))
    registry.apply_runtime_state("a", last_seen="2026-01-01T00:00:00+00:00")

    assert registry.get("a").name == "second"
    assert repo.hosts[0].name == "web-1"

    repo.release.set()
    await registry.flush()

    assert repo.hosts[0].name == "second"
    assert repo.hosts[0].last_seen == "2026-01-01T00:00:00+00:00"
    assert repo.saves == 2
    assert threading.get_ident() not in repo.threads


@pytest.mark.asyncio
async def test_flush_without_pending_saves_returns():
    registry = HostRegistry(MemoryHostRepository())

    await registry.flush()

    assert registry.repository.saves == 0
