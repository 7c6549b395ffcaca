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
"""JSON file repository for host records."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import TypeAdapter

from hostdeploy.app.application.host_registry import HostRepository
from hostdeploy.app.domain.models import Host

logger = logging.getLogger(__name__)

_hosts_adapter = TypeAdapter(list[Host])


class JsonHostRepository(HostRepository):
    """Stores all hosts as one JSON array, replaced atomically on save."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> list[Host]:
        if not self.path.exists():
            logger.info("No hosts file at %s, starting fresh", self.path)
            self.save([])
            return []
        return _hosts_adapter.validate_json(self.path.read_bytes())

    def save(self, hosts: list[Host]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = _hosts_adapter.dump_json(hosts, indent=2)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
