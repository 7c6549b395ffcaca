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
"""Host event contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol


def utc_now() -> str:
    """UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


class EventType(str, Enum):
    """Event names broadcast to listeners."""

    HOST_ADDED = "host-added"
    HOST_UPDATED = "host-updated"
    HOST_DELETED = "host-deleted"
    HOST_STATUS_CHANGED = "host-status-changed"
    HOST_STATS = "host-stats"
    HOST_DEPLOYMENT_FINISHED = "host-deployment-finished"


@dataclass(frozen=True)
class HostEventMessage:
    """Single event emitted by the host services."""

    type: EventType
    host_id: str
    timestamp: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "host_id": self.host_id,
            "timestamp": self.timestamp,
            "payload": self.payload,
        }


class EventPublisher(Protocol):
    """Publisher for host events."""

    def publish(self, event: HostEventMessage) -> None:
        """Publish one event."""


def emit(
    publisher: EventPublisher | None,
    event_type: EventType,
    host_id: str,
    payload: dict[str, Any] | None = None,
) -> None:
    """Build and publish an event if a publisher is configured."""
    if publisher is None:
        return
    publisher.publish(
        HostEventMessage(
            type=event_type,
            host_id=host_id,
            timestamp=utc_now(),
            payload=payload or {},
        )
    )
