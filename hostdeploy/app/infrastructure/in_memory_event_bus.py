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
"""Thread-safe in-memory event bus."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from hostdeploy.app.application.events import EventPublisher, HostEventMessage

logger = logging.getLogger(__name__)

Subscriber = Callable[[HostEventMessage], None]


class InMemoryEventBus(EventPublisher):
    """Buffers events for cursor polling and fans them out to subscribers."""

    def __init__(self, max_events: int = 1000) -> None:
        self._lock = Lock()
        self._events: list[HostEventMessage] = []
        self._dropped = 0
        self._max_events = max(1, max_events)
        self._subscribers: list[Subscriber] = []

    def publish(self, event: HostEventMessage) -> None:
        with self._lock:
            self._events.append(event)
            overflow = len(self._events) - self._max_events
            if overflow > 0:
                del self._events[:overflow]
                self._dropped += overflow
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber failed for %s", event.type.value)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._subscribers.remove(callback)
                except ValueError:
                    pass

        return unsubscribe

    def list_events(self, start_index: int = 0) -> list[HostEventMessage]:
        """Events from an absolute cursor; trimmed events are skipped."""
        with self._lock:
            offset = max(0, start_index - self._dropped)
            return list(self._events[offset:])

    def read_since(self, cursor: int) -> tuple[list[HostEventMessage], int]:
        """Events after an absolute cursor plus the cursor to resume from."""
        with self._lock:
            offset = max(0, cursor - self._dropped)
            return list(self._events[offset:]), self._dropped + len(self._events)

    def event_count(self) -> int:
        """Absolute number of events ever published (cursor end)."""
        with self._lock:
            return self._dropped + len(self._events)
