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
"""Finite state machine for host connection lifecycle."""

from .errors import InvalidTransitionError
from .models import HostEvent, HostStatus, HostTransition


class HostStateMachine:
    """Validates and executes host status transitions."""

    _transitions = {
        (HostStatus.DISCONNECTED, HostEvent.CONNECT): HostStatus.CONNECTING,
        (HostStatus.ERROR, HostEvent.CONNECT): HostStatus.CONNECTING,
        (HostStatus.CONNECTING, HostEvent.READY): HostStatus.CONNECTED,
        (HostStatus.CONNECTING, HostEvent.FAIL): HostStatus.ERROR,
        (HostStatus.CONNECTED, HostEvent.CLOSE): HostStatus.DISCONNECTED,
        (HostStatus.CONNECTED, HostEvent.FAIL): HostStatus.ERROR,
        (HostStatus.DISCONNECTED, HostEvent.DISCONNECT): HostStatus.DISCONNECTED,
        (HostStatus.CONNECTING, HostEvent.DISCONNECT): HostStatus.DISCONNECTED,
        (HostStatus.CONNECTED, HostEvent.DISCONNECT): HostStatus.DISCONNECTED,
        (HostStatus.ERROR, HostEvent.DISCONNECT): HostStatus.DISCONNECTED,
    }

    def can_transition(self, status: HostStatus, event: HostEvent) -> bool:
        """Return True if transition is valid for the current status."""
        return (status, event) in self._transitions

    def transition(self, status: HostStatus, event: HostEvent) -> HostTransition:
        """Apply a transition or raise InvalidTransitionError."""
        key = (status, event)
        if key not in self._transitions:
            raise InvalidTransitionError(
                f"Invalid transition: status={status.value}, event={event.value}"
            )
        return HostTransition(
            current=status, event=event, next_status=self._transitions[key]
        )
