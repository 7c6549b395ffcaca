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
"""Unit tests for host status transitions."""

import pytest

from hostdeploy.app.domain.errors import InvalidTransitionError
from hostdeploy.app.domain.models import HostEvent, HostStatus
from hostdeploy.app.domain.state_machine import HostStateMachine


def test_connect_lifecycle():
    sm = HostStateMachine()

    assert (
        sm.transition(HostStatus.DISCONNECTED, HostEvent.CONNECT).next_status
        == HostStatus.CONNECTING
    )
    assert (
        sm.transition(HostStatus.CONNECTING, HostEvent.READY).next_status
        == HostStatus.CONNECTED
    )
    assert (
        sm.transition(HostStatus.CONNECTED, HostEvent.CLOSE).next_status
        == HostStatus.DISCONNECTED
    )


def test_failures_lead_to_error_and_error_can_retry():
    sm = HostStateMachine()

    assert (
        sm.transition(HostStatus.CONNECTING, HostEvent.FAIL).next_status
        == HostStatus.ERROR
    )
    assert (
        sm.transition(HostStatus.CONNECTED, HostEvent.FAIL).next_status
        == HostStatus.ERROR
    )
    assert (
        sm.transition(HostStatus.ERROR, HostEvent.CONNECT).next_status
        == HostStatus.CONNECTING
    )


@pytest.mark.parametrize("status", list(HostStatus))
def test_disconnect_allowed_from_every_status(status):
    sm = HostStateMachine()

    transition = sm.transition(status, HostEvent.DISCONNECT)

    assert transition.current == status
    assert transition.next_status == HostStatus.DISCONNECTED


def test_no_event_moves_disconnected_straight_to_connected():
    sm = HostStateMachine()

    for event in HostEvent:
        if sm.can_transition(HostStatus.DISCONNECTED, event):
            assert (
                sm.transition(HostStatus.DISCONNECTED, event).next_status
                != HostStatus.CONNECTED
            )


@pytest.mark.parametrize(
    ("status", "event"),
    [
        (HostStatus.DISCONNECTED, HostEvent.READY),
        (HostStatus.DISCONNECTED, HostEvent.FAIL),
        (HostStatus.CONNECTED, HostEvent.CONNECT),
        (HostStatus.CONNECTING, HostEvent.CONNECT),
        (HostStatus.ERROR, HostEvent.READY),
    ],
)
def test_invalid_transitions_raise(status, event):
    sm = HostStateMachine()

    assert not sm.can_transition(status, event)
    with pytest.raises(InvalidTransitionError, match="Invalid transition"):
        sm.transition(status, event)
