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
"""Error types raised across the host management layers."""


class HostNotFoundError(LookupError):
    """No host is registered under the given id."""

    def __init__(self, host_id: str):
        super().__init__(f"Host not found: {host_id}")
        self.host_id = host_id


class HostNotConnectedError(RuntimeError):
    """Command issued against a host without a live session."""

    def __init__(self, host_id: str):
        super().__init__("Host not connected")
        self.host_id = host_id


class ConnectionFailedError(RuntimeError):
    """A session could not be established."""


class DeploymentValidationError(ValueError):
    """Deployment request rejected before any remote I/O."""


class InvalidTransitionError(ValueError):
    """Host status transition not permitted by the state machine."""


class CommandTimeoutError(TimeoutError):
    """Remote command exceeded the caller-supplied timeout."""

    def __init__(self, command_label: str, timeout: float):
        super().__init__(f"Command timed out after {timeout:g}s: {command_label}")
        self.timeout = timeout
