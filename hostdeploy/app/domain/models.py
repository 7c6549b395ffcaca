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
"""Domain models for host management and deployments."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class HostStatus(str, Enum):
    """Connection lifecycle states for a host."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class HostEvent(str, Enum):
    """Events that trigger host status transitions."""

    CONNECT = "connect"
    READY = "ready"
    FAIL = "fail"
    CLOSE = "close"
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class HostTransition:
    """Single transition entry."""

    current: HostStatus
    event: HostEvent
    next_status: HostStatus


class PasswordCredential(BaseModel):
    """Password authentication."""

    kind: Literal["password"] = "password"
    password: str = Field(min_length=1)


class InlineKeyCredential(BaseModel):
    """Private key supplied as PEM/OpenSSH text."""

    kind: Literal["inline_key"] = "inline_key"
    private_key: str = Field(min_length=1)
    passphrase: Optional[str] = None


class KeyFileCredential(BaseModel):
    """Private key read from a local file at connect time."""

    kind: Literal["key_file"] = "key_file"
    path: str = Field(min_length=1)
    passphrase: Optional[str] = None


Credential = Annotated[
    Union[PasswordCredential, InlineKeyCredential, KeyFileCredential],
    Field(discriminator="kind"),
]


class ResourceUsage(BaseModel):
    """Used/total pair with a percentage."""

    used: float = 0
    total: float = 0
    percentage: float = 0


class HostStats(BaseModel):
    """Resource metrics gathered by the health battery."""

    cpu: float = 0
    memory: ResourceUsage = Field(default_factory=ResourceUsage)
    disk: ResourceUsage = Field(default_factory=ResourceUsage)
    uptime: int = 0
    load_average: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    # metrics whose output could not be parsed and were reported as 0
    unparsed: list[str] = Field(default_factory=list)


class HostCreate(BaseModel):
    """Descriptor used to register a new host."""

    name: str = Field(min_length=1, max_length=200)
    address: str = Field(min_length=1, max_length=255)
    port: int = Field(default=22, ge=1, le=65535)
    username: str = Field(min_length=1, max_length=100)
    credential: Optional[Credential] = None
    tags: list[str] = Field(default_factory=list)
    environment: Optional[str] = None


class HostUpdate(BaseModel):
    """Partial update for a registered host."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    address: Optional[str] = Field(default=None, min_length=1, max_length=255)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    username: Optional[str] = Field(default=None, min_length=1, max_length=100)
    credential: Optional[Credential] = None
    tags: Optional[list[str]] = None
    environment: Optional[str] = None


class Host(BaseModel):
    """Registered remote machine."""

    host_id: str
    name: str
    address: str
    port: int = 22
    username: str
    credential: Optional[Credential] = None
    status: HostStatus = HostStatus.DISCONNECTED
    last_connected: Optional[str] = None
    last_seen: Optional[str] = None
    stats: Optional[HostStats] = None
    tags: list[str] = Field(default_factory=list)
    environment: Optional[str] = None
    os_name: Optional[str] = None

    @property
    def target(self) -> str:
        """Stable label for logs."""
        return f"{self.username}@{self.address}:{self.port}"

    def public_view(self) -> dict[str, Any]:
        """Serialized record with credential secrets removed."""
        data = self.model_dump(mode="json", exclude={"credential"})
        data["auth_method"] = self.credential.kind if self.credential else None
        return data


@dataclass(frozen=True)
class SessionTarget:
    """Network coordinates for opening a session."""

    address: str
    port: int
    username: str

    @property
    def key(self) -> str:
        return f"{self.username}@{self.address}:{self.port}"


@dataclass(frozen=True)
class AuthMaterial:
    """Resolved authentication input for one connection attempt."""

    password: Optional[str] = None
    private_key: Optional[str] = None
    passphrase: Optional[str] = None


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one remote command."""

    stdout: str
    stderr: str
    exit_code: int


@dataclass(frozen=True)
class ConnectResult:
    """Outcome of one connect attempt."""

    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a throw-away connection attempt."""

    success: bool
    error: Optional[str] = None
    latency_ms: Optional[int] = None


@dataclass(frozen=True)
class Repository:
    """Source repository descriptor supplied by the caller."""

    name: str
    full_name: str
    clone_url: str
    default_branch: str = "main"


@dataclass
class DeploymentRequest:
    """Parameters for one deployment run."""

    host_id: str
    repository: Repository
    branch: str
    target_path: str
    clean: bool = False
    use_credential_injection: bool = False
    pre_deploy_script: Optional[str] = None
    post_deploy_script: Optional[str] = None
    environment_variables: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeploymentStepResult:
    """Redacted transcript of one deployment step."""

    id: str
    name: str
    command: str
    stdout: str
    stderr: str
    exit_code: int
    started_at: str
    finished_at: str
    success: bool


@dataclass
class DeploymentResult:
    """Aggregated outcome of one deployment run."""

    success: bool
    host_id: str
    repository: Repository
    branch: str
    target_path: str
    steps: list[DeploymentStepResult] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""
    error: Optional[str] = None
    # request options echoed back
    clean: bool = False
    use_credential_injection: bool = False
    has_pre_deploy_script: bool = False
    has_post_deploy_script: bool = False


@dataclass(frozen=True)
class SuggestedDeployPath:
    """Candidate deployment directory on a host."""

    path: str
    exists: bool
    writable: bool


@dataclass(frozen=True)
class PermissionConfig:
    """Ownership and mode settings applied below a target path."""

    owner: str
    group: str
    file_mode: str = "644"
    dir_mode: str = "755"


@dataclass(frozen=True)
class GitHook:
    """Named git hook script."""

    name: str
    script: str


@dataclass(frozen=True)
class ProvisionResult:
    """Outcome of a provisioning helper."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
