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
"""API schemas for the hostdeploy HTTP surface."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class HostResponse(BaseModel):
    """Host record without credential secrets."""

    host_id: str
    name: str
    address: str
    port: int
    username: str
    auth_method: Optional[str] = None
    status: str
    last_connected: Optional[str] = None
    last_seen: Optional[str] = None
    stats: Optional[Dict[str, Any]] = None
    tags: List[str] = Field(default_factory=list)
    environment: Optional[str] = None
    os_name: Optional[str] = None


class ConnectResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class ConnectionTestResponse(BaseModel):
    success: bool
    error: Optional[str] = None
    latency_ms: Optional[int] = None


class ExecRequest(BaseModel):
    """Single command to run on a connected host."""

    command: str = Field(min_length=1)
    timeout: Optional[float] = Field(default=None, gt=0, le=3600)


class CommandResponse(BaseModel):
    stdout: str
    stderr: str
    exit_code: int


class LogsResponse(BaseModel):
    host_id: str
    lines: List[str]


class RepositoryPayload(BaseModel):
    name: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    clone_url: str = Field(min_length=1)
    default_branch: str = "main"


class DeployRequest(BaseModel):
    """Payload to deploy a repository branch onto a host."""

    repository: RepositoryPayload
    branch: str = Field(min_length=1)
    target_path: str = Field(min_length=1)
    clean: bool = False
    use_credential_injection: bool = False
    pre_deploy_script: Optional[str] = None
    post_deploy_script: Optional[str] = None
    environment_variables: Dict[str, str] = Field(default_factory=dict)


class DeploymentStepResponse(BaseModel):
    id: str
    name: str
    command: str
    stdout: str
    stderr: str
    exit_code: int
    started_at: str
    finished_at: str
    success: bool


class DeploymentResponse(BaseModel):
    """Redacted deployment outcome."""

    success: bool
    host_id: str
    repository: RepositoryPayload
    branch: str
    target_path: str
    steps: List[DeploymentStepResponse]
    started_at: str
    finished_at: str
    error: Optional[str] = None
    clean: bool = False
    use_credential_injection: bool = False
    has_pre_deploy_script: bool = False
    has_post_deploy_script: bool = False


class PublicKeyRequest(BaseModel):
    public_key: str = Field(min_length=1)


class ProvisionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class DeployPathResponse(BaseModel):
    path: str
    exists: bool
    writable: bool


class PermissionRequest(BaseModel):
    """Ownership and mode settings for a target path."""

    target_path: str = Field(min_length=1)
    owner: str = Field(min_length=1, max_length=64)
    group: str = Field(min_length=1, max_length=64)
    file_mode: str = "644"
    dir_mode: str = "755"


class GitHookPayload(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    script: str


class GitHooksRequest(BaseModel):
    repo_path: str = Field(min_length=1)
    hooks: List[GitHookPayload] = Field(min_length=1)


class HostEventResponse(BaseModel):
    """Buffered host event."""

    type: str
    host_id: str
    timestamp: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class EventPageResponse(BaseModel):
    events: List[HostEventResponse]
    next_cursor: int
