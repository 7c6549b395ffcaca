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
"""Step pipeline that synchronizes a repository onto a host."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional, Protocol
from urllib.parse import quote, urlsplit, urlunsplit
from uuid import uuid4

from hostdeploy.app.application.command_executor import CommandRunner
from hostdeploy.app.application.events import EventPublisher, EventType, emit, utc_now
from hostdeploy.app.domain.errors import CommandTimeoutError, DeploymentValidationError
from hostdeploy.app.domain.models import (
    DeploymentRequest,
    DeploymentResult,
    DeploymentStepResult,
    Host,
)
from hostdeploy.app.domain.redaction import SecretSet
from hostdeploy.app.domain.shell import (
    build_env_exports,
    is_valid_env_key,
    shell_quote,
    validate_target_path,
)

logger = logging.getLogger(__name__)

# Username placed in front of an injected token in the fetch URL
TOKEN_URL_USERNAME = "x-access-token"

STEP_CLEAN = "Clean target directory"
STEP_ENSURE = "Ensure target directory"
STEP_PRE_DEPLOY = "Pre-deploy script"
STEP_SYNC = "Synchronize repository"
STEP_POST_DEPLOY = "Post-deploy script"


class HostLookup(Protocol):
    def get(self, host_id: str) -> Host:
        """Fetch a host or raise HostNotFoundError."""


class ConnectionEnsurer(Protocol):
    async def ensure_connected(self, host_id: str) -> None:
        """Connect if needed or raise ConnectionFailedError."""


class CredentialProvider(Protocol):
    """Supplies the short-lived token used for credential injection."""

    async def get_token(self) -> Optional[str]:
        """Return the current token or None if unavailable."""


class StepFailedError(RuntimeError):
    """A pipeline step finished with a non-zero exit code."""


def inject_credential(clone_url: str, token: str) -> str:
    """Return clone_url with its user-info replaced by the token."""
    parts = urlsplit(clone_url)
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        raise DeploymentValidationError(
            "Credential injection requires an HTTP(S) repository URL"
        )
    netloc = parts.hostname
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    netloc = f"{TOKEN_URL_USERNAME}:{quote(token, safe='')}@{netloc}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def build_sync_script(
    target_path: str,
    branch: str,
    fetch_url: str,
    plain_url: str,
    env_exports: str = "",
) -> str:
    """
    Shell script that fetches into an existing checkout or clones fresh.

    The fetch URL is only ever passed on the command line; the persisted
    remote always points at ``plain_url``.
    """
    path = shell_quote(target_path)
    git_dir = shell_quote(target_path.rstrip("/") + "/.git")
    refspec = shell_quote(f"+refs/heads/{branch}:refs/remotes/origin/{branch}")
    lines = []
    if env_exports:
        lines.append(env_exports)
    lines.extend(
        [
            f"if [ -d {git_dir} ]; then",
            f"  cd {path} && git remote set-url origin {shell_quote(plain_url)} && "
            f"git fetch {shell_quote(fetch_url)} {refspec} && "
            f"git reset --hard {shell_quote('origin/' + branch)}",
            "else",
            f"  git clone --branch {shell_quote(branch)} --single-branch "
            f"{shell_quote(fetch_url)} {path} && cd {path} && "
            f"git remote set-url origin {shell_quote(plain_url)}",
            "fi",
        ]
    )
    return "\n".join(lines)


def _in_directory(target_path: str, script: str) -> str:
    return f"cd {shell_quote(target_path)} && {{\n{script}\n}}"


class DeploymentOrchestrator:
    """Composes executor calls into a named, ordered, redacted step pipeline."""

    def __init__(
        self,
        hosts: HostLookup,
        connections: ConnectionEnsurer,
        runner: CommandRunner,
        credentials: CredentialProvider | None = None,
        publisher: EventPublisher | None = None,
        step_timeout: float | None = None,
    ):
        self.hosts = hosts
        self.connections = connections
        self.runner = runner
        self.credentials = credentials
        self.publisher = publisher
        self.step_timeout = step_timeout

    async def _run_step(
        self,
        host_id: str,
        name: str,
        command: str,
        secrets: SecretSet,
        steps: list[DeploymentStepResult],
    ) -> DeploymentStepResult:
        started_at = utc_now()
        try:
            result = await self.runner.execute(host_id, command, self.step_timeout)
            stdout, stderr, exit_code = result.stdout, result.stderr, result.exit_code
        except CommandTimeoutError as exc:
            stdout, stderr, exit_code = "", str(exc), -1

        step = DeploymentStepResult(
            id=str(uuid4()),
            name=name,
            command=secrets.redact(command),
            stdout=secrets.redact(stdout),
            stderr=secrets.redact(stderr),
            exit_code=exit_code,
            started_at=started_at,
            finished_at=utc_now(),
            success=exit_code == 0,
        )
        steps.append(step)
        logger.info(
            "Deployment step '%s' on host %s exited %s", name, host_id, exit_code
        )
        if not step.success:
            raise StepFailedError(
                step.stderr.strip() or f"{name} failed with exit code {exit_code}"
            )
        return step

    async def _validate(self, request: DeploymentRequest) -> str:
        self.hosts.get(request.host_id)
        try:
            target_path = validate_target_path(request.target_path)
        except ValueError as exc:
            raise DeploymentValidationError(str(exc)) from exc
        for key in request.environment_variables:
            if not is_valid_env_key(key):
                raise DeploymentValidationError(
                    f"Invalid environment variable name: {key}"
                )
        if not request.branch or not request.branch.strip():
            raise DeploymentValidationError("Branch cannot be empty")
        if not request.repository.clone_url:
            raise DeploymentValidationError("Repository URL cannot be empty")
        return target_path

    async def deploy(self, request: DeploymentRequest) -> DeploymentResult:
        """
        Run the deployment pipeline.

        Raises:
            HostNotFoundError: If the host is not registered
            DeploymentValidationError: If the request is rejected up front
            ConnectionFailedError: If the host cannot be connected

        Step failures are returned as a result with success=False.
        """
        target_path = await self._validate(request)

        secrets = SecretSet()
        plain_url = request.repository.clone_url
        fetch_url = plain_url
        if request.use_credential_injection:
            token = await self.credentials.get_token() if self.credentials else None
            if not token:
                raise DeploymentValidationError(
                    "Credential injection requested but no access token is available"
                )
            secrets.add(token)
            secrets.add(quote(token, safe=""))
            fetch_url = inject_credential(plain_url, token)

        await self.connections.ensure_connected(request.host_id)

        result = DeploymentResult(
            success=False,
            host_id=request.host_id,
            repository=request.repository,
            branch=request.branch,
            target_path=target_path,
            started_at=utc_now(),
            clean=request.clean,
            use_credential_injection=request.use_credential_injection,
            has_pre_deploy_script=bool(
                request.pre_deploy_script and request.pre_deploy_script.strip()
            ),
            has_post_deploy_script=bool(
                request.post_deploy_script and request.post_deploy_script.strip()
            ),
        )
        logger.info(
            "Deploying %s@%s to host %s:%s",
            request.repository.full_name,
            request.branch,
            request.host_id,
            target_path,
        )
        path = shell_quote(target_path)
        try:
            if request.clean:
                await self._run_step(
                    request.host_id,
                    STEP_CLEAN,
                    f"if [ -e {path} ]; then rm -rf -- {path}; fi",
                    secrets,
                    result.steps,
                )
            await self._run_step(
                request.host_id,
                STEP_ENSURE,
                f"mkdir -p -- {path}",
                secrets,
                result.steps,
            )
            if request.pre_deploy_script and request.pre_deploy_script.strip():
                await self._run_step(
                    request.host_id,
                    STEP_PRE_DEPLOY,
                    _in_directory(target_path, request.pre_deploy_script),
                    secrets,
                    result.steps,
                )
            await self._run_step(
                request.host_id,
                STEP_SYNC,
                build_sync_script(
                    target_path,
                    request.branch.strip(),
                    fetch_url,
                    plain_url,
                    build_env_exports(request.environment_variables),
                ),
                secrets,
                result.steps,
            )
            if request.post_deploy_script and request.post_deploy_script.strip():
                await self._run_step(
                    request.host_id,
                    STEP_POST_DEPLOY,
                    _in_directory(target_path, request.post_deploy_script),
                    secrets,
                    result.steps,
                )
            result.success = True
        except Exception as exc:
            result.error = secrets.redact(str(exc)) or "Deployment failed"
            logger.warning(
                "Deployment to host %s failed: %s", request.host_id, result.error
            )
        result.finished_at = utc_now()

        emit(
            self.publisher,
            EventType.HOST_DEPLOYMENT_FINISHED,
            request.host_id,
            deployment_payload(result),
        )
        return result


def deployment_payload(result: DeploymentResult) -> dict:
    """JSON-ready view of a deployment result."""
    return asdict(result)
