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
"""Host provisioning helpers built on the command executor."""

from __future__ import annotations

import logging
import re

from hostdeploy.app.application.command_executor import CommandRunner
from hostdeploy.app.application.deployment import ConnectionEnsurer
from hostdeploy.app.domain.models import (
    GitHook,
    PermissionConfig,
    ProvisionResult,
    SuggestedDeployPath,
)
from hostdeploy.app.domain.shell import shell_quote, validate_target_path

logger = logging.getLogger(__name__)

PUBLIC_KEY_PREFIXES = (
    "ssh-rsa",
    "ssh-ed25519",
    "ssh-dss",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521",
    "sk-ssh-ed25519@openssh.com",
    "sk-ecdsa-sha2-nistp256@openssh.com",
)

DEPLOY_PATH_CANDIDATES = [
    "/var/www",
    "/var/www/html",
    "/srv",
    "/srv/www",
    "/opt",
    "/opt/apps",
    "~/apps",
    "~/www",
    "~/public_html",
]

KEY_EXISTS_MARKER = "HOSTDEPLOY_KEY_EXISTS"
KEY_ADDED_MARKER = "HOSTDEPLOY_KEY_ADDED"
HOOK_DELIMITER = "HOSTDEPLOY_HOOK_EOF"

_MODE_RE = re.compile(r"^[0-7]{3,4}$")
_ACCOUNT_RE = re.compile(r"^[a-z_][a-z0-9_.-]*\$?$", re.IGNORECASE)
_HOOK_NAME_RE = re.compile(r"^[a-z][a-z0-9-]*$")


def validate_public_key(public_key: str) -> str:
    """Return the single-line key or raise ValueError."""
    key = (public_key or "").strip()
    if not key:
        raise ValueError("Public key cannot be empty")
    if "\n" in key or "\r" in key:
        raise ValueError("Public key must be a single line")
    if key.split()[0] not in PUBLIC_KEY_PREFIXES:
        raise ValueError("Invalid public key format")
    return key


def rank_deploy_paths(paths: list[SuggestedDeployPath]) -> list[SuggestedDeployPath]:
    """Existing+writable first, then existing, then the rest; stable otherwise."""

    def rank(item: SuggestedDeployPath) -> int:
        if item.exists and item.writable:
            return 0
        if item.exists:
            return 1
        return 2

    return sorted(paths, key=rank)


class ProvisioningService:
    """Key upload, deploy path discovery, permissions and git hooks."""

    def __init__(self, connections: ConnectionEnsurer, runner: CommandRunner):
        self.connections = connections
        self.runner = runner

    async def upload_public_key(
        self, host_id: str, public_key: str
    ) -> ProvisionResult:
        """Append a key to ~/.ssh/authorized_keys unless already present."""
        try:
            key = validate_public_key(public_key)
        except ValueError as exc:
            return ProvisionResult(success=False, error=str(exc))

        await self.connections.ensure_connected(host_id)
        quoted = shell_quote(key)
        script = "\n".join(
            [
                "umask 077",
                'mkdir -p "$HOME/.ssh" && chmod 700 "$HOME/.ssh"',
                'touch "$HOME/.ssh/authorized_keys" '
                '&& chmod 600 "$HOME/.ssh/authorized_keys"',
                f'if grep -qxF -- {quoted} "$HOME/.ssh/authorized_keys"; then',
                f"  echo {KEY_EXISTS_MARKER}",
                "else",
                f"  printf '%s\\n' {quoted} >> \"$HOME/.ssh/authorized_keys\" "
                f"&& echo {KEY_ADDED_MARKER}",
                "fi",
            ]
        )
        result = await self.runner.execute(host_id, script)
        if result.exit_code != 0:
            return ProvisionResult(
                success=False,
                error=result.stderr.strip() or "Failed to upload public key",
            )
        if KEY_EXISTS_MARKER in result.stdout:
            return ProvisionResult(success=True, message="Public key already exists")
        logger.info("Uploaded public key to host %s", host_id)
        return ProvisionResult(success=True, message="Public key added")

    async def detect_deploy_paths(self, host_id: str) -> list[SuggestedDeployPath]:
        """Probe common deployment directories on the host."""
        await self.connections.ensure_connected(host_id)
        home = (await self.runner.execute(host_id, 'printf %s "$HOME"')).stdout.strip()

        candidates: list[str] = []
        for candidate in DEPLOY_PATH_CANDIDATES:
            if candidate.startswith("~/"):
                if not home:
                    continue
                candidate = home.rstrip("/") + candidate[1:]
            if candidate not in candidates:
                candidates.append(candidate)

        listing = "\n".join(
            f"p={shell_quote(path)}; e=0; w=0; "
            '[ -d "$p" ] && e=1; [ -w "$p" ] && w=1; '
            'echo "$e $w $p"'
            for path in candidates
        )
        result = await self.runner.execute(host_id, listing)
        flags: dict[str, tuple[bool, bool]] = {}
        for line in result.stdout.splitlines():
            parts = line.split(" ", 2)
            if len(parts) == 3:
                flags[parts[2]] = (parts[0] == "1", parts[1] == "1")

        paths = [
            SuggestedDeployPath(
                path=path,
                exists=flags.get(path, (False, False))[0],
                writable=flags.get(path, (False, False))[1],
            )
            for path in candidates
        ]
        return rank_deploy_paths(paths)

    async def setup_permissions(
        self, host_id: str, target_path: str, config: PermissionConfig
    ) -> ProvisionResult:
        """Apply owner:group and file/dir modes, preferring sudo."""
        try:
            path = validate_target_path(target_path)
        except ValueError as exc:
            return ProvisionResult(success=False, error=str(exc))
        for mode in (config.file_mode, config.dir_mode):
            if not _MODE_RE.match(mode):
                return ProvisionResult(success=False, error=f"Invalid mode: {mode}")
        for account in (config.owner, config.group):
            if not _ACCOUNT_RE.match(account):
                return ProvisionResult(
                    success=False, error=f"Invalid owner or group: {account}"
                )

        await self.connections.ensure_connected(host_id)
        quoted = shell_quote(path)
        script = (
            f"chown -R {shell_quote(config.owner + ':' + config.group)} {quoted} && "
            f"find {quoted} -type d -exec chmod {config.dir_mode} {{}} + && "
            f"find {quoted} -type f -exec chmod {config.file_mode} {{}} +"
        )
        result = await self.runner.execute(
            host_id, f"sudo -n sh -c {shell_quote(script)}"
        )
        if result.exit_code != 0:
            logger.info(
                "Privileged permission setup failed on host %s; retrying without sudo",
                host_id,
            )
            result = await self.runner.execute(host_id, script)
        if result.exit_code != 0:
            return ProvisionResult(
                success=False,
                error=result.stderr.strip() or "Failed to set permissions",
            )
        return ProvisionResult(success=True, message=f"Permissions applied to {path}")

    async def install_git_hooks(
        self, host_id: str, repo_path: str, hooks: list[GitHook]
    ) -> ProvisionResult:
        """Write hook scripts into <repo>/.git/hooks and mark them executable."""
        try:
            path = validate_target_path(repo_path)
        except ValueError as exc:
            return ProvisionResult(success=False, error=str(exc))
        for hook in hooks:
            if not _HOOK_NAME_RE.match(hook.name):
                return ProvisionResult(
                    success=False, error=f"Invalid hook name: {hook.name}"
                )
            if HOOK_DELIMITER in hook.script.splitlines():
                return ProvisionResult(
                    success=False,
                    error=f"Hook {hook.name} contains a reserved delimiter line",
                )

        await self.connections.ensure_connected(host_id)
        hooks_dir = path.rstrip("/") + "/.git/hooks"
        for hook in hooks:
            hook_path = shell_quote(f"{hooks_dir}/{hook.name}")
            script = (
                f"mkdir -p {shell_quote(hooks_dir)} && "
                f"cat > {hook_path} <<'{HOOK_DELIMITER}' && chmod +x {hook_path}\n"
                f"{hook.script.rstrip(chr(10))}\n"
                f"{HOOK_DELIMITER}"
            )
            result = await self.runner.execute(host_id, script)
            if result.exit_code != 0:
                return ProvisionResult(
                    success=False,
                    error=result.stderr.strip()
                    or f"Failed to install hook {hook.name}",
                )
        return ProvisionResult(
            success=True, message=f"Installed {len(hooks)} hook(s) in {hooks_dir}"
        )
