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
"""Shell quoting and remote path validation.

Every value interpolated into a remote command line goes through
``shell_quote``; every deployment or provisioning path goes through
``validate_target_path``.
"""

from __future__ import annotations

import posixpath
import re

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def shell_quote(value: str) -> str:
    """
    Quote a value as a single POSIX shell word.

    The value is wrapped in single quotes; embedded single quotes are closed,
    escaped and reopened. Nothing inside single quotes is expanded by the
    shell, so ``$``, backticks, backslashes and newlines pass through literally.

    Args:
        value: Raw argument

    Returns:
        Quoted shell word
    """
    if "\x00" in value:
        raise ValueError("Shell arguments cannot contain NUL bytes")
    return "'" + value.replace("'", "'\"'\"'") + "'"


def validate_target_path(path: str) -> str:
    """
    Normalize a remote target path and reject unsafe values.

    The path must be absolute. Rejects empty paths, the filesystem root and
    any path that contains a ``..`` segment either as given or after POSIX
    normalization.

    Args:
        path: Path supplied by the caller

    Returns:
        Normalized path

    Raises:
        ValueError: If the path is unsafe
    """
    raw = (path or "").strip()
    if not raw:
        raise ValueError("Target path cannot be empty")
    if "\x00" in raw or "\n" in raw:
        raise ValueError(f"Target path contains control characters: {raw!r}")
    if not raw.startswith("/"):
        raise ValueError(f"Target path must be absolute: {raw}")
    if ".." in raw.split("/"):
        raise ValueError(f"Target path cannot contain '..' segments: {raw}")

    normalized = posixpath.normpath(raw)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    if normalized in {"/", ".", ".."}:
        raise ValueError(f"Refusing to use unsafe target path: {raw}")
    if ".." in normalized.split("/"):
        raise ValueError(f"Target path cannot contain '..' segments: {raw}")
    return normalized


def is_valid_env_key(key: str) -> bool:
    """Return True if key is a portable environment variable name."""
    return bool(_ENV_KEY_RE.match(key))


def build_env_exports(variables: dict[str, str]) -> str:
    """Render ``export KEY='value'`` lines for validated variables."""
    lines = []
    for key, value in variables.items():
        if not is_valid_env_key(key):
            raise ValueError(f"Invalid environment variable name: {key}")
        lines.append(f"export {key}={shell_quote(value)}")
    return "\n".join(lines)
