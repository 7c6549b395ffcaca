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
"""Credential providers for fetch URL injection."""

from __future__ import annotations

import os
from typing import Optional

from hostdeploy.app.application.deployment import CredentialProvider


class EnvTokenProvider(CredentialProvider):
    """Reads the token from an environment variable on every request."""

    def __init__(self, variable: str):
        self.variable = variable

    async def get_token(self) -> Optional[str]:
        return os.getenv(self.variable, "").strip() or None


class StaticTokenProvider(CredentialProvider):
    """Token supplied by the embedding application."""

    def __init__(self, token: Optional[str] = None):
        self.token = token

    async def get_token(self) -> Optional[str]:
        return self.token
