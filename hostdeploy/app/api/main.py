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
"""FastAPI entrypoint for hostdeploy."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from hostdeploy.app.api.schemas import (
    CommandResponse,
    ConnectionTestResponse,
    ConnectResponse,
    DeployPathResponse,
    DeploymentResponse,
    DeployRequest,
    EventPageResponse,
    ExecRequest,
    GitHooksRequest,
    HostEventResponse,
    HostResponse,
    LogsResponse,
    PermissionRequest,
    ProvisionResponse,
    PublicKeyRequest,
)
from hostdeploy.app.application.deployment import deployment_payload
from hostdeploy.app.application.host_service import HostService
from hostdeploy.app.config import Settings
from hostdeploy.app.domain.errors import (
    CommandTimeoutError,
    ConnectionFailedError,
    DeploymentValidationError,
    HostNotConnectedError,
    HostNotFoundError,
    InvalidTransitionError,
)
from hostdeploy.app.domain.models import (
    DeploymentRequest,
    GitHook,
    Host,
    HostCreate,
    HostUpdate,
    PermissionConfig,
    Repository,
)
from hostdeploy.app.infrastructure.asyncssh_session import AsyncsshSessionFactory
from hostdeploy.app.infrastructure.credential_providers import EnvTokenProvider
from hostdeploy.app.infrastructure.in_memory_event_bus import InMemoryEventBus
from hostdeploy.app.infrastructure.json_host_repository import JsonHostRepository
from hostdeploy.app.logging_config import configure_logging

logger = logging.getLogger(__name__)

WS_POLL_INTERVAL = 0.2

# Most specific class wins; InvalidTransitionError is also a ValueError.
ERROR_STATUS = {
    HostNotFoundError: 404,
    HostNotConnectedError: 409,
    InvalidTransitionError: 409,
    ConnectionFailedError: 502,
    DeploymentValidationError: 400,
    CommandTimeoutError: 504,
}

router = APIRouter()


def build_service(settings: Settings, event_bus: InMemoryEventBus) -> HostService:
    """Wire the production adapters into a HostService."""
    return HostService(
        repository=JsonHostRepository(settings.hosts_path),
        session_factory=AsyncsshSessionFactory(
            ready_timeout=settings.ready_timeout,
            keepalive_interval=settings.keepalive_interval,
            known_hosts=settings.known_hosts,
        ),
        publisher=event_bus,
        credentials=EnvTokenProvider(settings.token_env),
        health_interval=settings.health_interval,
        health_command_timeout=settings.health_command_timeout,
        step_timeout=settings.step_timeout,
    )


def get_service(request: Request) -> HostService:
    return request.app.state.service


def get_event_bus(request: Request) -> InMemoryEventBus:
    return request.app.state.event_bus


def to_response(host: Host) -> HostResponse:
    """Convert domain model to API response."""
    return HostResponse(**host.public_view())


@router.get("/health")
def health() -> dict[str, str]:
    """Simple health endpoint."""
    return {"status": "ok"}


@router.get("/api/hosts", response_model=list[HostResponse])
def list_hosts(service: HostService = Depends(get_service)) -> list[HostResponse]:
    """List registered hosts."""
    return [to_response(host) for host in service.list_hosts()]


@router.post("/api/hosts", response_model=HostResponse, status_code=201)
def add_host(
    payload: HostCreate, service: HostService = Depends(get_service)
) -> HostResponse:
    """Register a host in the disconnected state."""
    return to_response(service.add_host(payload))


@router.post("/api/hosts/test-connection", response_model=ConnectionTestResponse)
async def test_connection(
    payload: HostCreate, service: HostService = Depends(get_service)
) -> ConnectionTestResponse:
    """Probe a host descriptor without registering it."""
    result = await service.test_connection(payload)
    return ConnectionTestResponse(
        success=result.success, error=result.error, latency_ms=result.latency_ms
    )


@router.get("/api/hosts/{host_id}", response_model=HostResponse)
def get_host(host_id: str, service: HostService = Depends(get_service)) -> HostResponse:
    return to_response(service.get_host(host_id))


@router.patch("/api/hosts/{host_id}", response_model=HostResponse)
def update_host(
    host_id: str, payload: HostUpdate, service: HostService = Depends(get_service)
) -> HostResponse:
    """Apply a partial update."""
    return to_response(service.update_host(host_id, payload))


@router.delete("/api/hosts/{host_id}", status_code=204)
async def delete_host(host_id: str, service: HostService = Depends(get_service)):
    await service.delete_host(host_id)


@router.post("/api/hosts/{host_id}/connect", response_model=ConnectResponse)
async def connect_host(
    host_id: str, service: HostService = Depends(get_service)
) -> ConnectResponse:
    """Open a session; a failed attempt leaves the host in error."""
    result = await service.connect(host_id)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    return ConnectResponse(success=True)


@router.post("/api/hosts/{host_id}/disconnect", response_model=ConnectResponse)
async def disconnect_host(
    host_id: str, service: HostService = Depends(get_service)
) -> ConnectResponse:
    service.get_host(host_id)
    await service.disconnect(host_id)
    return ConnectResponse(success=True)


@router.post("/api/hosts/{host_id}/exec", response_model=CommandResponse)
async def execute_command(
    host_id: str, payload: ExecRequest, service: HostService = Depends(get_service)
) -> CommandResponse:
    """Run one command on a connected host."""
    result = await service.execute(host_id, payload.command, payload.timeout)
    return CommandResponse(
        stdout=result.stdout, stderr=result.stderr, exit_code=result.exit_code
    )


@router.get("/api/hosts/{host_id}/stats")
async def get_host_stats(
    host_id: str, service: HostService = Depends(get_service)
) -> dict:
    stats = await service.get_host_stats(host_id)
    return stats.model_dump(mode="json")


@router.get("/api/hosts/{host_id}/logs", response_model=LogsResponse)
async def get_host_logs(
    host_id: str,
    lines: int = Query(default=100, ge=1, le=5000),
    service: HostService = Depends(get_service),
) -> LogsResponse:
    """Tail the host syslog."""
    try:
        output = await service.get_host_logs(host_id, lines)
    except HostNotConnectedError:
        raise
    except RuntimeError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return LogsResponse(host_id=host_id, lines=output)


@router.post("/api/hosts/{host_id}/deploy", response_model=DeploymentResponse)
async def deploy(
    host_id: str, payload: DeployRequest, service: HostService = Depends(get_service)
) -> DeploymentResponse:
    """Run the deployment pipeline; step failures return success=false."""
    request = DeploymentRequest(
        host_id=host_id,
        repository=Repository(**payload.repository.model_dump()),
        branch=payload.branch,
        target_path=payload.target_path,
        clean=payload.clean,
        use_credential_injection=payload.use_credential_injection,
        pre_deploy_script=payload.pre_deploy_script,
        post_deploy_script=payload.post_deploy_script,
        environment_variables=payload.environment_variables,
    )
    result = await service.deploy(request)
    return DeploymentResponse(**deployment_payload(result))


@router.post("/api/hosts/{host_id}/keys", response_model=ProvisionResponse)
async def upload_public_key(
    host_id: str,
    payload: PublicKeyRequest,
    service: HostService = Depends(get_service),
) -> ProvisionResponse:
    result = await service.upload_public_key(host_id, payload.public_key)
    return ProvisionResponse(
        success=result.success, message=result.message, error=result.error
    )


@router.get(
    "/api/hosts/{host_id}/deploy-paths", response_model=list[DeployPathResponse]
)
async def detect_deploy_paths(
    host_id: str, service: HostService = Depends(get_service)
) -> list[DeployPathResponse]:
    """Suggest deployment directories, best candidates first."""
    paths = await service.detect_deploy_paths(host_id)
    return [
        DeployPathResponse(path=p.path, exists=p.exists, writable=p.writable)
        for p in paths
    ]


@router.post("/api/hosts/{host_id}/permissions", response_model=ProvisionResponse)
async def setup_permissions(
    host_id: str,
    payload: PermissionRequest,
    service: HostService = Depends(get_service),
) -> ProvisionResponse:
    config = PermissionConfig(
        owner=payload.owner,
        group=payload.group,
        file_mode=payload.file_mode,
        dir_mode=payload.dir_mode,
    )
    result = await service.setup_permissions(host_id, payload.target_path, config)
    return ProvisionResponse(
        success=result.success, message=result.message, error=result.error
    )


@router.post("/api/hosts/{host_id}/git-hooks", response_model=ProvisionResponse)
async def install_git_hooks(
    host_id: str,
    payload: GitHooksRequest,
    service: HostService = Depends(get_service),
) -> ProvisionResponse:
    hooks = [GitHook(name=h.name, script=h.script) for h in payload.hooks]
    result = await service.install_git_hooks(host_id, payload.repo_path, hooks)
    return ProvisionResponse(
        success=result.success, message=result.message, error=result.error
    )


@router.get("/api/events", response_model=EventPageResponse)
def list_events(
    cursor: int = Query(default=0, ge=0),
    event_bus: InMemoryEventBus = Depends(get_event_bus),
) -> EventPageResponse:
    """Buffered host events after an absolute cursor."""
    events, next_cursor = event_bus.read_since(cursor)
    return EventPageResponse(
        events=[HostEventResponse(**e.to_dict()) for e in events],
        next_cursor=next_cursor,
    )


@router.websocket("/ws/events")
async def ws_events(websocket: WebSocket, cursor: int = 0) -> None:
    """Stream host events from the bus."""
    event_bus: InMemoryEventBus = websocket.app.state.event_bus
    await websocket.accept()
    try:
        while True:
            events, cursor = event_bus.read_since(cursor)
            for event in events:
                await websocket.send_json(event.to_dict())
            await asyncio.sleep(WS_POLL_INTERVAL)
    except WebSocketDisconnect:
        return


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(
    service: Optional[HostService] = None,
    event_bus: Optional[InMemoryEventBus] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the application around an explicitly constructed service.

    When no service is given, one is wired from ``settings`` (or the
    environment) with the asyncssh and JSON file adapters.
    """
    if service is None:
        settings = settings or Settings.from_env()
        event_bus = event_bus or InMemoryEventBus(settings.event_buffer)
        service = build_service(settings, event_bus)
    elif event_bus is None:
        if isinstance(service.publisher, InMemoryEventBus):
            event_bus = service.publisher
        else:
            event_bus = InMemoryEventBus()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(title="hostdeploy", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.state.event_bus = event_bus
    for exc_class, status_code in ERROR_STATUS.items():
        app.add_exception_handler(exc_class, _error_handler(status_code))
    app.include_router(router)
    return app


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings=settings)
    logger.info("Serving hostdeploy on %s:%s", settings.api_host, settings.api_port)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
