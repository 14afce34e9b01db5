import logging

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse, Response

from grs.api.endpoint_util import get_manager, get_user, requires_user
from grs.core.config import VERSION
from grs.core.errors import ValidationFailed
from grs.models import ExistingNamespaceRequest, RegistrationPhase, RegistrationRequest

logger = logging.getLogger(__name__)

api_router: APIRouter = APIRouter(
    prefix="/api/v1",
    tags=["registrations"],
    responses={404: {"description": "Not found"}},
)

health_router: APIRouter = APIRouter(prefix="/health", tags=["health"])

metrics_router: APIRouter = APIRouter(tags=["metrics"])


@health_router.get("/live")
async def live() -> JSONResponse:
    return JSONResponse(content={"status": "alive", "version": VERSION})


@health_router.get("/ready")
async def ready(request: Request) -> JSONResponse:
    """
    Readiness: the service is configured and kubectl can reach the API server.

    The impersonation ClusterRole findings of the startup validation are
    reported as detail; they never make the service unready.
    """
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        return JSONResponse(content={"status": "not ready", "message": "Service is starting up"}, status_code=503)

    connected = await manager.cluster.check_connection()
    content = {"status": "ready" if connected else "not ready", "checks": {"kubernetes": connected}}

    validation = manager.impersonation.startup_validation
    if validation is not None:
        content["impersonation"] = validation.to_dict()

    return JSONResponse(content=content, status_code=200 if connected else 503)


@metrics_router.get("/metrics")
async def metrics(request: Request) -> Response:
    """Prometheus metrics in the text exposition format."""
    manager = getattr(request.app.state, "manager", None)
    registration_metrics = manager.metrics if manager is not None else request.app.state.metrics
    body, content_type = registration_metrics.render()
    return Response(content=body, media_type=content_type)


@api_router.post("/registrations")
@requires_user
async def create_registration(request: Request, registration: RegistrationRequest = Body(...)) -> JSONResponse:
    """
    Register a Git repository into a new namespace.

    Headers:
        Authorization: Bearer token of the caller (required)

    Example:
    ```bash
    curl -X POST "http://localhost:8080/api/v1/registrations" \\
      -H "Content-Type: application/json" \\
      -H "Authorization: Bearer $TOKEN" \\
      -d '{"repository": {"url": "https://github.com/example/team-a-config", "branch": "main"},
           "namespace": "team-a"}'
    ```
    """
    manager = get_manager(request)
    logger.info(f"Registration requested for {registration.repository.url} in namespace {registration.namespace}")

    result = await manager.create_registration(registration, get_user(request))
    return JSONResponse(content=result.to_json_dict(), status_code=201)


@api_router.post("/registrations/existing")
@requires_user
async def register_existing_namespace(
    request: Request, registration: ExistingNamespaceRequest = Body(...)
) -> JSONResponse:
    """
    Put an existing namespace under GitOps management.

    The caller must hold the configured role in the namespace.
    """
    manager = get_manager(request)
    logger.info(
        f"Existing namespace registration requested for {registration.existing_namespace} "
        f"from {registration.repository.url}"
    )

    result = await manager.register_existing_namespace(registration, get_user(request))
    return JSONResponse(content=result.to_json_dict(), status_code=201)


@api_router.get("/registrations")
async def list_registrations(
    request: Request, namespace: str | None = None, repository: str | None = None, phase: str | None = None
) -> JSONResponse:
    if phase and phase not in {p.value for p in RegistrationPhase}:
        raise ValidationFailed(f"unknown phase '{phase}'", {"field": "phase"})

    registrations = await get_manager(request).list_registrations(namespace, repository, phase)
    return JSONResponse(content=[registration.to_json_dict() for registration in registrations])


@api_router.get("/registrations/{registration_id}")
async def get_registration(request: Request, registration_id: str) -> JSONResponse:
    registration = await get_manager(request).get_registration(registration_id)
    return JSONResponse(content=registration.to_json_dict())


@api_router.get("/registrations/{registration_id}/status")
async def get_registration_status(request: Request, registration_id: str) -> JSONResponse:
    status = await get_manager(request).get_registration_status(registration_id)
    return JSONResponse(content=status.to_json_dict())


@api_router.delete("/registrations/{registration_id}", status_code=204)
@requires_user
async def delete_registration(request: Request, registration_id: str) -> Response:
    """
    Delete a registration.

    A namespace created by the service is deleted with it; an existing namespace
    that was registered is kept and only loses its GitOps objects and metadata.
    """
    user = get_user(request)
    logger.info(f"Deletion of registration {registration_id} requested by {user.username if user else 'unknown'}")

    await get_manager(request).delete_registration(registration_id)
    return Response(status_code=204)


@api_router.post("/registrations/{registration_id}/sync")
@requires_user
async def sync_registration(request: Request, registration_id: str) -> JSONResponse:
    result = await get_manager(request).sync_registration(registration_id)
    return JSONResponse(content=result, status_code=202 if result["syncTriggered"] else 502)


@api_router.get("/registration-status")
async def get_service_registration_status(request: Request) -> JSONResponse:
    status = get_manager(request).get_service_registration_status()
    return JSONResponse(content=status.to_json_dict())


@api_router.get("/capacity")
async def get_capacity_status(request: Request) -> JSONResponse:
    status = await get_manager(request).get_capacity_status()
    return JSONResponse(content=status.to_json_dict())
