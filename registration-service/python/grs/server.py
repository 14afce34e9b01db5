import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from grs.api.router import api_router, health_router, metrics_router
from grs.core.config import PROJECT_DESCRIPTION, PROJECT_NAME, VERSION, settings

# Initialize logging first, before any other imports that might log
from grs.core.early_logging import initialize_logging  # noqa: F401
from grs.core.errors import RegistrationError, ValidationFailed
from grs.core.metrics import RegistrationMetrics
from grs.core.startup import print_boot_banner, run_startup_tasks
from grs.manager.registration_manager import RegistrationManager
from grs.middleware.authorization import AuthorizationMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    print_boot_banner()
    logger.info(f"Starting {PROJECT_NAME} version {VERSION}")

    # A manager injected through create_app is already wired
    if getattr(app.state, "manager", None) is None:
        try:
            await run_startup_tasks(app)
        except Exception as e:
            logger.critical(f"CRITICAL STARTUP FAILURE: {e}")
            raise

    yield

    logger.info(f"Stopping application {PROJECT_NAME} version {VERSION}")
    logging.shutdown()


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(content=exc.to_response(), status_code=exc.status_code)


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        {"field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg")}
        for error in exc.errors()
    ]
    error = ValidationFailed("Invalid request body", {"errors": problems})
    return JSONResponse(content=error.to_response(), status_code=error.status_code)


def create_app(manager: RegistrationManager | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        manager: A ready registration manager; when omitted the lifespan builds
            one from the service configuration and the cluster connectors

    Returns:
        The application
    """
    app = FastAPI(
        lifespan=lifespan,
        title="GitOps Registration Service API",
        description="Onboards Git repositories as isolated, Argo CD managed tenant namespaces",
        summary=PROJECT_DESCRIPTION,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        debug=settings.DEBUG,
    )

    # Add custom OpenAPI schema with the bearer token security scheme
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        from fastapi.openapi.utils import get_openapi

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "BearerToken": {
                "type": "http",
                "scheme": "bearer",
                "description": "Kubernetes bearer token, resolved through a TokenReview",
            }
        }

        for path, methods in openapi_schema["paths"].items():
            if path.startswith("/api/"):
                for method in methods.values():
                    if isinstance(method, dict) and "operationId" in method:
                        method["security"] = [{"BearerToken": []}]

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    app.state.manager = manager
    app.state.metrics = manager.metrics if manager is not None else RegistrationMetrics()

    app.add_middleware(AuthorizationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        expose_headers=["Link"],
        max_age=300,
    )
    app.add_exception_handler(RegistrationError, registration_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.include_router(health_router)
    app.include_router(metrics_router)
    app.include_router(api_router)

    return app


app = create_app()
