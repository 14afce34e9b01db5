import logging
import os

from pydantic_settings import BaseSettings

# Initialize logging early to ensure it's available during config loading
from grs.core.early_logging import initialize_logging  # noqa: F401
from grs.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

PROJECT_NAME: str = "GRS"
VERSION: str = "0.1.0"  # replace in CI/CD pipeline
PROJECT_DESCRIPTION: str = "GRS - GitOps Registration Service"

# Cache for env files to avoid multiple calls and duplicate logging
_env_files_cache: list[str] | None = None


def _get_env_files() -> list[str]:
    """
    Get list of environment files to load in order of precedence.

    Configuration hierarchy (container env vars take highest precedence):
    1. Container environment variables - HIGHEST PRECEDENCE
    2. ConfigMap mounted .env file
    3. .env.{ENVIRONMENT} (one file per comma separated ENVIRONMENT entry)
    4. .env (base configuration file) - LOWEST PRECEDENCE

    ENVIRONMENT is read from the system environment only to avoid a circular dependency.

    Returns:
        List of environment file paths that exist
    """
    global _env_files_cache

    if _env_files_cache is not None:
        return _env_files_cache
    env_files = []

    environment_var = os.environ.get("ENVIRONMENT", "local")
    environments = [env.strip() for env in environment_var.split(",")]
    logger.debug(f"Using ENVIRONMENT={environment_var} -> environments={environments}")

    base_env = ".env"
    if os.path.exists(base_env):
        env_files.append(base_env)
        logger.debug(f"Found base env file: {base_env}")

    for environment in environments:
        env_specific = f".env.{environment}"
        if os.path.exists(env_specific):
            env_files.append(env_specific)
            logger.debug(f"Found environment-specific env file: {env_specific}")

    configmap_paths = [
        "/etc/config/.env",
        "/app/config/.env",
        os.environ.get("CONFIG_ENV_FILE_PATH", ""),
    ]

    for configmap_path in configmap_paths:
        if configmap_path and os.path.exists(configmap_path):
            env_files.append(configmap_path)
            logger.info(f"ConfigMap env file found and loaded: {configmap_path}")
            break  # Only use the first ConfigMap file found

    logger.info(f"Configuration loading order: {env_files}")

    _env_files_cache = env_files
    return env_files


class Settings(BaseSettings):
    model_config = {"env_file": _get_env_files(), "env_file_encoding": "utf-8", "extra": "ignore"}

    ENVIRONMENT: str = "local"
    DEBUG: bool = False
    PORT: int = 8080
    SERVER_TIMEOUT: int = 30

    # Path to the YAML service configuration (security, capacity, tenants, ...)
    CONFIG_PATH: str | None = None

    # Argo CD REST API, used to trigger syncs
    ARGOCD_HOST: str = "argocd-server"
    ARGOCD_PORT: int = 80
    ARGOCD_USERNAME: str = "admin"
    ARGOCD_PASSWORD: str = "admin"
    ARGOCD_USE_TLS: bool = False
    ARGOCD_VERIFY_SSL: bool = False

    # Seconds before a single kubectl call is abandoned
    KUBECTL_TIMEOUT: int = 30

    # Compensating actions on a failed registration
    ROLLBACK_MAX_ATTEMPTS: int = 3
    ROLLBACK_RETRY_DELAY: float = 1.0

    # Comma separated origins allowed by CORS, "*" for any
    CORS_ALLOWED_ORIGINS: str = "*"

    # Logging configuration
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "log.txt"

    @property
    def cors_allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ALLOWED_ORIGINS.split(",") if origin.strip()]


def _get_settings() -> Settings:
    settings = Settings()

    setup_logging(log_to_file=settings.LOG_TO_FILE, log_file_path=settings.LOG_FILE_PATH)

    logger.debug(f"Settings loaded for environment {settings.ENVIRONMENT}")
    logger.debug(f"Argo CD server: {settings.ARGOCD_HOST}:{settings.ARGOCD_PORT}")
    if settings.CONFIG_PATH:
        logger.debug(f"Service configuration file: {settings.CONFIG_PATH}")
    else:
        logger.info("CONFIG_PATH not set - using built-in service configuration defaults")

    return settings


settings = _get_settings()
