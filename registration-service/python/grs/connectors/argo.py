"""
Argo CD REST connector.

Used for the one operation only the Argo CD API server offers: triggering a
sync of an application. Project and application objects themselves are
managed as Kubernetes resources by the GitOps connector.
"""

import logging
import ssl

import aiohttp
import requests

logger = logging.getLogger(__name__)

SESSION_PATH = "/api/v1/session"


class ArgoConnector:
    """Triggers application syncs through the Argo CD API server."""

    def __init__(
        self,
        server_host: str = "argocd-server",
        server_port: int = 80,
        username: str = "admin",
        password: str = "admin",
        use_tls: bool = False,
        verify_ssl: bool = False,
        login_on_init: bool = True,
    ):
        """
        Initialize the Argo CD connector and optionally log in right away.

        Args:
            server_host: Argo CD server hostname or service name
            server_port: Argo CD server port
            username: Account used for the session
            password: Password of that account
            use_tls: Whether to use HTTPS
            verify_ssl: Whether to verify the server certificate
            login_on_init: Log in synchronously while constructing
        """
        self.server_host = server_host
        self.server_port = server_port
        self.username = username
        self.password = password
        self.verify_ssl = verify_ssl
        self.base_url = f"{'https' if use_tls else 'http'}://{server_host}:{server_port}"
        self.auth_token: str | None = None

        logger.debug(f"ArgoConnector initialized with server: {self.base_url}")

        if login_on_init and not self._login_blocking():
            logger.info("Argo CD login at startup failed, the first sync request logs in again")

    @property
    def _credentials(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}

    def _follow_https_redirect(self, final_url: str) -> None:
        # The API server redirects plain HTTP to HTTPS when it terminates TLS itself
        if not (final_url.startswith("https://") and self.base_url.startswith("http://")):
            return
        port = 443 if self.server_port == 80 else self.server_port
        self.base_url = f"https://{self.server_host}:{port}"
        logger.info(f"Argo CD redirected to HTTPS, using {self.base_url}")

    def _store_token(self, token: str | None) -> bool:
        self.auth_token = token or None
        if self.auth_token is None:
            logger.error("Argo CD session response did not contain a token")
            return False
        logger.info("Logged in to Argo CD")
        return True

    def _login_blocking(self) -> bool:
        try:
            response = requests.post(
                f"{self.base_url}{SESSION_PATH}", json=self._credentials, verify=self.verify_ssl, timeout=10
            )
        except requests.RequestException as e:
            logger.warning(f"Argo CD login failed: {e}")
            return False

        self._follow_https_redirect(response.url)
        if response.status_code != 200:
            logger.error(f"Argo CD login returned {response.status_code}: {response.text}")
            return False
        return self._store_token(response.json().get("token"))

    def _session(self) -> aiohttp.ClientSession:
        ssl_context = ssl.create_default_context()
        if not self.verify_ssl:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        return aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=ssl_context))

    async def login(self) -> bool:
        """
        Open an Argo CD session and keep its token.

        Returns:
            True if a token was obtained
        """
        try:
            async with self._session() as session:
                async with session.post(f"{self.base_url}{SESSION_PATH}", json=self._credentials) as response:
                    self._follow_https_redirect(str(response.url))
                    if response.status != 200:
                        logger.error(f"Argo CD login returned {response.status}: {await response.text()}")
                        return False
                    return self._store_token((await response.json()).get("token"))
        except aiohttp.ClientError as e:
            logger.error(f"Argo CD login failed: {e}")
            return False

    async def _request(self, method: str, path: str, payload: dict | None) -> tuple[int, str]:
        if self.auth_token is None and not await self.login():
            return 401, "Argo CD login failed"

        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.auth_token}"}
        logger.debug(f"Argo CD request: {method} {path}")
        async with self._session() as session:
            async with session.request(method, url, json=payload or {}, headers=headers) as response:
                return response.status, await response.text()

    async def _make_authenticated_request(
        self, method: str, path: str, payload: dict | None = None
    ) -> tuple[int, str]:
        """
        Call the API server with the session token; an expired token is renewed once.

        Returns:
            Tuple of (status_code, response_text)
        """
        status, body = await self._request(method, path, payload)
        if status == 401:
            logger.warning("Argo CD rejected the session token, logging in again")
            self.auth_token = None
            status, body = await self._request(method, path, payload)
        return status, body

    async def sync_application(self, app_name: str) -> bool:
        """
        Ask Argo CD to sync an application now.

        Args:
            app_name: Name of the Argo CD application

        Returns:
            True if the API server accepted the sync request
        """
        logger.info(f"Requesting sync of Argo CD application {app_name}")
        try:
            status, body = await self._make_authenticated_request("POST", f"/api/v1/applications/{app_name}/sync")
        except aiohttp.ClientError as e:
            logger.error(f"Sync request for {app_name} failed: {e}")
            return False

        if status not in (200, 201):
            logger.error(f"Argo CD refused to sync {app_name} ({status}): {body}")
            return False

        logger.info(f"Sync of {app_name} triggered")
        return True


def create_argo_connector() -> ArgoConnector:
    """Create an ArgoConnector from the ARGOCD_* settings."""
    from grs.core.config import settings

    logger.debug(f"Creating ArgoConnector for server: {settings.ARGOCD_HOST}:{settings.ARGOCD_PORT}")
    return ArgoConnector(
        server_host=settings.ARGOCD_HOST,
        server_port=settings.ARGOCD_PORT,
        username=settings.ARGOCD_USERNAME,
        password=settings.ARGOCD_PASSWORD,
        use_tls=settings.ARGOCD_USE_TLS,
        verify_ssl=settings.ARGOCD_VERIFY_SSL,
    )
