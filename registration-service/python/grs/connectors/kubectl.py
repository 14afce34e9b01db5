"""
Kubectl connector for managing Kubernetes resources.

This module talks to the cluster by running kubectl. Inside a cluster kubectl
uses the service account mounted into the pod.
"""

import asyncio
import json
import logging
import os
from typing import Any

from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_fixed

logger = logging.getLogger(__name__)


class KubectlConnectionError(Exception):
    """Exception raised when kubectl connection is not available."""


class KubectlExecutionError(Exception):
    """Exception raised when kubectl command execution fails."""

    def __init__(self, message: str, stderr: str = "", returncode: int | None = None):
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class ResourceAlreadyExistsError(KubectlExecutionError):
    """The object could not be created because one with the same name exists."""


class ResourceNotFoundError(KubectlExecutionError):
    """The object does not exist."""


_CONNECTION_FAILURES = ("connection refused", "unable to connect to the server", "no such host")

# Read-only calls are retried on connection errors, mutations never are
_retry_on_connection_error = retry(
    retry=retry_if_exception_type(KubectlConnectionError),
    stop=stop_after_attempt(3),
    wait=wait_fixed(1),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class KubectlConnector:
    """Connector for interacting with Kubernetes clusters using kubectl."""

    def __init__(self, timeout: float = 30, env: dict[str, str] | None = None):
        """
        Initialize the Kubectl connector.

        Args:
            timeout: Seconds before a single kubectl call is abandoned
            env: Optional environment for kubectl (defaults to a copy of os.environ)
        """
        self.timeout = timeout
        self.env = env if env is not None else os.environ.copy()
        logger.debug(f"KubectlConnector initialized with timeout {timeout}s")

    async def check_connection(self) -> bool:
        """
        Test the kubectl connection using 'kubectl auth whoami'.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            _, stderr, code = await self._run_kubectl_command(["auth", "whoami"])
        except (KubectlConnectionError, KubectlExecutionError) as e:
            logger.warning(f"Kubectl connection check failed: {e}")
            return False

        if code != 0:
            logger.warning(f"Kubectl connection check failed: {stderr}")
            return False
        return True

    async def _run_kubectl_command(
        self, args: list[str], env: dict[str, str] | None = None, stdin_input: str | None = None
    ) -> tuple[str, str, int]:
        """
        Run a kubectl command directly with subprocess.

        Args:
            args: List of kubectl command arguments
            env: Optional environment variables
            stdin_input: Optional string to pass to stdin

        Returns:
            Tuple of (stdout, stderr, return_code)

        Raises:
            KubectlConnectionError: If kubectl is missing or the API server cannot be reached
            KubectlExecutionError: If the command does not finish within the timeout
        """
        cmd_env = self.env.copy()
        if env:
            cmd_env.update(env)

        cmd_args_str = " ".join([f'"{arg}"' if " " in arg else arg for arg in args])
        cmd_str = f"kubectl {cmd_args_str}"
        logger.debug(f"Running kubectl command: {cmd_str}{' (with stdin)' if stdin_input else ''}")

        try:
            process = await asyncio.create_subprocess_exec(
                "kubectl",
                *args,
                stdin=asyncio.subprocess.PIPE if stdin_input is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=cmd_env,
            )
        except FileNotFoundError as e:
            raise KubectlConnectionError("kubectl executable not found") from e

        stdin_bytes = stdin_input.encode("utf-8") if stdin_input is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(stdin_bytes), timeout=self.timeout)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            error_msg = f"kubectl command timed out after {self.timeout}s: {cmd_str}"
            logger.error(error_msg)
            raise KubectlExecutionError(error_msg) from e

        stdout_str = stdout.decode("utf-8").strip()
        stderr_str = stderr.decode("utf-8").strip()

        if process.returncode != 0:
            logger.warning(f"kubectl command failed with code {process.returncode}: {stderr_str}")
            if any(marker in stderr_str.lower() for marker in _CONNECTION_FAILURES):
                error_msg = f"kubectl connection failed: {stderr_str}"
                logger.error(error_msg)
                raise KubectlConnectionError(error_msg)
        else:
            logger.debug(f"kubectl command succeeded: {cmd_str}")

        return stdout_str, stderr_str, process.returncode

    @staticmethod
    def _raise_for_result(action: str, stderr: str, code: int) -> None:
        """Translate a failed kubectl invocation into the matching exception."""
        if code == 0:
            return
        error_msg = f"Failed to {action}: {stderr}"
        if "AlreadyExists" in stderr or "already exists" in stderr:
            raise ResourceAlreadyExistsError(error_msg, stderr, code)
        if "NotFound" in stderr or "not found" in stderr:
            raise ResourceNotFoundError(error_msg, stderr, code)
        raise KubectlExecutionError(error_msg, stderr, code)

    @staticmethod
    def _parse_json(stdout: str, action: str) -> dict[str, Any]:
        try:
            return json.loads(stdout) if stdout else {}
        except json.JSONDecodeError as e:
            raise KubectlExecutionError(f"Failed to parse kubectl output while trying to {action}: {e}") from e

    async def create_from_manifest(self, manifest: str, description: str) -> dict[str, Any]:
        """
        Create an object from a manifest with ``kubectl create``.

        Create (not apply) fails when an object with the same name exists, which
        makes concurrent registrations for the same name first-writer-wins.

        Args:
            manifest: YAML or JSON manifest of a single object
            description: Human readable description for logs and errors

        Returns:
            The created object as returned by the API server

        Raises:
            ResourceAlreadyExistsError: If the object already exists
            KubectlExecutionError: For any other failure
        """
        logger.debug(f"Creating {description}")
        stdout, stderr, code = await self._run_kubectl_command(
            ["create", "-f", "-", "-o", "json"], stdin_input=manifest
        )
        self._raise_for_result(f"create {description}", stderr, code)
        logger.info(f"Successfully created {description}")
        return self._parse_json(stdout, f"create {description}")

    async def create_namespace(
        self, name: str, labels: dict[str, str] | None = None, annotations: dict[str, str] | None = None
    ) -> None:
        """
        Create a namespace with labels and annotations.

        Raises:
            ResourceAlreadyExistsError: If the namespace already exists
            KubectlExecutionError: For any other failure
        """
        manifest = {
            "apiVersion": "v1",
            "kind": "Namespace",
            "metadata": {"name": name, "labels": labels or {}, "annotations": annotations or {}},
        }
        await self.create_from_manifest(json.dumps(manifest), f"namespace {name}")

    @_retry_on_connection_error
    async def get_resource(self, resource_type: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        """
        Get a single object as a dictionary.

        Returns:
            The object, or None if it does not exist
        """
        args = ["get", resource_type, name, "-o", "json"]
        if namespace:
            args.extend(["-n", namespace])

        stdout, stderr, code = await self._run_kubectl_command(args)
        if code != 0 and ("NotFound" in stderr or "not found" in stderr):
            logger.debug(f"{resource_type} {name} not found")
            return None
        self._raise_for_result(f"get {resource_type} {name}", stderr, code)
        return self._parse_json(stdout, f"get {resource_type} {name}")

    @_retry_on_connection_error
    async def list_resources(
        self, resource_type: str, namespace: str | None = None, label_selector: str | None = None
    ) -> list[dict[str, Any]]:
        """
        List objects of a type, optionally filtered server-side by a label selector.

        Returns:
            The matching objects
        """
        args = ["get", resource_type, "-o", "json"]
        if namespace:
            args.extend(["-n", namespace])
        if label_selector:
            args.extend(["-l", label_selector])

        stdout, stderr, code = await self._run_kubectl_command(args)
        self._raise_for_result(f"list {resource_type}", stderr, code)
        return self._parse_json(stdout, f"list {resource_type}").get("items", [])

    async def get_namespace(self, name: str) -> dict[str, Any] | None:
        return await self.get_resource("namespace", name)

    async def namespace_exists(self, namespace: str) -> bool:
        """
        Check if a namespace exists in the cluster.

        Args:
            namespace: The namespace to check

        Returns:
            True if the namespace exists, False otherwise
        """
        exists = await self.get_namespace(namespace) is not None
        logger.debug(f"Namespace {namespace} exists: {exists}")
        return exists

    async def list_namespaces(self, label_selector: str | None = None) -> list[dict[str, Any]]:
        return await self.list_resources("namespaces", label_selector=label_selector)

    @_retry_on_connection_error
    async def count_namespaces(self, label_selector: str | None = None) -> int:
        """
        Count namespaces matching a label selector.

        Only object names are fetched, the count is read live on every call.
        """
        args = ["get", "namespaces", "-o", "name"]
        if label_selector:
            args.extend(["-l", label_selector])

        stdout, stderr, code = await self._run_kubectl_command(args)
        self._raise_for_result("count namespaces", stderr, code)
        return len([line for line in stdout.splitlines() if line.strip()])

    async def create_service_account_with_generated_name(
        self, namespace: str, base_name: str, labels: dict[str, str] | None = None
    ) -> str:
        """
        Create a service account whose name suffix is generated by the API server.

        Args:
            namespace: Namespace to create the service account in
            base_name: Name prefix, the server appends a random suffix
            labels: Labels to put on the service account

        Returns:
            The generated service account name
        """
        manifest = {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {"generateName": f"{base_name}-", "namespace": namespace, "labels": labels or {}},
        }
        created = await self.create_from_manifest(json.dumps(manifest), f"service account in namespace {namespace}")
        name = created.get("metadata", {}).get("name")
        if not name:
            raise KubectlExecutionError(f"API server did not return a generated service account name in {namespace}")
        return name

    async def create_role_binding_for_service_account(
        self,
        namespace: str,
        binding_name: str,
        service_account: str,
        cluster_role: str,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Bind a cluster role to a service account, scoped to one namespace."""
        manifest = {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "RoleBinding",
            "metadata": {"name": binding_name, "namespace": namespace, "labels": labels or {}},
            "roleRef": {"apiGroup": "rbac.authorization.k8s.io", "kind": "ClusterRole", "name": cluster_role},
            "subjects": [{"kind": "ServiceAccount", "name": service_account, "namespace": namespace}],
        }
        await self.create_from_manifest(json.dumps(manifest), f"role binding {binding_name} in namespace {namespace}")

    async def _patch_namespace_metadata(self, namespace: str, metadata: dict[str, Any], action: str) -> None:
        patch = json.dumps({"metadata": metadata})
        args = ["patch", "namespace", namespace, "--type", "merge", "-p", patch]
        stdout, stderr, code = await self._run_kubectl_command(args)
        self._raise_for_result(f"{action} namespace {namespace}", stderr, code)

    async def update_namespace_metadata(
        self, namespace: str, labels: dict[str, str] | None = None, annotations: dict[str, str] | None = None
    ) -> None:
        """
        Add or overwrite labels and annotations on a namespace in one merge patch.

        Raises:
            ResourceNotFoundError: If the namespace does not exist
        """
        logger.debug(f"Updating metadata of namespace {namespace}")
        await self._patch_namespace_metadata(
            namespace, {"labels": labels or {}, "annotations": annotations or {}}, "update metadata of"
        )
        logger.info(f"Successfully updated metadata of namespace {namespace}")

    async def remove_namespace_metadata(
        self, namespace: str, label_keys: list[str] | None = None, annotation_keys: list[str] | None = None
    ) -> None:
        """Remove labels and annotations from a namespace; missing keys are ignored."""
        logger.debug(f"Removing metadata from namespace {namespace}")
        # null in a merge patch deletes the key
        metadata = {
            "labels": {key: None for key in label_keys or []},
            "annotations": {key: None for key in annotation_keys or []},
        }
        await self._patch_namespace_metadata(namespace, metadata, "remove metadata from")
        logger.info(f"Successfully removed metadata from namespace {namespace}")

    async def delete_namespace(self, namespace: str) -> None:
        """
        Delete a namespace from the cluster; a missing namespace counts as deleted.

        Args:
            namespace: The namespace to delete
        """
        logger.debug(f"Deleting namespace: {namespace}")
        args = ["delete", "namespace", namespace, "--ignore-not-found=true", "--wait=false"]
        stdout, stderr, code = await self._run_kubectl_command(args)
        self._raise_for_result(f"delete namespace {namespace}", stderr, code)
        logger.info(f"Successfully deleted namespace: {namespace}")

    async def delete_resource(self, resource_type: str, resource_name: str, namespace: str | None = None) -> None:
        """
        Delete a Kubernetes resource; a missing resource counts as deleted.

        Args:
            resource_type: The type of resource to delete (e.g., 'serviceaccount', 'rolebinding')
            resource_name: The name of the resource to delete
            namespace: The namespace containing the resource (not needed for cluster-scoped resources)
        """
        logger.debug(f"Deleting {resource_type} {resource_name}{' in namespace ' + namespace if namespace else ''}")

        args = ["delete", resource_type, resource_name, "--ignore-not-found=true"]
        if namespace:
            args.extend(["-n", namespace])

        stdout, stderr, code = await self._run_kubectl_command(args)
        if code != 0 and "NotFound" in stderr:
            logger.debug(f"{resource_type} {resource_name} not found - already deleted")
            return
        self._raise_for_result(f"delete {resource_type} {resource_name}", stderr, code)
        logger.info(f"Successfully deleted {resource_type} {resource_name}")

    async def get_cluster_role(self, name: str) -> dict[str, Any] | None:
        return await self.get_resource("clusterrole", name)

    async def list_role_bindings(self, namespace: str) -> list[dict[str, Any]]:
        return await self.list_resources("rolebindings", namespace=namespace)

    async def review_token(self, token: str) -> dict[str, Any]:
        """
        Resolve a bearer token to a user through a TokenReview.

        Returns:
            The TokenReview status (``authenticated``, ``user``, ``error``)
        """
        manifest = {"apiVersion": "authentication.k8s.io/v1", "kind": "TokenReview", "spec": {"token": token}}
        stdout, stderr, code = await self._run_kubectl_command(
            ["create", "-f", "-", "-o", "json"], stdin_input=json.dumps(manifest)
        )
        self._raise_for_result("review token", stderr, code)
        return self._parse_json(stdout, "review token").get("status", {})

    async def can_i(
        self, verb: str, resource: str, namespace: str, user: str | None = None, groups: list[str] | None = None
    ) -> bool:
        """
        Ask the API server whether a user may perform an action (SubjectAccessReview).

        Args:
            verb: The verb, e.g. 'update'
            resource: The resource, e.g. 'namespaces'
            namespace: Namespace the check is scoped to
            user: User to impersonate for the check
            groups: Groups to impersonate for the check

        Returns:
            True if the action is allowed
        """
        args = ["auth", "can-i", verb, resource, "-n", namespace]
        if user:
            args.extend(["--as", user])
        for group in groups or []:
            args.extend(["--as-group", group])

        stdout, stderr, code = await self._run_kubectl_command(args)
        answer = stdout.strip().lower()
        if answer.startswith("yes"):
            return True
        if answer.startswith("no"):
            return False
        self._raise_for_result(f"check access to {resource} in {namespace}", stderr, code or 1)
        return False


def create_kubectl_connector(timeout: float | None = None) -> KubectlConnector:
    """
    Create and return a KubectlConnector instance.

    Args:
        timeout: Per-call timeout in seconds (defaults to config)

    Returns:
        KubectlConnector instance
    """
    from grs.core.config import settings

    final_timeout = timeout if timeout is not None else settings.KUBECTL_TIMEOUT
    logger.debug("Creating KubectlConnector")
    return KubectlConnector(timeout=final_timeout)
