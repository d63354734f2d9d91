"""Object store access for Application resources and their Pods."""

import logging
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from kubernetes import client, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .application import Application, NamespacedName
from .config import CRD_GROUP, CRD_VERSION, CRD_PLURAL
from .errors import NotFoundError, TransientStoreError

logger = logging.getLogger(__name__)


class ApplicationStore(Protocol):
    """Read and write operations the reconciler needs from the store."""

    def get_application(
        self,
        identity: NamespacedName,
        timeout: Optional[float] = None
    ) -> Application:
        ...

    def create_pod(self, pod: client.V1Pod, timeout: Optional[float] = None) -> None:
        ...


def _request_kwargs(timeout: Optional[float]) -> Dict[str, Any]:
    if timeout is None:
        return {}
    return {"_request_timeout": timeout}


class KubernetesStore:
    """Store backed by the Kubernetes API server."""

    def __init__(self, custom_api=None, core_api=None):
        """
        Initialize the store.

        Args:
            custom_api: CustomObjectsApi to use (default: a new one)
            core_api: CoreV1Api to use (default: a new one)
        """
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.core_api = core_api or client.CoreV1Api()
        self._watch: Optional[watch.Watch] = None

    def get_application(
        self,
        identity: NamespacedName,
        timeout: Optional[float] = None
    ) -> Application:
        """
        Get a specific Application.

        Args:
            identity: Namespace and name of the Application
            timeout: Request timeout in seconds

        Returns:
            The parsed Application

        Raises:
            NotFoundError: The Application does not exist
            TransientStoreError: Any other API or connection failure
        """
        try:
            obj = self.custom_api.get_namespaced_custom_object(
                group=CRD_GROUP,
                version=CRD_VERSION,
                namespace=identity.namespace,
                plural=CRD_PLURAL,
                name=identity.name,
                **_request_kwargs(timeout)
            )
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(
                    f"application {identity} not found",
                    status=e.status,
                    reason=e.reason or ""
                ) from e
            raise TransientStoreError(
                f"error getting application {identity}: {e.status} {e.reason}",
                status=e.status,
                reason=e.reason or ""
            ) from e
        except HTTPError as e:
            raise TransientStoreError(f"error getting application {identity}: {e}") from e

        return Application.from_crd(obj)

    def create_pod(self, pod: client.V1Pod, timeout: Optional[float] = None) -> None:
        """
        Create a Pod.

        An existing Pod with the same name is reported like any other failure.

        Args:
            pod: The Pod to create
            timeout: Request timeout in seconds

        Raises:
            TransientStoreError: The API rejected the Pod or could not be reached
        """
        namespace = pod.metadata.namespace
        pod_key = f"{namespace}/{pod.metadata.name}"
        try:
            self.core_api.create_namespaced_pod(
                namespace=namespace,
                body=pod,
                **_request_kwargs(timeout)
            )
        except ApiException as e:
            raise TransientStoreError(
                f"error creating pod {pod_key}: {e.status} {e.reason}",
                status=e.status,
                reason=e.reason or ""
            ) from e
        except HTTPError as e:
            raise TransientStoreError(f"error creating pod {pod_key}: {e}") from e

    def list_applications(
        self,
        namespace: str = ""
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """
        List all Application objects.

        Args:
            namespace: Namespace to list from ("" for all namespaces)

        Returns:
            Tuple of (Application objects, resourceVersion of the list)
        """
        try:
            if namespace:
                response = self.custom_api.list_namespaced_custom_object(
                    group=CRD_GROUP,
                    version=CRD_VERSION,
                    namespace=namespace,
                    plural=CRD_PLURAL
                )
            else:
                response = self.custom_api.list_cluster_custom_object(
                    group=CRD_GROUP,
                    version=CRD_VERSION,
                    plural=CRD_PLURAL
                )
        except ApiException as e:
            if e.status == 404:
                logger.warning("CRD not found. Please install the CRD first.")
            raise TransientStoreError(
                f"error listing applications: {e.status} {e.reason}",
                status=e.status,
                reason=e.reason or ""
            ) from e
        except HTTPError as e:
            raise TransientStoreError(f"error listing applications: {e}") from e

        resource_version = response.get("metadata", {}).get("resourceVersion")
        return response.get("items", []), resource_version

    def watch_applications(
        self,
        namespace: str = "",
        timeout: int = 300,
        resource_version: Optional[str] = None
    ) -> Iterator[Dict[str, Any]]:
        """
        Create a watch stream for Application objects.

        Args:
            namespace: Namespace to watch ("" for all namespaces)
            timeout: Watch timeout in seconds
            resource_version: Only deliver changes after this version

        Yields:
            Watch events
        """
        self._watch = watch.Watch()
        kwargs = {"timeout_seconds": timeout}
        if resource_version:
            kwargs["resource_version"] = resource_version

        if namespace:
            stream = self._watch.stream(
                self.custom_api.list_namespaced_custom_object,
                group=CRD_GROUP,
                version=CRD_VERSION,
                namespace=namespace,
                plural=CRD_PLURAL,
                **kwargs
            )
        else:
            stream = self._watch.stream(
                self.custom_api.list_cluster_custom_object,
                group=CRD_GROUP,
                version=CRD_VERSION,
                plural=CRD_PLURAL,
                **kwargs
            )

        try:
            for event in stream:
                yield event
        except ApiException as e:
            logger.error(f"Watch error: {e}")
            raise

    def stop_watch(self) -> None:
        """Stop the running watch stream, if any."""
        if self._watch is not None:
            self._watch.stop()
