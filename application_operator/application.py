"""Application resource model and the Pods built from it."""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict

from kubernetes import client


@dataclass(frozen=True)
class NamespacedName:
    """Cluster-unique identity of a namespaced object."""
    namespace: str
    name: str

    @classmethod
    def from_object(cls, obj: Dict[str, Any]) -> "NamespacedName":
        """Build an identity from a custom object's metadata."""
        metadata = obj.get("metadata", {})
        return cls(
            namespace=metadata.get("namespace", "default"),
            name=metadata.get("name", "")
        )

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class Application:
    """Parsed Application specification."""
    name: str
    namespace: str
    replicas: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    template: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_crd(cls, crd_object: Dict[str, Any]) -> "Application":
        """Create Application from CRD object."""
        metadata = crd_object.get("metadata", {})
        spec = crd_object.get("spec") or {}

        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", "default"),
            replicas=int(spec.get("replicas") or 0),
            labels=metadata.get("labels") or {},
            template=spec.get("template") or {}
        )

    @property
    def identity(self) -> NamespacedName:
        return NamespacedName(namespace=self.namespace, name=self.name)

    @property
    def template_spec(self) -> Dict[str, Any]:
        """The pod spec every child Pod is created with."""
        return self.template.get("spec") or {}


def pod_name(app_name: str, index: int) -> str:
    """Name of the child Pod for a replica index, e.g. ``web-0``."""
    return f"{app_name}-{index}"


def build_pod(app: Application, index: int) -> client.V1Pod:
    """
    Build the child Pod for one replica of an Application.

    Args:
        app: The Application the Pod belongs to
        index: Replica index in [0, replicas)

    Returns:
        New V1Pod object carrying the Application's labels and template spec
    """
    return client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=pod_name(app.name, index),
            namespace=app.namespace,
            labels=copy.deepcopy(app.labels),
        ),
        spec=copy.deepcopy(app.template_spec)
    )
