from __future__ import annotations

import copy
from typing import Any, Callable

import pytest
from kubernetes.client import ApiException

from application_operator.application import Application, NamespacedName
from application_operator.errors import NotFoundError, TransientStoreError


def make_application(
    name: str = "web",
    namespace: str = "ns1",
    replicas: int | None = 3,
    labels: dict[str, str] | None = None,
    template_spec: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Application custom object as returned by the API server."""
    spec: dict[str, Any] = {
        "template": {
            "spec": template_spec
            if template_spec is not None
            else {"containers": [{"name": "nginx", "image": "nginx:1.25"}]}
        }
    }
    if replicas is not None:
        spec["replicas"] = replicas
    return {
        "apiVersion": "apps.aloys.cn/v1",
        "kind": "Application",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": labels if labels is not None else {"app": name},
        },
        "spec": spec,
    }


class FakeStore:
    """In-memory store recording every create attempt."""

    def __init__(
        self,
        applications: list[dict[str, Any]] | None = None,
        get_error: Exception | None = None,
        fail_names: set[str] | None = None,
        existing_pods: set[str] | None = None,
    ) -> None:
        self.applications = {
            NamespacedName.from_object(obj): obj for obj in applications or []
        }
        self.get_error = get_error
        self.fail_names = fail_names or set()
        self.existing_pods = set(existing_pods or ())
        self.attempts: list[str] = []
        self.created: list[Any] = []
        self.timeouts: list[float | None] = []
        self.on_get: Callable[[NamespacedName], None] | None = None
        self.on_create: Callable[[Any], None] | None = None
        self.resource_version = "100"
        self.list_calls = 0
        self.watch_calls: list[dict[str, Any]] = []
        self.watch_events: list[dict[str, Any]] = []
        self.watch_errors: list[Exception] = []
        self.after_watch: Callable[[], None] | None = None
        self.watch_stopped = False

    def get_application(self, identity: NamespacedName, timeout: float | None = None) -> Application:
        self.timeouts.append(timeout)
        if self.on_get is not None:
            self.on_get(identity)
        if self.get_error is not None:
            raise self.get_error
        if identity not in self.applications:
            raise NotFoundError(f"application {identity} not found", status=404)
        return Application.from_crd(copy.deepcopy(self.applications[identity]))

    def create_pod(self, pod: Any, timeout: float | None = None) -> None:
        name = pod.metadata.name
        self.attempts.append(name)
        self.timeouts.append(timeout)
        if self.on_create is not None:
            self.on_create(pod)
        if name in self.fail_names:
            raise TransientStoreError(f"error creating pod {name}: 500 boom", status=500)
        if name in self.existing_pods:
            raise TransientStoreError(f"error creating pod {name}: 409 Conflict", status=409)
        self.existing_pods.add(name)
        self.created.append(pod)

    def _objects(self, namespace: str = "") -> list[dict[str, Any]]:
        return [
            obj for key, obj in self.applications.items()
            if not namespace or key.namespace == namespace
        ]

    def list_applications(self, namespace: str = "") -> tuple[list[dict[str, Any]], str | None]:
        self.list_calls += 1
        return self._objects(namespace), self.resource_version

    def watch_applications(
        self,
        namespace: str = "",
        timeout: int = 300,
        resource_version: str | None = None,
    ):
        self.watch_calls.append(
            {"namespace": namespace, "timeout": timeout, "resource_version": resource_version}
        )
        if self.watch_errors:
            raise self.watch_errors.pop(0)
        # Like the API server, a watch without a version first replays
        # every existing object as ADDED.
        if resource_version is None:
            for obj in self._objects(namespace):
                yield {"type": "ADDED", "object": obj}
        for event in self.watch_events:
            yield event
        if self.after_watch is not None:
            self.after_watch()

    def stop_watch(self) -> None:
        self.watch_stopped = True


class FakeCustomObjectsApi:
    def __init__(self, objects: list[dict[str, Any]] | None = None) -> None:
        self.objects = {
            (o["metadata"]["namespace"], o["metadata"]["name"]): o for o in objects or []
        }
        self.error: Exception | None = None
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def get_namespaced_custom_object(self, group, version, namespace, plural, name, **kwargs):
        self.calls.append(("get", {"group": group, "version": version, "plural": plural, **kwargs}))
        if self.error is not None:
            raise self.error
        try:
            return self.objects[(namespace, name)]
        except KeyError:
            raise ApiException(status=404, reason="Not Found")

    def list_namespaced_custom_object(self, group, version, namespace, plural, **kwargs):
        self.calls.append(("list_namespaced", {"namespace": namespace, **kwargs}))
        if self.error is not None:
            raise self.error
        return {
            "metadata": {"resourceVersion": "42"},
            "items": [o for (ns, _), o in self.objects.items() if ns == namespace],
        }

    def list_cluster_custom_object(self, group, version, plural, **kwargs):
        self.calls.append(("list_cluster", kwargs))
        if self.error is not None:
            raise self.error
        return {"metadata": {"resourceVersion": "42"}, "items": list(self.objects.values())}


class FakeCoreApi:
    def __init__(self, fail_status: dict[str, int] | None = None) -> None:
        self.fail_status = fail_status or {}
        self.created: list[tuple[str, Any, dict[str, Any]]] = []
        self.error: Exception | None = None

    def create_namespaced_pod(self, namespace, body, **kwargs):
        if self.error is not None:
            raise self.error
        status = self.fail_status.get(body.metadata.name)
        if status is not None:
            raise ApiException(status=status, reason="AlreadyExists" if status == 409 else "boom")
        self.created.append((namespace, body, kwargs))
        return body


@pytest.fixture
def web_app() -> dict[str, Any]:
    return make_application()
