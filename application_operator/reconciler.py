"""Reconciliation logic for the Application Operator."""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .application import NamespacedName, build_pod
from .errors import NotFoundError, ReconcileCancelled, TransientStoreError
from .retry import FixedDelay, RetryPolicy
from .store import ApplicationStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconcile pass."""
    requeue_after: Optional[float] = None
    error: Optional[BaseException] = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


class ApplicationReconciler:
    """
    Creates the child Pods of an Application.

    Pods ``<name>-0`` .. ``<name>-<replicas-1>`` are created in index order on
    every pass. Existing Pods are never updated or deleted, and a Pod that
    already exists fails its create like any other error.
    """

    def __init__(
        self,
        store: ApplicationStore,
        retry_policy: Optional[RetryPolicy] = None,
        dry_run: bool = False
    ):
        """
        Initialize the reconciler.

        Args:
            store: Store to read Applications from and create Pods in
            retry_policy: Requeue delay for failed passes (default: fixed 60s)
            dry_run: If True, don't create any Pods
        """
        self.store = store
        self.retry_policy = retry_policy or FixedDelay()
        self.dry_run = dry_run

    def _retry_later(self, error: BaseException) -> ReconcileResult:
        return ReconcileResult(
            requeue_after=self.retry_policy.next_delay(),
            error=error
        )

    def reconcile(
        self,
        request: NamespacedName,
        stop_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None
    ) -> ReconcileResult:
        """
        Reconcile one Application.

        Args:
            request: Namespace and name of the Application
            stop_event: When set, no further store calls are issued
            timeout: Timeout in seconds for each store call

        Returns:
            ReconcileResult; a failed pass carries the error and a requeue delay
        """
        if stop_event is not None and stop_event.is_set():
            return self._retry_later(ReconcileCancelled(f"reconcile of {request} cancelled"))

        try:
            app = self.store.get_application(request, timeout=timeout)
        except NotFoundError:
            logger.info(f"Application {request} is not found")
            return ReconcileResult()
        except TransientStoreError as e:
            logger.error(f"failed to get the Application {request}: {e}")
            return self._retry_later(e)

        for i in range(app.replicas):
            pod = build_pod(app, i)
            pod_key = f"{pod.metadata.namespace}/{pod.metadata.name}"

            if stop_event is not None and stop_event.is_set():
                return self._retry_later(ReconcileCancelled(f"reconcile of {request} cancelled"))

            if self.dry_run:
                logger.info(f"[DRY-RUN] Would create pod {pod_key} for Application {request}")
                continue

            try:
                self.store.create_pod(pod, timeout=timeout)
            except TransientStoreError as e:
                logger.error(f"failed to create pod {pod_key} for the Application {request}: {e}")
                return self._retry_later(e)
            logger.info(f"created pod {pod_key} for the Application {request}")

        logger.info(f"all pods have been created for Application {request}")
        return ReconcileResult()

    def setup_with_manager(
        self,
        namespace: str = "",
        workers: int = 1,
        resync_interval: float = 0
    ):
        """
        Register this reconciler for Application events.

        Args:
            namespace: Namespace to watch ("" for all namespaces)
            workers: Number of concurrent reconcile workers
            resync_interval: Seconds between full resyncs (0 disables)

        Returns:
            ApplicationController that invokes this reconciler on change
        """
        from .controller import ApplicationController

        return ApplicationController(
            reconciler=self,
            store=self.store,
            namespace=namespace,
            workers=workers,
            resync_interval=resync_interval
        )
