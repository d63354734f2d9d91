"""Main controller logic for the Application Operator."""

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from kubernetes.client.rest import ApiException

from .application import NamespacedName
from .config import WATCH_TIMEOUT_SECONDS, WATCH_RETRY_SECONDS
from .errors import TransientStoreError
from .workqueue import WorkQueue

logger = logging.getLogger(__name__)


class ApplicationController:
    """
    Watches Application objects and feeds their identities to the reconciler.

    Every event only enqueues the object's namespace/name. Workers reconcile
    from the store's current content, so a burst of events for one
    Application results in a single pass.

    The watch resumes from the resourceVersion of the last list or event, so
    existing Applications are not replayed when a watch times out and
    restarts. Only an expired version (410 Gone) triggers a full relist.
    """

    def __init__(
        self,
        reconciler,
        store,
        namespace: str = "",
        workers: int = 1,
        resync_interval: float = 0
    ):
        """
        Initialize the controller.

        Args:
            reconciler: ApplicationReconciler invoked for each queued identity
            store: KubernetesStore used to list and watch Applications
            namespace: Namespace to watch ("" for all namespaces)
            workers: Number of worker threads
            resync_interval: Seconds between full resyncs (0 disables)
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        self.reconciler = reconciler
        self.store = store
        self.namespace = namespace
        self.workers = workers
        self.resync_interval = resync_interval

        self.queue = WorkQueue()
        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []
        self._resource_version: Optional[str] = None
        self._listed = False

    def load_existing_applications(self) -> int:
        """
        Enqueue all existing Applications on startup.

        Returns:
            Number of Applications enqueued
        """
        logger.info("Loading existing applications...")
        applications, resource_version = self.store.list_applications(self.namespace)

        for obj in applications:
            self.queue.add(NamespacedName.from_object(obj))

        self._resource_version = resource_version
        self._listed = True

        count = len(applications)
        logger.info(f"Enqueued {count} existing applications")
        return count

    def handle_event(self, event_type: str, obj: Dict[str, Any]) -> None:
        """
        Handle an Application watch event.

        Args:
            event_type: ADDED, MODIFIED, DELETED or ERROR
            obj: The Application object from the event
        """
        if event_type == "ERROR":
            logger.warning(f"Watch returned an error event: {obj}")
            return
        if event_type == "BOOKMARK":
            return

        identity = NamespacedName.from_object(obj)
        logger.info(f"Application {event_type}: {identity}")
        self.queue.add(identity)

    def _relist(self) -> None:
        """Forget the watch position so the next watch starts from a fresh list."""
        logger.info("Watch resourceVersion expired, relisting applications")
        self._resource_version = None
        self._listed = False

    def watch_applications(self) -> None:
        """Watch for Application events in a loop."""
        logger.info("Starting application watcher...")

        while not self._stop_event.is_set():
            if not self._listed:
                try:
                    self.load_existing_applications()
                except TransientStoreError as e:
                    logger.error(f"Failed to list applications: {e}")
                    self._stop_event.wait(WATCH_RETRY_SECONDS)
                    continue

            try:
                for event in self.store.watch_applications(
                    namespace=self.namespace,
                    timeout=WATCH_TIMEOUT_SECONDS,
                    resource_version=self._resource_version
                ):
                    if self._stop_event.is_set():
                        break

                    obj = event["object"]
                    if event["type"] == "ERROR":
                        if isinstance(obj, dict) and obj.get("code") == 410:
                            self._relist()
                            break
                        self.handle_event("ERROR", obj)
                        continue

                    resource_version = obj.get("metadata", {}).get("resourceVersion")
                    if resource_version:
                        self._resource_version = resource_version
                    self.handle_event(event["type"], obj)

            except ApiException as e:
                if e.status == 410:
                    self._relist()
                    continue
                logger.error(f"Application watch error: {e}")
                self._stop_event.wait(WATCH_RETRY_SECONDS)
            except TransientStoreError as e:
                logger.error(f"Application watch error: {e}")
                self._stop_event.wait(WATCH_RETRY_SECONDS)
            except Exception as e:
                logger.error(f"Unexpected error in application watcher: {e}")
                self._stop_event.wait(WATCH_RETRY_SECONDS)

    def process_next_item(self, timeout: Optional[float] = None) -> bool:
        """
        Reconcile the next queued identity.

        Args:
            timeout: Seconds to wait for an item (None waits until shutdown)

        Returns:
            False once the queue has been shut down, True otherwise
        """
        key = self.queue.get(timeout=timeout)
        if key is None:
            return not self.queue.shutting_down

        try:
            result = self.reconciler.reconcile(key, stop_event=self._stop_event)
        except Exception as e:
            delay = self.reconciler.retry_policy.next_delay()
            logger.exception(f"Reconciler raised for {key}, requeueing in {delay}s: {e}")
            self.queue.add_after(key, delay)
            self.queue.done(key)
            return True

        if result.error is not None:
            logger.error(f"Reconcile of {key} failed: {result.error}")
        if result.requeue:
            logger.info(f"Requeueing {key} in {result.requeue_after}s")
            self.queue.add_after(key, result.requeue_after)

        self.queue.done(key)
        return True

    def worker(self) -> None:
        """Process queued identities until the queue shuts down."""
        while self.process_next_item():
            pass

    def periodic_resync(self) -> None:
        """Periodically enqueue all Applications."""
        logger.info(f"Starting periodic resync (interval: {self.resync_interval}s)")

        while not self._stop_event.wait(self.resync_interval):
            logger.debug("Running periodic resync...")
            try:
                self.load_existing_applications()
            except TransientStoreError as e:
                logger.error(f"Periodic resync failed: {e}")

    def _start_thread(self, target, name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def start(self) -> None:
        """Start watcher, worker and resync threads."""
        try:
            self.load_existing_applications()
        except TransientStoreError as e:
            logger.error(f"Failed to load existing applications: {e}")

        self._start_thread(self.watch_applications, "application-watcher")
        for i in range(self.workers):
            self._start_thread(self.worker, f"reconcile-worker-{i}")
        if self.resync_interval > 0:
            self._start_thread(self.periodic_resync, "periodic-resync")

    def run(self) -> None:
        """Run the controller."""
        logger.info("=" * 60)
        logger.info("Starting Application Operator")
        logger.info("=" * 60)
        logger.info(f"Namespace: {self.namespace or 'all namespaces'}")
        logger.info(f"Workers: {self.workers}")
        logger.info(f"Dry run: {self.reconciler.dry_run}")

        self.start()

        logger.info("Controller is running. Press Ctrl+C to stop.")

        # Keep main thread alive
        try:
            while not self._stop_event.is_set():
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutdown requested...")
            self.stop()

    def stop(self) -> None:
        """Stop the controller."""
        logger.info("Stopping controller...")
        pending = self.queue.pending_delayed
        if pending:
            logger.info(f"Dropping {pending} pending requeue(s)")
        self._stop_event.set()
        self.queue.shutdown()
        self.store.stop_watch()
