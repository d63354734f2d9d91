"""Command line entry point for the Application Operator."""

import argparse
import logging
import sys

from kubernetes import config

from .config import DEFAULT_WORKERS, RESYNC_INTERVAL_SECONDS
from .reconciler import ApplicationReconciler
from .store import KubernetesStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Application Operator - Create Pods for Application resources"
    )
    parser.add_argument(
        "--namespace", "-n",
        default="",
        help="Namespace to watch (default: all namespaces)"
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Number of concurrent reconcile workers (default: {DEFAULT_WORKERS})"
    )
    parser.add_argument(
        "--resync-interval",
        type=float,
        default=RESYNC_INTERVAL_SECONDS,
        help="Seconds between full resyncs of all Applications (default: disabled)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (no pods created)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Load Kubernetes configuration
    try:
        if args.in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster configuration")
        else:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
    except Exception as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)

    reconciler = ApplicationReconciler(
        store=KubernetesStore(),
        dry_run=args.dry_run
    )
    controller = reconciler.setup_with_manager(
        namespace=args.namespace,
        workers=args.workers,
        resync_interval=args.resync_interval
    )

    try:
        controller.run()
    except KeyboardInterrupt:
        controller.stop()
        logger.info("Controller stopped")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Controller error: {e}")
        sys.exit(1)
