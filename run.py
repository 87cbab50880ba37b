#!/usr/bin/env python3
"""
ekspose - Entry Point

A Kubernetes controller that watches Deployments and creates a Service and
an Ingress for each of them, removing both when the Deployment goes away.

Usage:
    python run.py [--kubeconfig PATH] [--in-cluster] [--namespace NAMESPACE]
                  [--workers N] [--dry-run] [--verbose]
"""

import argparse
import logging
import signal
import sys
import threading

from kubernetes import config
from kubernetes.config.config_exception import ConfigException

from ekspose.cluster import ClusterClient
from ekspose.config import DEFAULT_WORKERS
from ekspose.controller import ExposeController
from ekspose.informer import DeploymentInformer

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def load_kubernetes_config(kubeconfig, in_cluster: bool) -> None:
    """Load credentials; fall back to the pod service account if kubeconfig fails."""
    if in_cluster:
        config.load_incluster_config()
        logger.info("Loaded in-cluster configuration")
        return

    try:
        config.load_kube_config(config_file=kubeconfig)
        logger.info(f"Loaded kubeconfig from {kubeconfig or 'default location'}")
    except (ConfigException, OSError) as e:
        logger.warning(f"Error loading kubeconfig: {e}; trying in-cluster config")
        config.load_incluster_config()
        logger.info("Loaded in-cluster configuration")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="ekspose - Expose Deployments through a Service and an Ingress"
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to a kubeconfig file (default: ~/.kube/config)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
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
        help=f"Number of reconcile workers (default: {DEFAULT_WORKERS})"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (no changes made)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )

    args = parser.parse_args()

    # Set log level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.workers < 1:
        parser.error("--workers must be at least 1")

    try:
        load_kubernetes_config(args.kubeconfig, args.in_cluster)
    except Exception as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)

    stop_event = threading.Event()

    def request_stop(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    informer = DeploymentInformer(namespace=args.namespace)
    controller = ExposeController(
        cluster=ClusterClient(),
        informer=informer,
        dry_run=args.dry_run
    )

    informer.start(stop_event)
    try:
        started = controller.run(stop_event, workers=args.workers)
    except Exception as e:
        logger.error(f"Controller error: {e}")
        sys.exit(1)

    if not started:
        sys.exit(1)
    logger.info("Controller stopped")


if __name__ == "__main__":
    main()
