"""Tests for ExposeController and its worker loop."""

import threading

import pytest
from unittest.mock import MagicMock

from ekspose.controller import ExposeController
from ekspose.errors import NotFoundError, TransientRemoteError
from ekspose.models import ReconcileOutcome
from ekspose.ratelimiter import ItemExponentialFailureRateLimiter
from ekspose.workqueue import RateLimitingQueue


@pytest.fixture
def queue(fake_clock):
    limiter = ItemExponentialFailureRateLimiter(base_delay=1.0, max_delay=60.0)
    return RateLimitingQueue(rate_limiter=limiter, name="ekspose", clock=fake_clock)


@pytest.fixture
def controller(mock_cluster, mock_informer, queue):
    return ExposeController(mock_cluster, mock_informer, queue=queue)


class TestWiring:
    """Test cases for controller construction."""

    def test_router_registered_on_informer(self, mock_cluster, mock_informer, queue):
        controller = ExposeController(mock_cluster, mock_informer, queue=queue)

        mock_informer.add_event_handler.assert_called_once_with(
            on_add=controller.router.on_add,
            on_delete=controller.router.on_delete,
        )

    def test_default_queue(self, mock_cluster, mock_informer):
        controller = ExposeController(mock_cluster, mock_informer)

        assert controller.queue.name == "ekspose"


class TestProcessNextItem:
    """Test cases for the worker loop feedback."""

    def test_applied_forgets_key(self, controller, queue, mock_cluster, web_deployment):
        mock_cluster.get_live_deployment.return_value = web_deployment
        queue.rate_limiter.when("ns1/web")
        queue.rate_limiter.when("ns1/web")
        queue.add("ns1/web")

        assert controller.process_next_item()

        assert queue.num_requeues("ns1/web") == 0
        assert len(queue) == 0
        mock_cluster.create_service.assert_called_once()
        mock_cluster.create_ingress.assert_called_once()

    def test_deleted_cascade_forgets_key(self, controller, queue, mock_cluster):
        mock_cluster.get_live_deployment.side_effect = NotFoundError("gone")
        queue.add("ns1/web")

        assert controller.process_next_item()

        assert queue.num_requeues("ns1/web") == 0
        mock_cluster.delete_service.assert_called_once_with("ns1", "web")
        mock_cluster.delete_ingress.assert_called_once_with("ns1", "web")

    def test_failure_is_retried_with_backoff(self, controller, queue, fake_clock, mock_cluster, web_deployment):
        mock_cluster.get_live_deployment.return_value = web_deployment
        mock_cluster.create_service.side_effect = [TransientRemoteError("unavailable"), None]
        queue.add("ns1/web")

        assert controller.process_next_item()

        mock_cluster.create_ingress.assert_not_called()
        assert queue.num_requeues("ns1/web") == 1
        assert len(queue) == 0

        fake_clock.advance(1.0)
        assert controller.process_next_item()

        mock_cluster.create_ingress.assert_called_once()
        assert queue.num_requeues("ns1/web") == 0

    def test_malformed_key_is_dropped(self, controller, queue, fake_clock, mock_cluster):
        queue.add("garbage")

        assert controller.process_next_item()

        assert mock_cluster.mock_calls == []
        assert queue.num_requeues("garbage") == 0
        fake_clock.advance(3600)
        queue.shut_down()
        assert queue.get() == (None, True)

    def test_unexpected_error_is_retried(self, controller, queue):
        controller.reconciler = MagicMock()
        controller.reconciler.reconcile.side_effect = RuntimeError("bug")
        queue.add("ns1/web")

        assert controller.process_next_item()

        assert queue.num_requeues("ns1/web") == 1

    def test_key_marked_done(self, controller, queue):
        controller.reconciler = MagicMock()
        controller.reconciler.reconcile.return_value = ReconcileOutcome.applied()
        queue.add("ns1/web")
        controller.process_next_item()

        queue.add("ns1/web")

        assert len(queue) == 1

    def test_returns_false_on_shutdown(self, controller, queue):
        queue.shut_down()

        assert not controller.process_next_item()


class TestRun:
    """Test cases for ExposeController.run."""

    def test_abstains_when_cache_never_syncs(self, controller, mock_informer, mock_cluster):
        mock_informer.has_synced.return_value = False
        stop_event = threading.Event()
        stop_event.set()

        assert controller.run(stop_event) is False

        assert controller.queue.shutting_down
        assert controller._workers == []
        mock_cluster.get_live_deployment.assert_not_called()

    def test_processes_keys_until_stopped(self, controller, queue):
        stop_event = threading.Event()
        reconciled = []

        def reconcile(key):
            reconciled.append(key)
            stop_event.set()
            return ReconcileOutcome.applied()

        controller.reconciler = MagicMock()
        controller.reconciler.reconcile.side_effect = reconcile
        queue.add("ns1/web")

        assert controller.run(stop_event, workers=2) is True

        assert reconciled == ["ns1/web"]
        assert queue.shutting_down
        assert controller._workers == []

    def test_stops_after_current_item(self, controller, queue):
        stop_event = threading.Event()
        reconciled = []

        def reconcile(key):
            reconciled.append(key)
            stop_event.set()
            return ReconcileOutcome.applied()

        controller.reconciler = MagicMock()
        controller.reconciler.reconcile.side_effect = reconcile
        for i in range(5):
            queue.add(f"ns1/d{i}")

        assert controller.run(stop_event, workers=1) is True

        assert reconciled == ["ns1/d0"]

    def test_run_worker_returns_when_stopped(self, controller, queue):
        stop_event = threading.Event()
        stop_event.set()
        controller.reconciler = MagicMock()
        queue.add("ns1/web")

        controller.run_worker(stop_event)

        controller.reconciler.reconcile.assert_not_called()
        assert len(queue) == 1
