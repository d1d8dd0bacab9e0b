"""
Tests for IdempotencyCoordinator

Tests cover:
- begin() outcome branching against a mocked store
- complete()/abort() store calls
- run() wrapper
- End-to-end scenarios on the in-memory store (duplicates, abort, TTL, races)
"""

import threading
from unittest.mock import Mock

import pytest

from idempotency_guard.services.errors import (
    IdempotencyRecordNotFoundError,
    PersistenceError,
    UnknownIdempotencyKeyError,
    UseCaseAlreadyInProgressError,
)
from idempotency_guard.services.idempotency import IdempotencyCoordinator
from idempotency_guard.services.keys import derive_key
from idempotency_guard.services.outcomes import OutcomeKind
from idempotency_guard.services.persistence import (
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
    InMemoryIdempotencyStore,
    StoreTTL,
)

USE_CASE = "my-use-case"
PAYLOAD = {"name": "John Doe Dorian", "age": 43}
RESULT = {"id": 1, "name": "John Doe Dorian", "age": 43}


@pytest.fixture
def mock_store():
    """Mock store honouring the abstract contract."""
    store = Mock(spec=IdempotencyStore)
    store.now.return_value = 5_000
    return store


@pytest.fixture
def memory_store(clock):
    return InMemoryIdempotencyStore(ttl=StoreTTL(in_progress_seconds=10, completed_seconds=60), clock=clock)


@pytest.fixture
def coordinator(memory_store):
    return IdempotencyCoordinator(memory_store)


def record(status, result_data=None, expiration=10_000):
    return IdempotencyRecord(
        use_case="test",
        key="k",
        status=status,
        expiration=expiration,
        result_data=result_data,
    )


class TestBegin:
    """begin() against a mocked store."""

    def test_started_when_insert_succeeds(self, mock_store):
        mock_store.conditional_insert.return_value = True
        key = derive_key("test", {"foo": "bar"})

        outcome = IdempotencyCoordinator(mock_store).begin("test", {"foo": "bar"})

        assert outcome.kind is OutcomeKind.STARTED
        assert outcome.key == key
        mock_store.conditional_insert.assert_called_once_with("test", key, IdempotencyStatus.IN_PROGRESS)
        mock_store.read.assert_not_called()

    def test_already_in_progress(self, mock_store):
        mock_store.conditional_insert.return_value = False
        mock_store.read.return_value = record(IdempotencyStatus.IN_PROGRESS)
        key = derive_key("test", {"foo": "bar"})

        outcome = IdempotencyCoordinator(mock_store).begin("test", {"foo": "bar"})

        assert outcome.is_already_in_progress
        assert outcome.result is None
        mock_store.read.assert_called_once_with("test", key)

    def test_already_done_returns_cached_result(self, mock_store):
        mock_store.conditional_insert.return_value = False
        mock_store.read.return_value = record(IdempotencyStatus.COMPLETED, {"baz": "qux"})

        outcome = IdempotencyCoordinator(mock_store).begin("test", {"foo": "bar"})

        assert outcome.is_already_done
        assert outcome.result == {"baz": "qux"}

    def test_vanished_record_raises_unknown_key(self, mock_store):
        mock_store.conditional_insert.return_value = False
        mock_store.read.return_value = None

        with pytest.raises(UnknownIdempotencyKeyError) as exc_info:
            IdempotencyCoordinator(mock_store).begin("test", {"foo": "bar"})

        assert exc_info.value.use_case == "test"
        assert exc_info.value.key == derive_key("test", {"foo": "bar"})

    @pytest.mark.parametrize("status", [IdempotencyStatus.IN_PROGRESS, IdempotencyStatus.COMPLETED])
    def test_expired_record_raises_unknown_key(self, mock_store, status):
        """An expired record read after a rejected insert is treated as absent."""
        mock_store.conditional_insert.return_value = False
        mock_store.now.return_value = 10_000
        mock_store.read.return_value = record(status, {"baz": "qux"}, expiration=5_000)

        with pytest.raises(UnknownIdempotencyKeyError):
            IdempotencyCoordinator(mock_store).begin("test", {"foo": "bar"})

    def test_persistence_error_propagates(self, mock_store):
        mock_store.conditional_insert.side_effect = PersistenceError("test", "k", TimeoutError("timed out"))

        with pytest.raises(PersistenceError, match="timed out"):
            IdempotencyCoordinator(mock_store).begin("test", {"foo": "bar"})


class TestCompleteAbort:

    def test_complete_updates_record(self, mock_store):
        IdempotencyCoordinator(mock_store).complete("test", {"foo": "bar"}, {"baz": "qux"})

        mock_store.conditional_update.assert_called_once_with(
            "test", derive_key("test", {"foo": "bar"}), IdempotencyStatus.COMPLETED, {"baz": "qux"}
        )

    def test_complete_without_begin_raises_not_found(self, coordinator):
        with pytest.raises(IdempotencyRecordNotFoundError):
            coordinator.complete(USE_CASE, PAYLOAD, RESULT)

    def test_abort_deletes_record(self, mock_store):
        IdempotencyCoordinator(mock_store).abort("test", {"foo": "bar"})

        mock_store.delete.assert_called_once_with("test", derive_key("test", {"foo": "bar"}))

    def test_abort_without_record_is_not_an_error(self, coordinator):
        coordinator.abort(USE_CASE, PAYLOAD)
        coordinator.abort(USE_CASE, PAYLOAD)


class TestScenarios:
    """Full protocol on the in-memory store."""

    def test_duplicate_then_completed(self, coordinator):
        """Started, duplicate in progress, complete, then cached result."""
        assert coordinator.begin(USE_CASE, PAYLOAD).kind is OutcomeKind.STARTED
        assert coordinator.begin(USE_CASE, dict(PAYLOAD)).kind is OutcomeKind.ALREADY_IN_PROGRESS

        coordinator.complete(USE_CASE, PAYLOAD, RESULT)

        outcome = coordinator.begin(USE_CASE, PAYLOAD)
        assert outcome.kind is OutcomeKind.ALREADY_DONE
        assert outcome.result == RESULT

    def test_abort_after_failure_allows_fresh_attempt(self, coordinator):
        assert coordinator.begin(USE_CASE, PAYLOAD).is_started

        try:
            raise RuntimeError("use case failed")
        except RuntimeError:
            coordinator.abort(USE_CASE, PAYLOAD)

        assert coordinator.begin(USE_CASE, PAYLOAD).is_started

    def test_abort_after_completion_allows_fresh_attempt(self, coordinator):
        coordinator.begin(USE_CASE, PAYLOAD)
        coordinator.complete(USE_CASE, PAYLOAD, RESULT)
        coordinator.abort(USE_CASE, PAYLOAD)

        assert coordinator.begin(USE_CASE, PAYLOAD).is_started

    def test_abandoned_record_expires(self, coordinator, clock):
        assert coordinator.begin(USE_CASE, PAYLOAD).is_started
        clock.advance(9)
        assert coordinator.begin(USE_CASE, PAYLOAD).is_already_in_progress

        clock.advance(1)
        assert coordinator.begin(USE_CASE, PAYLOAD).is_started

    def test_completed_record_uses_completed_ttl(self, coordinator, clock):
        coordinator.begin(USE_CASE, PAYLOAD)
        coordinator.complete(USE_CASE, PAYLOAD, RESULT)

        clock.advance(30)
        assert coordinator.begin(USE_CASE, PAYLOAD).is_already_done

        clock.advance(30)
        assert coordinator.begin(USE_CASE, PAYLOAD).is_started

    def test_use_cases_do_not_collide(self, coordinator):
        assert coordinator.begin("create-user", PAYLOAD).is_started
        assert coordinator.begin("update-user", PAYLOAD).is_started

    def test_concurrent_begin_has_single_winner(self, coordinator):
        barrier = threading.Barrier(2)
        outcomes = []

        def attempt():
            barrier.wait()
            outcomes.append(coordinator.begin(USE_CASE, PAYLOAD).kind)

        threads = [threading.Thread(target=attempt) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == sorted([OutcomeKind.STARTED, OutcomeKind.ALREADY_IN_PROGRESS])


class TestRun:
    """run() executes at most once per input."""

    def test_executes_once_and_caches(self, coordinator):
        operation = Mock(return_value=RESULT)

        assert coordinator.run(USE_CASE, PAYLOAD, operation) == RESULT
        assert coordinator.run(USE_CASE, PAYLOAD, operation) == RESULT
        operation.assert_called_once_with(PAYLOAD)

    def test_failure_aborts_and_reraises(self, coordinator):
        failing = Mock(side_effect=ValueError("boom"))

        with pytest.raises(ValueError, match="boom"):
            coordinator.run(USE_CASE, PAYLOAD, failing)

        operation = Mock(return_value=RESULT)
        assert coordinator.run(USE_CASE, PAYLOAD, operation) == RESULT
        operation.assert_called_once()

    def test_in_progress_raises(self, coordinator):
        coordinator.begin(USE_CASE, PAYLOAD)
        operation = Mock()

        with pytest.raises(UseCaseAlreadyInProgressError) as exc_info:
            coordinator.run(USE_CASE, PAYLOAD, operation)

        assert exc_info.value.use_case == USE_CASE
        operation.assert_not_called()
