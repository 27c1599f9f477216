"""
Unit tests for ErrorGroupingService.
"""
from datetime import datetime, timedelta, timezone

import pytest

from errorlens.core.exceptions import InvalidParametersError, ClusteringCancelledError
from errorlens.clustering.cancellation import CancellationToken
from errorlens.services.grouping import ErrorGroupingService, InMemoryErrorRepository
from conftest import ScriptedStore, SCENARIO_SIMILARITIES, make_record


NOW = datetime.now(timezone.utc)


@pytest.fixture
def records():
    """E1/E2 are recent, E3/E4 are two days old, E5 has no embedding."""
    old = NOW - timedelta(hours=48)
    return [
        make_record("E4", timestamp=old),
        make_record("E2", timestamp=NOW - timedelta(hours=1)),
        make_record("E3", timestamp=old),
        make_record("E1", timestamp=NOW - timedelta(minutes=5)),
        make_record("E5", timestamp=NOW).model_copy(update={"embedding": None}),
    ]


@pytest.fixture
def store():
    return ScriptedStore(["E1", "E2", "E3", "E4", "E5"], SCENARIO_SIMILARITIES)


@pytest.fixture
def service(records, store):
    return ErrorGroupingService(InMemoryErrorRepository(records), store)


class TestInMemoryErrorRepository:
    """Tests for the in-memory record supplier."""

    def test_snapshot_is_ordered_by_id(self, records):
        repo = InMemoryErrorRepository(records)
        assert [r.error_id for r in repo.find_all()] == ["E1", "E2", "E3", "E4", "E5"]

    def test_find_recent(self, records):
        repo = InMemoryErrorRepository(records)
        recent = repo.find_recent(NOW - timedelta(hours=24))
        assert [r.error_id for r in recent] == ["E1", "E2", "E5"]

    def test_find_recent_accepts_naive_datetime(self, records):
        repo = InMemoryErrorRepository(records)
        since = (NOW - timedelta(hours=24)).replace(tzinfo=None)
        assert len(repo.find_recent(since)) == 3


class TestErrorGroupingService:
    """Tests for ErrorGroupingService."""

    def test_group_all_errors(self, service, store):
        groups = service.group_all_errors(similarity_threshold=0.8, min_group_size=2)

        assert [g.error_ids for g in groups] == [["E1", "E2"], ["E3", "E4"]]
        assert "E5" not in store.calls

    def test_group_errors_in_window(self, service):
        groups = service.group_errors(similarity_threshold=0.8, min_group_size=1, hours=24)

        assert [g.error_ids for g in groups] == [["E1", "E2"]]

    def test_window_without_embedded_errors_is_empty(self, store):
        service = ErrorGroupingService(
            InMemoryErrorRepository([make_record("E1").model_copy(update={"embedding": None})]),
            store,
        )

        assert service.group_errors(0.8, 1, 24) == []
        assert store.calls == []

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"similarity_threshold": 0.0},
            {"similarity_threshold": 1.2},
            {"min_group_size": 0},
            {"hours": 0},
            {"hours": -5},
        ],
    )
    def test_invalid_parameters(self, service, kwargs):
        with pytest.raises(InvalidParametersError):
            service.group_errors(**kwargs)

    def test_grouping_statistics_include_singletons(self, service):
        stats = service.get_grouping_statistics(similarity_threshold=0.96, hours=None)

        assert stats.total_groups == 4
        assert stats.total_errors_clustered == 4
        assert stats.largest_group_size == 1
        assert stats.average_group_size == pytest.approx(1.0)

    def test_grouping_statistics_in_window(self, service):
        stats = service.get_grouping_statistics(similarity_threshold=0.8, hours=24)

        assert stats.total_groups == 1
        assert stats.largest_group_size == 2

    def test_cancellation_propagates(self, service):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ClusteringCancelledError):
            service.group_all_errors(0.8, 2, cancel_token=token)
