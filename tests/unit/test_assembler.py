"""
Unit tests for group assembly and ranking.
"""
import pytest

from errorlens.clustering.assembler import (
    GroupAssembler,
    average_pairwise_similarity,
    most_common_severity,
)
from errorlens.clustering.ranking import filter_and_rank
from conftest import make_record


class TestGroupAssembler:
    """Tests for GroupAssembler."""

    def test_seed_is_representative(self):
        members = [
            make_record("a", error_type="DbTimeout", message="pool exhausted"),
            make_record("b", error_type="SocketTimeout"),
        ]

        group = GroupAssembler().assemble(7, members)

        assert group.group_id == 7
        assert group.display_id == "GROUP-7"
        assert group.representative_error_type == "DbTimeout"
        assert group.representative_error_message == "pool exhausted"
        assert group.group_name == "DbTimeout - 2 occurrences"
        assert group.error_count == 2
        assert group.error_ids == ["a", "b"]

    def test_singleton_similarity_is_one(self):
        group = GroupAssembler().assemble(1, [make_record("a", [0.3, -0.2, 0.9])])

        assert group.avg_similarity == 1.0
        assert group.group_name == "TimeoutError - 1 occurrences"

    def test_empty_cluster_rejected(self):
        with pytest.raises(ValueError):
            GroupAssembler().assemble(1, [])


class TestAveragePairwiseSimilarity:
    """Tests for the pairwise cosine average."""

    def test_identical_vectors(self):
        records = [make_record(str(i), [0.5, 0.5, 0.0]) for i in range(3)]
        assert average_pairwise_similarity(records) == pytest.approx(1.0)

    def test_mean_over_all_pairs(self):
        # pairs: (x, y) = 0, (x, xy) = 1/sqrt(2), (y, xy) = 1/sqrt(2)
        records = [
            make_record("x", [1.0, 0.0, 0.0]),
            make_record("y", [0.0, 1.0, 0.0]),
            make_record("xy", [1.0, 1.0, 0.0]),
        ]
        expected = (0.0 + 2 * (2 ** -0.5)) / 3
        assert average_pairwise_similarity(records) == pytest.approx(expected)

    def test_scale_does_not_matter(self):
        records = [make_record("a", [2.0, 0.0, 0.0]), make_record("b", [0.001, 0.0, 0.0])]
        assert average_pairwise_similarity(records) == pytest.approx(1.0)

    def test_zero_vector_scores_zero(self):
        records = [make_record("a", [0.0, 0.0, 0.0]), make_record("b", [1.0, 0.0, 0.0])]
        assert average_pairwise_similarity(records) == pytest.approx(0.0)


class TestMostCommonSeverity:
    """Tests for severity aggregation."""

    def test_majority_wins(self):
        records = [make_record(str(i), severity=s) for i, s in enumerate(["WARN", "ERROR", "ERROR"])]
        assert most_common_severity(records) == "ERROR"

    @pytest.mark.parametrize(
        "severities, expected",
        [
            (["WARN", "ERROR"], "WARN"),
            (["ERROR", "WARN"], "ERROR"),
            (["CRITICAL", "WARN", "WARN", "CRITICAL"], "CRITICAL"),
            (["INFO", "WARN", "ERROR"], "INFO"),
        ],
    )
    def test_ties_go_to_first_seen(self, severities, expected):
        records = [make_record(str(i), severity=s) for i, s in enumerate(severities)]
        assert most_common_severity(records) == expected

    def test_assembled_group_severity(self, scenario_records):
        group = GroupAssembler().assemble(1, scenario_records)
        assert group.severity == "CRITICAL"


class TestFilterAndRank:
    """Tests for size filtering and stable ordering."""

    @pytest.fixture
    def groups(self):
        assembler = GroupAssembler()
        sizes = [1, 3, 2, 3, 1, 2]
        groups = []
        for group_id, size in enumerate(sizes, start=1):
            members = [make_record(f"g{group_id}-{i}") for i in range(size)]
            groups.append(assembler.assemble(group_id, members))
        return groups

    def test_sorted_by_size_then_discovery(self, groups):
        ranked = filter_and_rank(groups, min_group_size=1)
        assert [g.group_id for g in ranked] == [2, 4, 3, 6, 1, 5]

    def test_min_group_size_filter(self, groups):
        ranked = filter_and_rank(groups, min_group_size=2)
        assert [g.group_id for g in ranked] == [2, 4, 3, 6]

    def test_everything_filtered(self, groups):
        assert filter_and_rank(groups, min_group_size=4) == []

    def test_input_not_modified(self, groups):
        before = [g.group_id for g in groups]
        filter_and_rank(groups, min_group_size=2)
        assert [g.group_id for g in groups] == before
