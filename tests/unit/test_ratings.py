from __future__ import annotations

from decimal import Decimal

import pytest

from modules.catalog.ratings import add_vote, weighted_average

pytestmark = pytest.mark.unit


class TestAddVote:
    def test_counts_are_ordered_from_five_stars(self):
        assert add_vote([0, 0, 0, 0, 0], 5) == [1, 0, 0, 0, 0]
        assert add_vote([0, 0, 0, 0, 0], 1) == [0, 0, 0, 0, 1]

    def test_does_not_mutate_input(self):
        counts = [2, 0, 1, 0, 0]
        add_vote(counts, 3)
        assert counts == [2, 0, 1, 0, 0]

    def test_malformed_counts_start_over(self):
        assert add_vote([], 4) == [0, 1, 0, 0, 0]

    @pytest.mark.parametrize("rating", [0, 6, -1])
    def test_out_of_range(self, rating):
        with pytest.raises(ValueError):
            add_vote([0, 0, 0, 0, 0], rating)


class TestWeightedAverage:
    def test_no_votes(self):
        assert weighted_average([0, 0, 0, 0, 0]) == Decimal("0.00")

    def test_mixed_votes(self):
        # (5 * 2 + 4 * 1) / 3
        assert weighted_average([2, 1, 0, 0, 0]) == Decimal("4.67")

    def test_single_low_vote(self):
        assert weighted_average([0, 0, 0, 0, 1]) == Decimal("1.00")
