"""Tests for rank-then-bucket quintile scoring."""

from collections import Counter

import pytest

from retail_analytics.foundation.quintiles import bucket_for_position, ntile


class TestBucketForPosition:
    """Test NTILE bucket sizing."""

    def test_remainder_goes_to_first_buckets(self):
        """7 customers into 5 buckets: sizes 2, 2, 1, 1, 1."""
        buckets = [bucket_for_position(p, 7, 5) for p in range(7)]
        assert buckets == [1, 1, 2, 2, 3, 4, 5]

    def test_even_split(self):
        buckets = [bucket_for_position(p, 10, 5) for p in range(10)]
        assert Counter(buckets) == {1: 2, 2: 2, 3: 2, 4: 2, 5: 2}

    def test_fewer_members_than_buckets(self):
        assert [bucket_for_position(p, 3, 5) for p in range(3)] == [1, 2, 3]

    def test_invalid_position_raises(self):
        with pytest.raises(ValueError, match="position must be in"):
            bucket_for_position(5, 5, 5)

    def test_invalid_bucket_count_raises(self):
        with pytest.raises(ValueError, match="buckets must be positive"):
            bucket_for_position(0, 5, 0)


class TestNtile:
    """Test ntile over customer mappings."""

    def test_ascending_order(self):
        scores = ntile({"C1": 10, "C2": 30, "C3": 20, "C4": 40, "C5": 50})
        assert scores == {"C1": 1, "C3": 2, "C2": 3, "C4": 4, "C5": 5}

    def test_descending_order(self):
        scores = ntile({"C1": 10, "C2": 30, "C3": 20}, descending=True)
        assert scores == {"C2": 1, "C3": 2, "C1": 3}

    def test_ties_split_across_buckets_by_customer_id(self):
        """Equal values are bucketed by rank position, ordered by key."""
        values = {f"C{i:02d}": 1 for i in range(10)}

        scores = ntile(values, 5)

        assert scores["C00"] == 1
        assert scores["C01"] == 1
        assert scores["C02"] == 2
        assert scores["C09"] == 5
        assert Counter(scores.values()) == {1: 2, 2: 2, 3: 2, 4: 2, 5: 2}

    def test_descending_ties_still_break_by_ascending_key(self):
        scores = ntile({"B": 5, "A": 5, "C": 1}, 5, descending=True)
        assert scores == {"A": 1, "B": 2, "C": 3}

    def test_single_member_gets_bucket_one(self):
        assert ntile({"C1": 100}) == {"C1": 1}

    def test_empty_mapping(self):
        assert ntile({}) == {}
