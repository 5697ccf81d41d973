"""Tests for tag reconciliation."""

from reqgather.storage.base import TagDiff, apply_tag_diff, reconcile_tags


class TestReconcileTags:
    """Tests for reconcile_tags."""

    def test_add_and_remove(self):
        """Removals and additions are computed against the current set."""
        diff = reconcile_tags(["a", "b"], ["b", "c"])

        assert diff.to_remove == ["a"]
        assert diff.to_add == ["c"]

    def test_identical_sets_are_noop(self):
        """Reconciling a set against itself changes nothing."""
        diff = reconcile_tags(["a", "b"], ["b", "a"])

        assert diff.is_empty
        assert diff == TagDiff()

    def test_clear_all(self):
        """An empty desired set removes everything."""
        diff = reconcile_tags(["a", "b"], [])

        assert diff.to_remove == ["a", "b"]
        assert diff.to_add == []

    def test_from_empty(self):
        """Everything desired is added when nothing is stored."""
        diff = reconcile_tags([], ["x", "y"])

        assert diff.to_remove == []
        assert diff.to_add == ["x", "y"]

    def test_duplicates_ignored(self):
        """Duplicate inputs do not produce duplicate changes."""
        diff = reconcile_tags(["a", "a"], ["b", "b"])

        assert diff.to_remove == ["a"]
        assert diff.to_add == ["b"]

    def test_case_sensitive(self):
        """Tags differing by case are different tags."""
        diff = reconcile_tags(["API"], ["api"])

        assert diff.to_remove == ["API"]
        assert diff.to_add == ["api"]


class TestApplyTagDiff:
    """Tests for apply_tag_diff."""

    def test_result_matches_desired_set(self):
        """Applying the diff yields exactly the desired set."""
        current = ["a", "b", "c"]
        desired = ["c", "d"]

        result = apply_tag_diff(current, reconcile_tags(current, desired))

        assert set(result) == set(desired)
        assert len(result) == len(set(result))

    def test_second_application_is_noop(self):
        """Reconciling against the result again produces no changes."""
        current = ["a", "b"]
        desired = ["b", "c"]
        result = apply_tag_diff(current, reconcile_tags(current, desired))

        assert reconcile_tags(result, desired).is_empty

    def test_preserves_existing_order(self):
        """Kept tags stay in place and new ones are appended."""
        result = apply_tag_diff(["a", "b", "c"], TagDiff(to_remove=["b"], to_add=["d"]))
        assert result == ["a", "c", "d"]
