"""Tests for .env diffing and change rendering."""
from envhub.secrets.domains.diff import (
    ChangeType,
    diff_env,
    diff_env_contents,
    format_changes,
    mask_value,
    summarize_changes,
)


def _by_key(changes):
    return {c.key: c for c in changes}


class TestDiffEnv:
    """Test suite for diff_env."""

    def test_identical_mappings_have_no_changes(self):
        """Test that equal keys produce nothing."""
        assert diff_env({"A": "1"}, {"A": "1"}) == []

    def test_added_removed_and_changed(self):
        """Test that each key lands in exactly one category."""
        baseline = {"KEEP": "same", "OLD": "gone", "MOD": "before"}
        candidate = {"KEEP": "same", "NEW": "here", "MOD": "after"}

        changes = _by_key(diff_env(baseline, candidate))

        assert set(changes) == {"OLD", "NEW", "MOD"}
        assert changes["NEW"].type == ChangeType.ADDED
        assert changes["NEW"].new_value == "here"
        assert changes["OLD"].type == ChangeType.REMOVED
        assert changes["OLD"].old_value == "gone"
        assert changes["MOD"].type == ChangeType.CHANGED
        assert (changes["MOD"].old_value, changes["MOD"].new_value) == ("before", "after")

    def test_every_key_reported_once(self):
        """Test the classification property over a mixed pair of mappings."""
        baseline = {f"K{i}": str(i) for i in range(10)}
        candidate = {f"K{i}": str(i * (i % 3)) for i in range(5, 15)}

        changes = diff_env(baseline, candidate)
        keys = [c.key for c in changes]

        assert len(keys) == len(set(keys))
        for c in changes:
            if c.type == ChangeType.ADDED:
                assert c.key in candidate and c.key not in baseline
            elif c.type == ChangeType.REMOVED:
                assert c.key in baseline and c.key not in candidate
            else:
                assert baseline[c.key] != candidate[c.key]
        for key in set(baseline) & set(candidate):
            if baseline[key] == candidate[key]:
                assert key not in keys

    def test_diff_contents_parses_text(self):
        """Test that raw text is parsed before comparing."""
        changes = diff_env_contents("A=1\nB=2\n", "# comment\nA=1\nB=3\n")
        assert len(changes) == 1
        assert changes[0].key == "B"
        assert changes[0].type == ChangeType.CHANGED


class TestFormatting:
    """Test suite for change rendering."""

    def test_mask_value(self):
        """Test that values are masked after 3 characters."""
        assert mask_value("secretvalue") == "sec***"
        assert mask_value("abc") == "***"
        assert mask_value("") == "***"

    def test_format_no_changes(self):
        """Test the empty rendering."""
        assert format_changes([]) == "No changes detected."

    def test_format_groups_by_type(self):
        """Test that changes are grouped and values masked."""
        changes = diff_env({"OLD": "x", "MOD": "1"}, {"NEW": "password", "MOD": "2"})
        text = format_changes(changes)

        assert "Added (1):" in text
        assert "+ NEW=pas***" in text
        assert "password" not in text
        assert "Removed (1):" in text
        assert "- OLD" in text
        assert "Changed (1):" in text
        assert "~ MOD" in text
        assert text.index("Added") < text.index("Removed") < text.index("Changed")

    def test_summarize(self):
        """Test the one-line summary."""
        changes = diff_env({"A": "1", "B": "1"}, {"A": "2", "C": "1", "D": "1"})
        assert summarize_changes(changes) == "2 added, 1 removed, 1 changed"
        assert summarize_changes([]) == "no changes"
