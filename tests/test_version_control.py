"""Tests for the optimistic version-control protocol and local tracking."""
from datetime import datetime, timezone
from unittest import mock

import pytest

from envhub.secrets.domains.config_loader import ConfigManager
from envhub.secrets.domains.errors import MalformedPayloadError, ProviderError, SecretNotFoundError
from envhub.secrets.domains.payload import parse_timestamp
from envhub.secrets.domains.tracking import ConfigTrackingStore, InMemoryTrackingStore, tracked_version
from envhub.secrets.workflows.version_control import VersionControl

from conftest import read_yaml


def _provider(get_version):
    provider = mock.Mock()
    if isinstance(get_version, Exception):
        provider.get_version.side_effect = get_version
    else:
        provider.get_version.return_value = get_version
    return provider


def _tracking(version=None):
    store = InMemoryTrackingStore()
    if version is not None:
        store.upsert("my-app", version=version, file=".env")
    return store


class TestCheckBeforePush:
    """Test suite for the push decision table."""

    def test_not_found_allows_push(self):
        """Test local 0 with remote not-found gives can_push and remote 0."""
        vc = VersionControl(_tracking(), _provider(SecretNotFoundError("my-app")))
        result = vc.check_before_push("my-app")
        assert result.can_push is True
        assert result.local_version == 0
        assert result.remote_version == 0
        assert result.reason is None

    def test_remote_zero_allows_push(self):
        """Test that a remote version of 0 never conflicts."""
        vc = VersionControl(_tracking(4), _provider(0))
        result = vc.check_before_push("my-app")
        assert result.can_push is True
        assert result.remote_version == 0

    def test_equal_versions_allow_push(self):
        """Test local 5 with remote 5."""
        vc = VersionControl(_tracking(5), _provider(5))
        result = vc.check_before_push("my-app")
        assert result.can_push is True
        assert (result.local_version, result.remote_version) == (5, 5)

    def test_local_ahead_allows_push(self):
        """Test local 5 with remote 3 is allowed (>= comparison, not ==)."""
        vc = VersionControl(_tracking(5), _provider(3))
        assert vc.check_before_push("my-app").can_push is True

    def test_remote_ahead_conflicts(self):
        """Test local 5 with remote 7 blocks with a reason naming both versions."""
        vc = VersionControl(_tracking(5), _provider(7))
        result = vc.check_before_push("my-app")
        assert result.can_push is False
        assert (result.local_version, result.remote_version) == (5, 7)
        assert "7" in result.reason and "5" in result.reason
        assert "pull" in result.reason
        assert "--force" in result.reason

    def test_untracked_secret_conflicts_with_existing_remote(self):
        """Test that an untracked name counts as local version 0."""
        vc = VersionControl(_tracking(), _provider(1))
        result = vc.check_before_push("my-app")
        assert result.can_push is False
        assert result.local_version == 0

    def test_other_failures_propagate(self):
        """Test that backend failures are not mistaken for not-found."""
        failure = ProviderError("AWS Secrets Manager", "read", "my-app", Exception("AccessDenied"))
        vc = VersionControl(_tracking(), _provider(failure))
        with pytest.raises(ProviderError):
            vc.check_before_push("my-app")

    def test_malformed_remote_propagates(self):
        """Test that a foreign payload is fatal to the check."""
        vc = VersionControl(_tracking(), _provider(MalformedPayloadError("my-app", "foreign")))
        with pytest.raises(MalformedPayloadError):
            vc.check_before_push("my-app")

    def test_scenario_already_pulled(self, provider, tracking):
        """Test that after pulling another client's v3 this client may push."""
        for i in range(3):
            provider.push("my-app", f"A={i}\n")
        vc = VersionControl(tracking, provider)
        vc.record_pull("my-app", 3, ".env")
        assert vc.check_before_push("my-app").can_push is True


class TestRecording:
    """Test suite for record_push and record_pull."""

    def test_record_push(self, version_control, tracking):
        """Test that record_push stores version and file."""
        version_control.record_push("x", 4, ".env")
        record = tracking.get("x")
        assert (record.version, record.file) == (4, ".env")
        assert record.last_pulled is None

    def test_record_push_updates_in_place(self, version_control, tracking):
        """Test that a later push keeps lastPulled and replaces version/file."""
        version_control.record_pull("x", 1, ".env")
        pulled_at = tracking.get("x").last_pulled
        version_control.record_push("x", 2, ".env.local")
        record = tracking.get("x")
        assert (record.version, record.file, record.last_pulled) == (2, ".env.local", pulled_at)

    def test_record_pull_sets_timestamp(self, version_control, tracking):
        """Test that record_pull stores version, file and a fresh lastPulled."""
        before = datetime.now(timezone.utc)
        version_control.record_pull("x", 2, ".env.local")
        record = tracking.get("x")
        assert (record.version, record.file) == (2, ".env.local")
        assert parse_timestamp(record.last_pulled) >= before

    def test_record_pull_never_earlier_than_call(self, version_control, tracking):
        """Test that lastPulled keeps sub-millisecond precision across repeated pulls."""
        for i in range(200):
            before = datetime.now(timezone.utc)
            version_control.record_pull("x", i + 1, ".env")
            assert parse_timestamp(tracking.get("x").last_pulled) >= before


class TestTrackingStores:
    """Test suite for tracking store implementations."""

    def test_in_memory_get_missing(self):
        """Test that an untracked name yields None and version 0."""
        store = InMemoryTrackingStore()
        assert store.get("nope") is None
        assert tracked_version(store, "nope") == 0

    def test_in_memory_remove(self):
        """Test that remove reports whether a record existed."""
        store = InMemoryTrackingStore()
        store.upsert("a", version=1, file=".env")
        assert store.remove("a") is True
        assert store.remove("a") is False
        assert store.names() == []

    def test_config_store_persists(self, project_dir):
        """Test that upserts and removals are saved to the config file."""
        manager = ConfigManager()
        manager.load()
        store = ConfigTrackingStore(manager)

        store.upsert("my-app", version=3, file=".env", last_pulled="2026-01-01T00:00:00.000Z")
        saved = read_yaml(project_dir / ".envhub.yml")
        assert saved["secrets"]["my-app"] == {
            "version": 3, "file": ".env", "lastPulled": "2026-01-01T00:00:00.000Z",
        }

        store.remove("my-app")
        assert read_yaml(project_dir / ".envhub.yml")["secrets"] == {}

    def test_config_store_reads_existing_records(self, project_dir):
        """Test that records written earlier are visible after reload."""
        manager = ConfigManager()
        manager.load()
        ConfigTrackingStore(manager).upsert("api", version=9, file="api.env")

        reloaded = ConfigManager()
        reloaded.load()
        store = ConfigTrackingStore(reloaded)
        assert store.get("api").version == 9
        assert store.names() == ["api"]
