"""Shared fixtures: an in-memory provider and a temporary project directory."""
import json

import pytest
import yaml

from envhub.secrets.domains.errors import SecretNotFoundError, UnsupportedOperationError
from envhub.secrets.domains.models import PullResult, PushResult
from envhub.secrets.domains.payload import build_payload, parse_payload
from envhub.secrets.domains.tracking import InMemoryTrackingStore
from envhub.secrets.providers.base import SecretNamespace, build_list_item, sort_items, version_or_zero
from envhub.secrets.workflows.version_control import VersionControl


class InMemoryProvider:
    """Provider keeping raw envelopes in a dict keyed by full secret name."""

    name = "memory"
    label = "In-memory store"

    def __init__(self, prefix="envhub-"):
        self.namespace = SecretNamespace(prefix, 127, r"[0-9a-zA-Z_-]+", "letters, numbers, _ and -", self.label)
        self.store = {}
        self.deleted = []

    def put_raw(self, secret_name, raw):
        self.store[self.namespace.full_name(secret_name)] = raw

    def _get_payload(self, secret_name):
        full_name = self.namespace.full_name(secret_name)
        if full_name not in self.store:
            raise SecretNotFoundError(secret_name)
        return parse_payload(secret_name, self.store[full_name])

    def push(self, secret_name, content, message=None, force=False):
        full_name = self.namespace.full_name(secret_name)
        payload = build_payload(content, version_or_zero(secret_name, self._get_payload), message)
        self.store[full_name] = payload.to_json()
        return PushResult(version=payload.version, name=secret_name)

    def pull(self, secret_name):
        payload = self._get_payload(secret_name)
        return PullResult(content=payload.content, version=payload.version, name=secret_name)

    def cat(self, secret_name):
        return self._get_payload(secret_name).content

    def list(self):
        return sort_items([
            build_list_item(self.namespace.strip(full_name), None, self._get_payload)
            for full_name in self.store
            if self.namespace.owns(full_name)
        ])

    def delete(self, secret_name, force=False):
        full_name = self.namespace.full_name(secret_name)
        if full_name not in self.store:
            raise SecretNotFoundError(secret_name)
        del self.store[full_name]
        self.deleted.append((secret_name, force))

    def grant(self, secret_name, user_identifier):
        raise UnsupportedOperationError("Grant is not supported by the in-memory store.")

    def revoke(self, secret_name, user_identifier):
        raise UnsupportedOperationError("Revoke is not supported by the in-memory store.")

    def get_version(self, secret_name):
        return version_or_zero(secret_name, self._get_payload)


@pytest.fixture
def provider():
    return InMemoryProvider()


@pytest.fixture
def tracking():
    return InMemoryTrackingStore()


@pytest.fixture
def version_control(tracking, provider):
    return VersionControl(tracking, provider)


@pytest.fixture
def sample_config_content():
    """Sample valid config content."""
    return {
        "provider": "aws",
        "prefix": "envhub-",
        "aws": {"profile": "default", "region": "eu-central-1"},
        "secrets": {},
    }


@pytest.fixture
def project_dir(tmp_path, monkeypatch, sample_config_content):
    """Temporary project root holding a YAML config, used as working directory."""
    monkeypatch.delenv("ENVHUB_CONFIG", raising=False)
    monkeypatch.delenv("GCP_PROJECT", raising=False)
    project = tmp_path / "project"
    project.mkdir()
    with open(project / ".envhub.yml", 'w') as f:
        yaml.safe_dump(sample_config_content, f)
    monkeypatch.chdir(project)
    return project


def read_yaml(path):
    with open(path) as f:
        return yaml.safe_load(f)


def envelope(content, version, message=None, **extra):
    """Raw JSON envelope as a backend would store it."""
    metadata = {"version": version, "updatedAt": "2026-01-01T00:00:00.000Z", "managedBy": "envhub-cli"}
    if message is not None:
        metadata["message"] = message
    data = {"content": content, "metadata": metadata}
    data.update(extra)
    return json.dumps(data)
