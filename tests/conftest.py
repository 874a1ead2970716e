"""Shared fixtures for blueprint engine tests."""

import copy

import pytest

from blueprint_wizard.config import Settings
from blueprint_wizard.engine.loader import BlueprintLoader
from blueprint_wizard.engine.runner import MockActionRunner

ENV_PATTERN = "^env_[0-9]+$"

BASE_BLUEPRINT = {
    "schema_version": "1.0",
    "version": "1.0.0",
    "name": "Test Blueprint",
    "provider": "acme",
    "auth": {"callback_path": "/auth/callback", "login_url": "https://auth.acme.test/login"},
    "sdk": {"preferred_language": "node"},
    "slugs": {
        "base_url": "https://app.acme.test",
        "dynamic": {"dashboard": "/env/{{ environment_id }}/home"},
    },
    "variables": {
        "environment_id": {
            "description": "Environment identifier",
            "required": True,
            "sensitive": False,
            "validation": ENV_PATTERN,
        },
    },
    "output": {"storage_path": "/tmp/blueprint-wizard-tests"},
    "security": {
        "encrypt_credentials": False,
        "credential_expiry_days": 0,
        "require_confirmation_for_sensitive": True,
    },
}


@pytest.fixture
def mock_runner():
    """Create a mock runner for testing."""
    return MockActionRunner()


@pytest.fixture
def settings(tmp_path):
    """Settings that keep artifacts under a temporary directory."""
    return Settings(output_dir=str(tmp_path / "out"))


@pytest.fixture
def make_blueprint():
    """Factory for raw blueprint dicts with the given steps."""

    def _make(steps, variables=None, **overrides):
        data = copy.deepcopy(BASE_BLUEPRINT)
        if variables is not None:
            data["variables"] = variables
        data["flows"] = [{"id": "main", "title": "Main flow", "steps": steps}]
        data.update(overrides)
        return data

    return _make


@pytest.fixture
def make_document(make_blueprint):
    """Factory for validated BlueprintDocuments with the given steps."""

    def _make(steps, variables=None, **overrides):
        return BlueprintLoader.from_dict(make_blueprint(steps, variables=variables, **overrides))

    return _make


@pytest.fixture
def generic_document():
    """The generic onboarding blueprint shipped with the package."""
    return BlueprintLoader().load_builtin("generic-onboarding")
