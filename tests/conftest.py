# tests/conftest.py

import pytest


@pytest.fixture(autouse=True)
def mock_settings_env_vars(monkeypatch):
    """
    Pytest fixture to mock environment variables for the config module.

    This fixture runs automatically for every test (`autouse=True`) so that a
    `Config()` built inside a test never depends on the real environment, and
    never waits the production retry and poll delays.
    """
    monkeypatch.setenv("GCP_ACCESS_TOKEN", "test-token")
    monkeypatch.delenv("GCP_ACCESS_TOKEN_COMMAND", raising=False)
    monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")
    monkeypatch.setenv("POLL_INTERVAL_SECONDS", "0")
    monkeypatch.delenv("POLL_DEADLINE_SECONDS", raising=False)


@pytest.fixture(autouse=True)
def reset_k8s_config_state(monkeypatch):
    """
    Forgets any kubeconfig loaded by a previous test. Tests that need API
    clients patch the getters instead of loading a real configuration.
    """
    from nodecycler.core import k8s_client

    monkeypatch.setattr(k8s_client, "_CONFIG_LOADED", False)
    monkeypatch.setattr(k8s_client, "_LOADED_CONTEXT", None)
