"""Shared pytest fixtures and configuration."""
import threading

import pytest

from welcome_page_server import ServerSettings, build_server

# Every variable the server reads; cleared so the host environment cannot leak in
CONSUMED_ENV_VARS = (
    "GITHUB_REPO_URL",
    "GITHUB_REPO_FOLDER",
    "GITHUB_BRANCH",
    "DEV_START_COMMAND",
    "WORKSPACE_PATH",
    "GITHUB_SYNC_INTERVAL",
    "ENABLE_DEV_HEALTH",
    "WELCOME_PAGE_HOST",
    "WELCOME_PAGE_PORT",
    "WELCOME_PAGE_READ_TIMEOUT",
    "WELCOME_PAGE_WRITE_TIMEOUT",
    "WELCOME_PAGE_IDLE_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in CONSUMED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def server_url():
    """Run a real server on an ephemeral port and yield its base URL."""
    server = build_server(ServerSettings(host="127.0.0.1", port=0))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
