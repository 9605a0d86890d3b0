import os
import shutil
import tempfile

import pytest

from d3k.config import Config
from d3k.registry import SessionRegistry
from d3k.rotator import LogStore
from d3k.web import create_app

SAMPLE_LOG = (
    "[2025-01-01T00:00:00.000Z] [SERVER] Starting server...\n"
    "[2025-01-01T00:00:01.000Z] [SERVER] Server started successfully\n"
)


@pytest.fixture
def tmpdir_path():
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def log_path(tmpdir_path):
    project_dir = os.path.join(tmpdir_path, "home", "myapp-abc123")
    os.makedirs(project_dir)
    path = os.path.join(project_dir, "myapp-abc123-d3k.log")
    with open(path, "w", encoding="utf-8") as f:
        f.write(SAMPLE_LOG)
    return path


@pytest.fixture
def config(tmpdir_path):
    return Config(
        home_dir=os.path.join(tmpdir_path, "home"),
        pointer_path=os.path.join(tmpdir_path, "d3k.log"),
        stream_poll_seconds=0.05,
        heartbeat_seconds=60,
    )


@pytest.fixture
def store(log_path, config):
    return LogStore(log_path, pointer_path=config.pointer_path)


@pytest.fixture
def app(config, store):
    """Create a Flask test app bound to a temp log file."""
    registry = SessionRegistry(config.home_dir, pid_exists=lambda pid: False)
    application = create_app(config, store=store, registry=registry)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()
