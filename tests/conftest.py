"""Shared fixtures for Mission Control tests."""
import json
import os
import sys
import tempfile

import httpx
import pytest

# Set env BEFORE any imports
_home = tempfile.mkdtemp()
os.environ["OPENCLAW_HOME"] = _home
os.environ["GATEWAY_URL"] = "http://127.0.0.1:9"
os.environ["MC_LOG_LEVEL"] = "DEBUG"

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

from config import Settings, get_settings, get_transport


def write_index(agents_dir, agent, sessions):
    sess_dir = os.path.join(agents_dir, agent, "sessions")
    os.makedirs(sess_dir, exist_ok=True)
    with open(os.path.join(sess_dir, "sessions.json"), "w") as f:
        json.dump(sessions, f)


def write_journal(agents_dir, agent, session_id, lines):
    """Write journal lines; dicts are JSON-encoded, strings written verbatim."""
    sess_dir = os.path.join(agents_dir, agent, "sessions")
    os.makedirs(sess_dir, exist_ok=True)
    path = os.path.join(sess_dir, f"{session_id}.jsonl")
    with open(path, "w") as f:
        for line in lines:
            f.write((line if isinstance(line, str) else json.dumps(line)) + "\n")
    return path


def text_message(role, text, idx=None, timestamp=None):
    entry = {"type": "message", "message": {"role": role, "content": [{"type": "text", "text": text}]}}
    if idx is not None:
        entry["id"] = idx
    if timestamp is not None:
        entry["timestamp"] = timestamp
    return entry


@pytest.fixture
def home(tmp_path):
    (tmp_path / "agents").mkdir()
    (tmp_path / "logs").mkdir()
    (tmp_path / "proc").mkdir()
    return tmp_path


@pytest.fixture
def settings(home):
    return Settings.from_env({
        "OPENCLAW_HOME": str(home),
        "MC_PROC_ROOT": str(home / "proc"),
        "MC_CPU_SAMPLE_INTERVAL": "0",
        "GATEWAY_URL": "http://gateway.test",
    })


class FakeUpstream:
    """Records outbound requests; tests swap ``handler`` to script the reply."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, json={})

    def __call__(self, request):
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def client(settings, upstream):
    from fastapi.testclient import TestClient
    from main import app
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_transport] = lambda: httpx.MockTransport(upstream)
    yield TestClient(app)
    app.dependency_overrides.clear()
