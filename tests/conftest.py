import io
import json
from dataclasses import replace

import pytest
from rich.console import Console

from mobilesync import config as config_module
from mobilesync import credentials as credentials_module
from mobilesync import log as log_module
from mobilesync.backend.base import BackendService, RemoteSnapshot
from mobilesync.config import DEFAULT_CONFIG

REMOTE_UPDATED = "2026-10-01T08:00:00+00:00"


def make_snapshot(status=None, last_updated=REMOTE_UPDATED, project_id="proj-1", extra_resources=()):
    resources = [
        {"type": "AWS::S3::Bucket", "name": "myapp-deployments-mobilehub-123",
         "feature": "common", "arn": "arn:aws:s3:::myapp-deployments-mobilehub-123"},
    ]
    if status is not None:
        resources.append({
            "type": "AWS::CloudFormation::Stack", "name": "myapp-cloudlogic",
            "feature": "cloudlogic", "arn": "arn:aws:cloudformation:stack/myapp-cloudlogic",
            "attributes": {"status": status},
        })
    resources.extend(extra_resources)
    return RemoteSnapshot(
        project_id=project_id,
        name="myapp",
        console_url="https://console.aws.amazon.com/mobilehub/home#/proj-1/build",
        last_updated=last_updated,
        region="us-east-1",
        resources=resources,
    )


class FakeBackend(BackendService):
    """Scripted backend: query_status pops one status (or exception) per call."""

    def __init__(self, snapshot=None, statuses=(), submit_error=None, fetch_error=None):
        self.snapshot = snapshot or make_snapshot()
        self.statuses = list(statuses)
        self.submit_error = submit_error
        self.fetch_error = fetch_error
        self.queries = 0
        self.fetches = 0
        self.submitted = []
        self.created = []

    def fetch_snapshot(self, project_id):
        self.fetches += 1
        if self.fetch_error:
            raise self.fetch_error
        return self.snapshot

    def create_project(self, name, contents=None):
        self.created.append(name)
        self.snapshot = replace(self.snapshot, project_id="proj-new", name=name)
        return self.snapshot

    def submit_update(self, project_id, contents):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((project_id, contents))
        return self.snapshot

    def query_status(self, project_id):
        self.queries += 1
        status = self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return make_snapshot(status=status, project_id=project_id)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr(log_module, "LOGS_FILE", home / ".mobilesync" / "logs.jsonl")
    monkeypatch.setattr(config_module, "GLOBAL_CONFIG_FILE", home / ".mobilesync" / "config.json")
    monkeypatch.setattr(credentials_module, "CREDENTIALS_FILE", home / ".mobilesync" / "credentials")
    return home


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def project(tmp_path):
    """A project with a recorded backend, one failed previous push and no features."""
    root = tmp_path / "myapp"
    (root / "backend").mkdir(parents=True)
    (root / ".mobilesyncconfig").write_text(json.dumps({"region": "us-east-1"}))
    (root / "backend" / "mobile-hub-project.yml").write_text("features: {}\n")
    (root / "backend" / "resources.json").write_text('{"tables": []}\n')
    write_state(root, {
        "project_name": "myapp",
        "backend_project_id": "proj-1",
        "backend_project_name": "myapp",
        "backend_last_update_time": "",
        "backend_last_update_successful": False,
        "backend_last_pulled": REMOTE_UPDATED,
    })
    return root


@pytest.fixture
def config():
    return dict(DEFAULT_CONFIG)


def write_state(root, data):
    info = root / ".mobilesync" / "project-info.json"
    info.parent.mkdir(parents=True, exist_ok=True)
    info.write_text(json.dumps(data))


def read_state(root):
    return json.loads((root / ".mobilesync" / "project-info.json").read_text())
