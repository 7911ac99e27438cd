"""Local copy of the remote backend project details.

The last snapshot pulled from (or pushed to) Mobile Hub is kept at
<project>/.mobilesync/backend-details.json. Its `lastUpdatedDate` is what the
conflict check compares against the live project on the next push.

With --sync, the client configuration derived from the snapshot is also
written into the app sources as src/aws-exports.json.
"""

import json
from pathlib import Path

from rich.console import Console

from mobilesync.backend.base import RemoteSnapshot
from mobilesync.errors import BackendError
from mobilesync.state import STATE_DIR

DETAILS_FILE = "backend-details.json"
EXPORTS_FILE = Path("src") / "aws-exports.json"


def details_path(project_path):
    return Path(project_path) / STATE_DIR / DETAILS_FILE


def load_pulled_snapshot(project_path):
    path = details_path(project_path)
    if not path.exists():
        return None
    try:
        return RemoteSnapshot.from_details(json.loads(path.read_text()))
    except (json.JSONDecodeError, OSError):
        return None


def record_pulled_snapshot(state, snapshot, mark_synced=True):
    """Write the snapshot to backend-details.json.

    mark_synced also records its lastUpdatedDate on the project state, so the
    next conflict check treats this snapshot as the known remote state.
    """
    path = details_path(state.project_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot.to_details(), indent=2, default=str) + "\n")
    if mark_synced:
        state.backend_last_pulled = snapshot.last_updated
        if snapshot.name:
            state.backend_project_name = snapshot.name
    return path


def client_exports(snapshot):
    """Client-side configuration for the app, derived from the backend resources."""
    return {
        "aws_project_id": snapshot.project_id,
        "aws_project_name": snapshot.name,
        "aws_project_region": snapshot.region,
        "aws_resources": [
            {k: r.get(k, "") for k in ("feature", "type", "name", "arn")}
            for r in snapshot.resources
        ],
    }


def write_client_exports(project_path, snapshot):
    path = Path(project_path) / EXPORTS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(client_exports(snapshot), indent=2) + "\n")
    return path


def sync_current_backend_info(state, snapshot, backend, sync_to_src=False, console=None):
    """Refresh the local copy of the backend details after a push.

    Falls back to the snapshot already in hand when the refresh fails.
    Returns the snapshot that was recorded.
    """
    console = console or Console()
    try:
        snapshot = backend.fetch_snapshot(state.backend_project_id)
    except BackendError as e:
        console.print(f"[yellow]  Could not refresh backend details: {e}[/yellow]")

    record_pulled_snapshot(state, snapshot, mark_synced=True)
    if sync_to_src:
        path = write_client_exports(state.project_path, snapshot)
        console.print(f"  [dim]Client config written to {path}[/dim]")
    return snapshot
