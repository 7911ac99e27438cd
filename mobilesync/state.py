"""Project state persisted between pushes.

Lives at <project>/.mobilesync/project-info.json:

    {
      "project_name": "my-app",
      "backend_project_id": "a1b2c3d4-...",
      "backend_project_name": "my-app-backend",
      "backend_last_update_time": "2026-10-17-09-30-12",
      "backend_last_update_successful": true,
      "backend_last_pulled": "2026-10-17T09:29:58+00:00"
    }

Timestamps are local wall-clock times in DATETIME_FORMAT. A value that can't
be parsed loads as None and is treated as "unknown", never as a default.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from mobilesync.config import find_config

STATE_DIR = ".mobilesync"
INFO_FILE = "project-info.json"
DATETIME_FORMAT = "%Y-%m-%d-%H-%M-%S"


def parse_timestamp(value):
    """Parse a stored timestamp. Returns None if value is missing or malformed."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, DATETIME_FORMAT)
    except ValueError:
        return None


def format_timestamp(value):
    return value.strftime(DATETIME_FORMAT) if value else ""


@dataclass
class ProjectState:
    project_path: Path
    project_name: str = ""
    backend_project_id: str = ""
    backend_project_name: str = ""
    last_update_time: datetime = None
    last_update_successful: bool = False
    backend_last_pulled: str = ""
    extra: dict = field(default_factory=dict)

    @property
    def has_backend(self):
        return bool(self.backend_project_id)

    @property
    def info_path(self):
        return info_path(self.project_path)

    def record_update(self, successful, when=None):
        """Stamp the outcome of a push attempt."""
        self.last_update_successful = bool(successful)
        self.last_update_time = when or datetime.now().replace(microsecond=0)

    def to_dict(self):
        data = dict(self.extra)
        data.update({
            "project_name": self.project_name,
            "backend_project_id": self.backend_project_id,
            "backend_project_name": self.backend_project_name,
            "backend_last_update_time": format_timestamp(self.last_update_time),
            "backend_last_update_successful": self.last_update_successful,
            "backend_last_pulled": self.backend_last_pulled,
        })
        return data

    @classmethod
    def from_dict(cls, project_path, data):
        known = {
            "project_name", "backend_project_id", "backend_project_name",
            "backend_last_update_time", "backend_last_update_successful",
            "backend_last_pulled",
        }
        return cls(
            project_path=Path(project_path),
            project_name=data.get("project_name") or Path(project_path).name,
            backend_project_id=data.get("backend_project_id") or "",
            backend_project_name=data.get("backend_project_name") or "",
            last_update_time=parse_timestamp(data.get("backend_last_update_time")),
            last_update_successful=bool(data.get("backend_last_update_successful", False)),
            backend_last_pulled=data.get("backend_last_pulled") or "",
            extra={k: v for k, v in data.items() if k not in known},
        )


def info_path(project_path):
    return Path(project_path) / STATE_DIR / INFO_FILE


def find_project_path(start=None):
    """Project root is the directory holding .mobilesyncconfig."""
    config_path = find_config(start)
    return config_path.parent if config_path else None


def load_project_state(project_path=None):
    """Load project-info.json. Returns None when there is no project.

    A project with a .mobilesyncconfig but no info file yet gets a fresh
    state (no backend, never pushed).
    """
    project_path = Path(project_path) if project_path else find_project_path()
    if project_path is None:
        return None
    path = info_path(project_path)
    if not path.exists():
        return ProjectState(project_path=project_path, project_name=project_path.name)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {path}: {e}")
    return ProjectState.from_dict(project_path, data)


def persist_project_state(state):
    path = state.info_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(state.to_dict(), indent=2) + "\n")
    return path
