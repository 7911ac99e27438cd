"""Push audit logging.

Appends structured JSON entries to ~/.mobilesync/logs.jsonl.
Each entry records a push outcome (updated, up-to-date, cancelled, failed)
with timestamp, project path and backend project id.
"""

import json
from datetime import datetime
from pathlib import Path

LOGS_FILE = Path.home() / ".mobilesync" / "logs.jsonl"


def write_log(entry, trace_id=None):
    """Append a push log entry."""
    LOGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    entry["timestamp"] = datetime.now().isoformat()
    if trace_id:
        entry["trace_id"] = trace_id
    with open(LOGS_FILE, "a") as f:
        f.write(json.dumps(entry) + "\n")


def read_logs(project_path=None):
    """Return log entries oldest-first, optionally filtered to one project."""
    if not LOGS_FILE.exists():
        return []
    entries = []
    for line in LOGS_FILE.read_text().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if project_path and entry.get("project") != str(project_path):
            continue
        entries.append(entry)
    return entries
