import time
import uuid
import webbrowser
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from enum import Enum

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console

from mobilesync import cloudwatch
from mobilesync.backend import create_backend_service
from mobilesync.backend_info import record_pulled_snapshot, sync_current_backend_info, write_client_exports
from mobilesync.builder import (
    backend_source_path,
    build_local_backend,
    get_build_dir_mtime,
    package_backend_content,
)
from mobilesync.config import load_config
from mobilesync.conflict import CONFLICT_WARNING, check_remote_ahead
from mobilesync.errors import (
    BackendError,
    MobileSyncError,
    ProjectNotFound,
    RemoteConflictUnresolved,
    SubmissionFailed,
    UserCancelled,
    describe_client_error,
)
from mobilesync.features import get_enabled_features
from mobilesync.log import write_log
from mobilesync.poller import PollOutcome, wait_for_operation
from mobilesync.staleness import is_update_needed
from mobilesync.state import load_project_state, persist_project_state
from mobilesync.tracing import PollProgress, StageTimer

# Only cloud-api provisions a CloudFormation stack that outlives update_project.
WAIT_FEATURE = "cloud-api"


class RunOutcome(Enum):
    UPDATED = "updated"
    UP_TO_DATE = "up-to-date"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PushRun:
    """One `mobilesync push`.

    Sequence: conflict check → build → staleness check → feature pre-update
    hooks → upload → wait for the update to finish → record the outcome.
    Per-run flags (forced push, wait override, sync) live on the instance.
    Callers must not push the same project from two runs at once.
    """

    def __init__(self, project_path=None, config=None, backend=None, console=None,
                 wait=None, sync=False, force=False,
                 confirm=click.confirm, open_console_url=webbrowser.open, sleep=time.sleep):
        self.console = console or Console()
        self.project_path = project_path
        self.config = config
        self.backend = backend
        self.wait = wait
        self.sync = sync
        self.forced_push = force
        self.confirm = confirm
        self.open_console_url = open_console_url
        self.sleep = sleep
        self.trace_id = uuid.uuid4().hex[:8]

        self.state = None
        self.snapshot = None
        self.features = []
        self.error = None

    def run(self, on_complete=None):
        """Push the backend. Calls on_complete(outcome) exactly once and returns the outcome."""
        try:
            outcome = self._run()
        except (ClientError, BotoCoreError) as e:
            outcome = self._fail(BackendError(describe_client_error(e)))
        except (MobileSyncError, ValueError, OSError) as e:
            outcome = self._fail(e)

        self._finish(outcome)
        if on_complete:
            on_complete(outcome)
        return outcome

    def _fail(self, error):
        self.error = error
        self.console.print(f"[bold red]{error}[/bold red]")
        if isinstance(error, BackendError) and self.state is not None:
            self.state.record_update(False)
        return RunOutcome.FAILED

    def _run(self):
        self.state = load_project_state(self.project_path)
        if self.state is None:
            raise ProjectNotFound("No .mobilesyncconfig found. Run 'mobilesync init' first.")
        if self.config is None:
            self.config = load_config(self.state.project_path)
        if self.backend is None:
            self.backend = create_backend_service(self.config)

        log_group = self.config.get("cloudwatch_log_group", "")
        log_stream = f"{datetime.now().strftime('%Y/%m/%d')}/{self.trace_id}"
        cloudwatch.init(log_group, log_stream, region=self.config.get("region"))
        cloudwatch.emit(self.trace_id, "session", "start",
                        project=str(self.state.project_path),
                        backend_project=self.state.backend_project_id)

        if not self.state.has_backend:
            self.console.print("[red]backend unknown[/red]")
            if not self.confirm("create a new backend project", default=True):
                self.error = UserCancelled("backend project creation declined")
                return RunOutcome.CANCELLED
            self._create_backend()
            return self._update()

        self.snapshot = self.backend.fetch_snapshot(self.state.backend_project_id)
        if not self._check_latest(self.snapshot):
            self.error = RemoteConflictUnresolved("the backend project is ahead of the local copy")
            return RunOutcome.CANCELLED
        return self._update()

    def _create_backend(self):
        name = self.state.project_name or self.state.project_path.name
        with self.console.status(f"creating backend project {name} ..."):
            self.snapshot = self.backend.create_project(name)
        self.state.backend_project_id = self.snapshot.project_id
        record_pulled_snapshot(self.state, self.snapshot, mark_synced=True)
        self.console.print(f"  Backend project created: [blue]{self.snapshot.name or name}[/blue]")

    def _check_latest(self, snapshot):
        """Conflict guard. Returns False when the user declines to push."""
        if self.forced_push or not check_remote_ahead(self.state.backend_last_pulled, snapshot):
            record_pulled_snapshot(self.state, snapshot, mark_synced=True)
            return True

        self.console.print(CONFLICT_WARNING)
        if self.confirm("do you want to continue with the push", default=False):
            self.forced_push = True
            record_pulled_snapshot(self.state, snapshot, mark_synced=True)
            return True

        if snapshot.console_url and self.confirm(
            "do you want to open the web console of the backend project", default=True
        ):
            self.console.print(f"[green]{snapshot.console_url}[/green]")
            self.open_console_url(snapshot.console_url)
        return False

    def _update(self):
        timer = StageTimer(self.console)
        backend_dir = self.config.get("backend_dir", "backend")
        build, changed = build_local_backend(self.state.project_path, backend_dir)
        if build is None:
            raise ProjectNotFound(
                f"No backend definitions found in {backend_source_path(self.state.project_path, backend_dir)}"
            )
        elapsed = timer.mark("build")
        cloudwatch.emit(self.trace_id, "stage", "build", elapsed_ms=elapsed * 1000,
                        files_changed=len(changed))

        needed = is_update_needed(
            self.state.last_update_successful,
            self.state.last_update_time,
            build.exists(),
            get_build_dir_mtime(build),
        )
        if not needed and not self.forced_push:
            self.console.print("\nno local backend changes detected since last push")
            return RunOutcome.UP_TO_DATE

        self.features = get_enabled_features(backend_source_path(self.state.project_path, backend_dir))
        self._pre_update()
        elapsed = timer.mark("hooks")
        cloudwatch.emit(self.trace_id, "stage", "hooks", elapsed_ms=elapsed * 1000)

        return self._update_backend_project(build, timer)

    def _pre_update(self):
        """Start every enabled feature's hook at once; continue when all have finished."""
        if not self.features:
            return
        self.console.print(f"\npreparing for backend project update: {self._project_label()}")
        with ThreadPoolExecutor(max_workers=len(self.features)) as executor:
            futures = [
                executor.submit(feature.pre_update, self.state, self.config, self.snapshot)
                for feature in self.features
            ]
        for future in futures:
            future.result()
        self.console.print("done")

    def _update_backend_project(self, build, timer):
        contents = package_backend_content(build)

        self.console.print(f"\nupdating backend project: {self._project_label()}")
        try:
            with self.console.status("calling Mobile Hub updateProject ..."):
                submitted = self.backend.submit_update(self.state.backend_project_id, contents)
        except BackendError as e:
            self.error = SubmissionFailed(str(e))
            self.console.print(f"[red]Failed to update project {self._project_label()}[/red]")
            self.console.print(f"  {e}")
            self.state.record_update(False)
            return RunOutcome.FAILED
        elapsed = timer.mark("upload")
        cloudwatch.emit(self.trace_id, "stage", "upload", elapsed_ms=elapsed * 1000,
                        bytes=len(contents))

        outcome = self._wait_for_cloud_api(submitted)
        elapsed = timer.mark("wait")
        cloudwatch.emit(self.trace_id, "stage", "wait", elapsed_ms=elapsed * 1000,
                        attempts=outcome.attempts, code=outcome.code)

        self.state.record_update(outcome.ok)
        if outcome.ok:
            self.console.print(
                f"\nSuccessfully updated the backend project: [blue]{outcome.snapshot.name}[/blue]"
            )
        else:
            self.error = outcome.error()

        self.snapshot = sync_current_backend_info(
            self.state, outcome.snapshot, self.backend, sync_to_src=self.sync, console=self.console
        )
        return RunOutcome.UPDATED if outcome.ok else RunOutcome.FAILED

    def _wait_for_cloud_api(self, submitted):
        if WAIT_FEATURE not in [f.name for f in self.features]:
            return PollOutcome(submitted)

        self.console.print("Mobile Hub update call returned with no error")
        if self.wait is None or self.wait >= 0:
            self.console.print(f"waiting for the formation of {WAIT_FEATURE} to complete")
        project_id = self.state.backend_project_id
        with PollProgress(self.console, trace_id=self.trace_id) as progress:
            return wait_for_operation(
                lambda: self.backend.query_status(project_id),
                submitted,
                wait=self.wait,
                max_attempts=self.config.get("max_wait_attempts", 100),
                interval=self.config.get("wait_interval", 5),
                sleep=self.sleep,
                observer=progress,
                console=self.console,
            )

    def _finish(self, outcome):
        if self.state is None:
            return
        persist_project_state(self.state)
        entry = {
            "event": "push",
            "project": str(self.state.project_path),
            "backend_project": self.state.backend_project_id,
            "result": outcome.value,
        }
        if self.error is not None:
            entry["error"] = str(self.error)
        write_log(entry, trace_id=self.trace_id)
        cloudwatch.emit(self.trace_id, "session", "finish", result=outcome.value)

    def _project_label(self):
        return self.state.backend_project_name or self.state.backend_project_id


def run(on_complete=None, wait=None, sync=False, **kwargs):
    """Entry point for `mobilesync push`.

    wait < 0 returns as soon as the update is accepted, without waiting for
    provisioning to finish. wait > 0 caps the number of status checks.
    """
    return PushRun(wait=wait, sync=sync, **kwargs).run(on_complete)


def pull(project_path=None, config=None, backend=None, console=None, sync=False):
    """Record the current remote backend details as the known remote state."""
    console = console or Console()
    state = load_project_state(project_path)
    if state is None:
        raise ProjectNotFound("No .mobilesyncconfig found. Run 'mobilesync init' first.")
    if not state.has_backend:
        raise ProjectNotFound("No backend project recorded. Run 'mobilesync push' to create one.")
    config = config or load_config(state.project_path)
    backend = backend or create_backend_service(config)

    with console.status("retrieving backend project details ..."):
        snapshot = backend.fetch_snapshot(state.backend_project_id)
    record_pulled_snapshot(state, snapshot, mark_synced=True)
    if sync:
        write_client_exports(state.project_path, snapshot)
    persist_project_state(state)
    write_log({
        "event": "pull",
        "project": str(state.project_path),
        "backend_project": state.backend_project_id,
        "result": "pulled",
    })
    return snapshot
