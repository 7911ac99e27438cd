import json
from datetime import datetime, timedelta

from botocore.exceptions import ProfileNotFound

from conftest import REMOTE_UPDATED, FakeBackend, make_snapshot, read_state, write_state
from mobilesync import orchestrator
from mobilesync.backend import mobile as mobile_module
from mobilesync.errors import BackendError, RemoteConflictUnresolved, SubmissionFailed, UserCancelled
from mobilesync.features.base import Feature
from mobilesync.log import read_logs
from mobilesync.orchestrator import PushRun, RunOutcome, pull


class Answers:
    """Stand-in for click.confirm that replays scripted answers."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts = []

    def __call__(self, prompt, default=None):
        self.prompts.append(prompt)
        return self.answers.pop(0)


class Sleeps:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


def enable_features(project, *keys):
    body = "features:\n" + "".join(f"  {k}:\n    components: {{}}\n" for k in keys)
    (project / "backend" / "mobile-hub-project.yml").write_text(body)


def make_run(project, config, backend, console, **kwargs):
    kwargs.setdefault("confirm", Answers())
    kwargs.setdefault("sleep", Sleeps())
    kwargs.setdefault("open_console_url", lambda url: None)
    return PushRun(project_path=project, config=config, backend=backend, console=console, **kwargs)


def collect():
    calls = []
    return calls, calls.append


def test_push_without_features_uploads_immediately(project, config, console):
    backend = FakeBackend()
    calls, on_complete = collect()

    outcome = make_run(project, config, backend, console).run(on_complete)

    assert outcome is RunOutcome.UPDATED
    assert calls == [RunOutcome.UPDATED]
    assert len(backend.submitted) == 1
    assert backend.submitted[0][0] == "proj-1"
    assert backend.submitted[0][1][:2] == b"PK"  # zip archive
    assert backend.queries == 0
    state = read_state(project)
    assert state["backend_last_update_successful"] is True
    assert state["backend_last_update_time"]


def test_push_waits_for_cloud_api_formation(project, config, console):
    enable_features(project, "cloudlogic")
    backend = FakeBackend(statuses=["UPDATE_IN_PROGRESS"] * 3 + ["UPDATE_COMPLETE"])
    sleep = Sleeps()

    outcome = make_run(project, config, backend, console, sleep=sleep).run()

    assert outcome is RunOutcome.UPDATED
    assert backend.queries == 4
    assert sleep.delays == [5, 5, 5]
    assert read_state(project)["backend_last_update_successful"] is True


def test_fast_exit_skips_status_queries(project, config, console):
    enable_features(project, "cloudlogic")
    backend = FakeBackend(statuses=[])

    outcome = make_run(project, config, backend, console, wait=-1).run()

    assert outcome is RunOutcome.UPDATED
    assert backend.queries == 0
    assert "may still be in progress" in console.file.getvalue()


def test_failed_formation_is_recorded_as_failure(project, config, console):
    enable_features(project, "cloudlogic")
    backend = FakeBackend(statuses=["UPDATE_IN_PROGRESS", "UPDATE_ROLLBACK_COMPLETE"])
    calls, on_complete = collect()

    run = make_run(project, config, backend, console)
    outcome = run.run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]
    assert run.error.code == 2
    state = read_state(project)
    assert state["backend_last_update_successful"] is False
    assert state["backend_last_update_time"]
    # Local copy of the backend details is refreshed regardless
    assert (project / ".mobilesync" / "backend-details.json").exists()


def test_submission_failure_persists_failed_state(project, config, console):
    backend = FakeBackend(submit_error=BackendError("BadRequestException: invalid contents"))
    calls, on_complete = collect()

    run = make_run(project, config, backend, console)
    outcome = run.run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]
    assert backend.queries == 0
    assert isinstance(run.error, SubmissionFailed)
    state = read_state(project)
    assert state["backend_last_update_successful"] is False
    assert state["backend_last_update_time"]
    assert "Failed to update project" in console.file.getvalue()


def test_fetch_failure_calls_back_once(project, config, console):
    backend = FakeBackend(fetch_error=BackendError("NotFoundException"))
    calls, on_complete = collect()

    outcome = make_run(project, config, backend, console).run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]
    assert backend.submitted == []
    assert read_state(project)["backend_last_update_successful"] is False


def test_no_changes_since_last_success_is_up_to_date(project, config, console):
    future = (datetime.now() + timedelta(days=1)).strftime("%Y-%m-%d-%H-%M-%S")
    write_state(project, {
        "backend_project_id": "proj-1",
        "backend_last_update_time": future,
        "backend_last_update_successful": True,
        "backend_last_pulled": REMOTE_UPDATED,
    })
    backend = FakeBackend()
    calls, on_complete = collect()

    outcome = make_run(project, config, backend, console).run(on_complete)

    assert outcome is RunOutcome.UP_TO_DATE
    assert calls == [RunOutcome.UP_TO_DATE]
    assert backend.submitted == []
    assert "no local backend changes detected" in console.file.getvalue()


def test_remote_ahead_declined_opens_console(project, config, console):
    backend = FakeBackend(snapshot=make_snapshot(last_updated="2026-10-09T00:00:00+00:00"))
    confirm = Answers(False, True)
    opened = []
    calls, on_complete = collect()

    run = make_run(project, config, backend, console, confirm=confirm, open_console_url=opened.append)
    outcome = run.run(on_complete)

    assert outcome is RunOutcome.CANCELLED
    assert calls == [RunOutcome.CANCELLED]
    assert len(confirm.prompts) == 2
    assert opened == [backend.snapshot.console_url]
    assert backend.submitted == []
    assert not run.forced_push
    assert isinstance(run.error, RemoteConflictUnresolved)


def test_remote_ahead_confirmed_forces_push(project, config, console):
    future = (datetime.now() + timedelta(days=1)).strftime("%Y-%m-%d-%H-%M-%S")
    write_state(project, {
        "backend_project_id": "proj-1",
        "backend_last_update_time": future,
        "backend_last_update_successful": True,
        "backend_last_pulled": "2026-09-01T00:00:00+00:00",
    })
    backend = FakeBackend()

    run = make_run(project, config, backend, console, confirm=Answers(True))
    outcome = run.run()

    # Forced push overrides the up-to-date check as well
    assert outcome is RunOutcome.UPDATED
    assert run.forced_push
    assert len(backend.submitted) == 1
    assert read_state(project)["backend_last_pulled"] == REMOTE_UPDATED


def test_force_flag_skips_conflict_prompt(project, config, console):
    backend = FakeBackend(snapshot=make_snapshot(last_updated="2026-10-09T00:00:00+00:00"))
    confirm = Answers()

    outcome = make_run(project, config, backend, console, confirm=confirm, force=True).run()

    assert outcome is RunOutcome.UPDATED
    assert confirm.prompts == []


def test_missing_backend_project_is_created_then_pushed(project, config, console):
    write_state(project, {"project_name": "myapp"})
    backend = FakeBackend()
    confirm = Answers(True)
    calls, on_complete = collect()

    outcome = make_run(project, config, backend, console, confirm=confirm).run(on_complete)

    assert outcome is RunOutcome.UPDATED
    assert calls == [RunOutcome.UPDATED]
    assert backend.created == ["myapp"]
    assert backend.submitted[0][0] == "proj-new"
    assert read_state(project)["backend_project_id"] == "proj-new"


def test_declining_backend_creation_cancels(project, config, console):
    write_state(project, {"project_name": "myapp"})
    backend = FakeBackend()

    run = make_run(project, config, backend, console, confirm=Answers(False))
    outcome = run.run()

    assert outcome is RunOutcome.CANCELLED
    assert backend.created == []
    assert isinstance(run.error, UserCancelled)


def test_all_hooks_finish_before_upload(project, config, console, monkeypatch):
    backend = FakeBackend()
    order = []

    class Recording(Feature):
        def __init__(self, name):
            self.name = name

        def pre_update(self, state, config, snapshot):
            order.append((self.name, len(backend.submitted)))

    features = [Recording("database"), Recording("user-files"), Recording("analytics")]
    monkeypatch.setattr(orchestrator, "get_enabled_features", lambda path: features)

    outcome = make_run(project, config, backend, console).run()

    assert outcome is RunOutcome.UPDATED
    assert sorted(name for name, _ in order) == ["analytics", "database", "user-files"]
    assert all(submitted == 0 for _, submitted in order)
    assert len(backend.submitted) == 1


def test_failing_hook_fails_the_push(project, config, console, monkeypatch):
    backend = FakeBackend()

    class Broken(Feature):
        name = "database"

        def pre_update(self, state, config, snapshot):
            raise BackendError("table definition rejected")

    monkeypatch.setattr(orchestrator, "get_enabled_features", lambda path: [Broken()])
    calls, on_complete = collect()

    outcome = make_run(project, config, backend, console).run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]
    assert backend.submitted == []


def test_missing_backend_definitions_fail(project, config, console):
    for f in (project / "backend").iterdir():
        f.unlink()
    (project / "backend").rmdir()

    outcome = make_run(project, config, FakeBackend(), console).run()

    assert outcome is RunOutcome.FAILED
    assert "No backend definitions found" in console.file.getvalue()


def test_run_writes_audit_log(project, config, console):
    make_run(project, config, FakeBackend(), console).run()

    entries = read_logs(str(project))
    assert entries[-1]["event"] == "push"
    assert entries[-1]["result"] == "updated"
    assert entries[-1]["backend_project"] == "proj-1"


def test_no_project_fails_without_state(tmp_path, monkeypatch, console):
    monkeypatch.chdir(tmp_path)
    calls, on_complete = collect()

    outcome = PushRun(console=console, backend=FakeBackend()).run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]


def test_module_run_entry_point(project, config, console):
    backend = FakeBackend()
    outcome = orchestrator.run(wait=-1, sync=True, project_path=project, config=config,
                               backend=backend, console=console)

    assert outcome is RunOutcome.UPDATED
    exports = json.loads((project / "src" / "aws-exports.json").read_text())
    assert exports["aws_project_id"] == "proj-1"


def test_pull_records_remote_state(project, config, console):
    backend = FakeBackend(snapshot=make_snapshot(last_updated="2026-10-09T00:00:00+00:00"))

    snapshot = pull(project_path=project, config=config, backend=backend, console=console)

    assert snapshot.last_updated == "2026-10-09T00:00:00+00:00"
    assert read_state(project)["backend_last_pulled"] == "2026-10-09T00:00:00+00:00"


def test_missing_aws_profile_fails_the_push(project, config, console, monkeypatch):
    def no_profile(profile_name=None, region_name=None):
        raise ProfileNotFound(profile=profile_name)

    monkeypatch.setattr(mobile_module.boto3.session, "Session", no_profile)
    calls, on_complete = collect()

    run = PushRun(project_path=project, config={**config, "profile": "missing-profile"}, console=console)
    outcome = run.run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]
    assert isinstance(run.error, BackendError)
    assert read_state(project)["backend_last_update_successful"] is False
    assert read_logs(str(project))[-1]["result"] == "failed"


def test_botocore_error_from_hook_fails_the_push(project, config, console, monkeypatch):
    backend = FakeBackend()

    class NoCredentials(Feature):
        name = "user-files"

        def pre_update(self, state, config, snapshot):
            raise ProfileNotFound(profile="missing-profile")

    monkeypatch.setattr(orchestrator, "get_enabled_features", lambda path: [NoCredentials()])
    calls, on_complete = collect()

    run = make_run(project, config, backend, console)
    outcome = run.run(on_complete)

    assert outcome is RunOutcome.FAILED
    assert calls == [RunOutcome.FAILED]
    assert isinstance(run.error, BackendError)
    assert backend.submitted == []
    assert read_state(project)["backend_last_update_successful"] is False
