"""Wait for a Mobile Hub update to finish provisioning.

update_project returns as soon as the new backend contents are accepted;
the CloudFormation stack behind the cloud-api feature keeps changing for
minutes afterwards. poll_operation re-describes the project until the stack
reaches a terminal status, a bounded number of times, with a fixed delay.

Result codes (PollOutcome.code):
    None  success
     0    wait interrupted: query failed or attempts exhausted
    -1    unrecognized status
    -2    status missing from the response
     2    terminal failure
"""

import time
from dataclasses import dataclass
from enum import Enum

from mobilesync.errors import (
    BackendError,
    MalformedRemoteResponse,
    PollExhausted,
    PollInterrupted,
    UnrecognizedRemoteStatus,
)

MAX_ATTEMPTS = 100
INTERVAL = 5  # seconds


class StatusGroup(Enum):
    IN_PROGRESS = "in-progress"
    SUCCESS = "success"
    FAILURE = "failure"
    UNRECOGNIZED = "unrecognized"


# CloudFormation stack status → stage group.
STAGE_GROUPS = {
    "CREATE_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "UPDATE_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "ROLLBACK_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "UPDATE_ROLLBACK_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "UPDATE_ROLLBACK_COMPLETE_CLEANUP_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "DELETE_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "REVIEW_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "IMPORT_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "IMPORT_ROLLBACK_IN_PROGRESS": StatusGroup.IN_PROGRESS,
    "CREATE_COMPLETE": StatusGroup.SUCCESS,
    "UPDATE_COMPLETE": StatusGroup.SUCCESS,
    "IMPORT_COMPLETE": StatusGroup.SUCCESS,
    "CREATE_FAILED": StatusGroup.FAILURE,
    "UPDATE_FAILED": StatusGroup.FAILURE,
    "DELETE_FAILED": StatusGroup.FAILURE,
    "DELETE_COMPLETE": StatusGroup.FAILURE,
    "ROLLBACK_FAILED": StatusGroup.FAILURE,
    "ROLLBACK_COMPLETE": StatusGroup.FAILURE,
    "UPDATE_ROLLBACK_FAILED": StatusGroup.FAILURE,
    "UPDATE_ROLLBACK_COMPLETE": StatusGroup.FAILURE,
    "IMPORT_ROLLBACK_FAILED": StatusGroup.FAILURE,
    "IMPORT_ROLLBACK_COMPLETE": StatusGroup.FAILURE,
}

# When several stacks report, the summary is the first group found in this order.
_SUMMARY_PRIORITY = (
    StatusGroup.UNRECOGNIZED,
    StatusGroup.FAILURE,
    StatusGroup.IN_PROGRESS,
    StatusGroup.SUCCESS,
)


def classify_status(raw_status):
    if not raw_status:
        return StatusGroup.UNRECOGNIZED
    return STAGE_GROUPS.get(raw_status.strip().upper(), StatusGroup.UNRECOGNIZED)


def formation_state_summary(snapshot):
    """Collapse the cloud-api stack statuses of a snapshot into one status.

    Returns None when the snapshot carries no stack status at all.
    """
    states = snapshot.formation_states
    if not states:
        return None
    by_group = {}
    for state in states:
        by_group.setdefault(classify_status(state), state)
    for group in _SUMMARY_PRIORITY:
        if group in by_group:
            return by_group[group]
    return None


@dataclass
class PollOutcome:
    snapshot: object
    code: int = None
    attempts: int = 0
    status: str = None
    exhausted: bool = False

    @property
    def ok(self):
        return self.code is None

    def error(self):
        """The exception describing a failed wait, or None on success."""
        if self.ok:
            return None
        if self.exhausted:
            return PollExhausted(self.attempts)
        if self.code == -1:
            return UnrecognizedRemoteStatus(self.status)
        if self.code == -2:
            return MalformedRemoteResponse()
        if self.code == 2:
            return PollInterrupted(2, f"update finished with status {self.status}")
        return PollInterrupted(self.code)


def poll_operation(query, snapshot=None, max_attempts=MAX_ATTEMPTS, interval=INTERVAL,
                   sleep=time.sleep, observer=None, console=None):
    """Query until the operation reaches a terminal status or attempts run out.

    query: zero-argument callable returning a fresh RemoteSnapshot, raising
        BackendError on failure.
    observer: optional callable(attempt, raw_status), notified before each wait.
    """
    attempt = 1
    while True:
        try:
            snapshot = query()
        except BackendError as e:
            _say(console, f"[red]wait interrupted[/red] {e}")
            return PollOutcome(snapshot, code=0, attempts=attempt)

        status = formation_state_summary(snapshot)
        if not status:
            _say(console, "[red]wait interrupted[/red] CloudFormation stack information missing")
            return PollOutcome(snapshot, code=-2, attempts=attempt)

        group = classify_status(status)
        if group is StatusGroup.UNRECOGNIZED:
            _say(console, f"[red]wait interrupted[/red] unrecognized status code: {status}")
            return PollOutcome(snapshot, code=-1, attempts=attempt, status=status)

        if group is StatusGroup.IN_PROGRESS:
            if attempt >= max_attempts:
                _say(console, f"[red]wait interrupted[/red] still {status} after {attempt} status checks")
                return PollOutcome(snapshot, code=0, attempts=attempt, status=status, exhausted=True)
            if observer:
                observer(attempt, status)
            sleep(interval)
            attempt += 1
            continue

        _say(console, f"cloud-api update finished with status code: [blue]{status}[/blue]")
        if group is StatusGroup.SUCCESS:
            return PollOutcome(snapshot, attempts=attempt, status=status)
        return PollOutcome(snapshot, code=2, attempts=attempt, status=status)


def wait_for_operation(query, snapshot, wait=None, max_attempts=MAX_ATTEMPTS, interval=INTERVAL,
                       sleep=time.sleep, observer=None, console=None):
    """poll_operation with the --wait override applied.

    wait < 0 skips polling and reports success right away; the update may
    still be in progress. wait > 0 replaces max_attempts.
    """
    if wait is not None and wait < 0:
        _say(console, "[blue]cloud-api create/update may still be in progress[/blue]")
        return PollOutcome(snapshot)
    if wait:
        max_attempts = wait
    return poll_operation(query, snapshot=snapshot, max_attempts=max_attempts, interval=interval,
                          sleep=sleep, observer=observer, console=console)


def _say(console, message):
    if console is not None:
        console.print(message)
