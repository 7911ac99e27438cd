"""Stage timing and wait-loop progress for push runs.

Stage timing:
    StageTimer wraps orchestrator stages and prints elapsed time after each.
    Always on, no config needed.

Wait progress:
    PollProgress is the default observer for the operation poller. It keeps
    a rich status spinner showing the current status check, so a ten minute
    CloudFormation update doesn't look like a hang.
"""

import time


class StageTimer:
    """Prints elapsed wall-clock time after each named stage.

    Usage:
        t = StageTimer(console)
        build_local_backend(path)
        t.mark("build")      # prints "  build  0.8s"
        submit()
        t.mark("upload")     # prints "  upload  2.1s"
    """

    def __init__(self, console):
        self.console = console
        self._stage_start = time.time()

    def mark(self, label):
        elapsed = time.time() - self._stage_start
        self._stage_start = time.time()
        self.console.print(f"  [dim]{label}  {elapsed:.1f}s[/dim]")
        return elapsed


class PollProgress:
    """Observer for poll_operation that renders a spinner per status check.

        progress = PollProgress(console)
        with progress:
            poll_operation(query, observer=progress)
    """

    def __init__(self, console, trace_id=None):
        self.console = console
        self._status = None
        self._trace_id = trace_id

    def __enter__(self):
        self._status = self.console.status("waiting ...")
        self._status.start()
        return self

    def __exit__(self, *exc):
        self._status.stop()
        self._status = None
        return False

    def __call__(self, attempt, raw_status):
        message = f"status check #[blue]{attempt}[/blue]: {raw_status}"
        if self._status is not None:
            self._status.update(message)
        else:
            self.console.print(f"  {message}")
        if self._trace_id:
            from mobilesync import cloudwatch
            cloudwatch.emit(self._trace_id, "poll", "status_check",
                            attempt=attempt, status=raw_status)
