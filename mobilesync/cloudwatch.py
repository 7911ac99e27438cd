"""Optional CloudWatch Logs spans for push runs.

Enabled by `cloudwatch_log_group` in .mobilesyncconfig. Every run writes to
its own stream, <yyyy/mm/dd>/<trace_id>, so one push reads top to bottom:

    filter trace_id = "abc12345" | sort @timestamp asc

Span types written by mobilesync:
    session   start / finish, with project, backend_project and result
    stage     build, hooks, upload, wait, with elapsed_ms
    poll      one per status check of the wait loop, with attempt and status
"""

import json
import threading
import time
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

_target = {"client": None, "group": None, "stream": None}
_lock = threading.Lock()


def init(log_group, log_stream, region=None):
    """Point emit() at log_group/log_stream. An empty group turns spans off."""
    _target.update(client=None, group=log_group, stream=log_stream)
    if not log_group:
        return
    try:
        client = boto3.client("logs", region_name=region)
        _create_if_missing(client, log_group, log_stream)
    except (ClientError, BotoCoreError):
        return
    _target["client"] = client


def emit(trace_id, span_type, name, elapsed_ms=None, **meta):
    """Write one span. Never raises."""
    client = _target["client"]
    if client is None:
        return
    span = {
        "trace_id": trace_id,
        "span_type": span_type,
        "name": name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **meta,
    }
    if elapsed_ms is not None:
        span["elapsed_ms"] = round(elapsed_ms)
    event = {"timestamp": int(time.time() * 1000), "message": json.dumps(span, default=str)}
    with _lock:
        try:
            client.put_log_events(
                logGroupName=_target["group"],
                logStreamName=_target["stream"],
                logEvents=[event],
            )
        except (ClientError, BotoCoreError):
            pass


def _create_if_missing(client, log_group, log_stream):
    try:
        client.create_log_group(logGroupName=log_group)
    except client.exceptions.ResourceAlreadyExistsException:
        pass
    try:
        client.create_log_stream(logGroupName=log_group, logStreamName=log_stream)
    except client.exceptions.ResourceAlreadyExistsException:
        pass
