from datetime import datetime


def is_update_needed(last_update_successful, last_update_time, build_dir_exists, build_dir_mtime):
    """Decide whether the local backend has to be pushed.

    A failed last push or an unknown timestamp on either side counts as
    "changed". Returns False only when the build dir is missing or is not
    newer than the last successful push.
    """
    if not last_update_successful:
        return True
    if not build_dir_exists:
        return False
    if last_update_time is None or build_dir_mtime is None:
        return True
    return last_update_time < build_dir_mtime


def mtime_as_datetime(timestamp):
    """Convert an os.stat mtime to a naive local datetime.

    Truncated to whole seconds, the precision of project-info.json.
    """
    if timestamp is None:
        return None
    return datetime.fromtimestamp(int(timestamp))
