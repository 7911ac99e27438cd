def check_remote_ahead(local_recorded_update_time, remote_snapshot):
    """True when the remote project changed since this copy last pulled it.

    local_recorded_update_time is the remote `lastUpdatedDate` recorded at
    the last pull or push. Any difference counts, including a missing record.
    """
    return (local_recorded_update_time or "") != (remote_snapshot.last_updated or "")


CONFLICT_WARNING = """\
[red]the backend project is ahead of your local copy[/red]
it might have been updated by others or through other channels
if you continue with the push, unintended consequences may occur
such as accidental feature removal, among others
[dim]# to retrieve the latest details of the backend project[/dim]
    $ mobilesync pull"""
