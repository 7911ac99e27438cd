"""AWS Mobile Hub backend service.

Wraps the boto3 `mobile` client:

    describe_project(projectId, syncFromResources)  → fetch_snapshot / query_status
    create_project(name, region, contents)          → create_project
    update_project(projectId, contents)             → submit_update

Failures surface as BackendError carrying a hint for the common Mobile Hub
error codes (see mobilesync.errors).
"""

import boto3
from botocore.exceptions import BotoCoreError, ClientError, UnknownServiceError

from mobilesync.backend.base import BackendService, RemoteSnapshot
from mobilesync.errors import BackendError, describe_client_error


class MobileHubBackend(BackendService):

    def __init__(self, region=None, profile=None, client=None):
        if client is None:
            try:
                session = boto3.session.Session(profile_name=profile, region_name=region)
                client = session.client("mobile")
            except UnknownServiceError as e:
                raise BackendError(
                    "The installed botocore has no Mobile Hub ('mobile') API. "
                    "Install a botocore release that still ships it."
                ) from e
            except (ClientError, BotoCoreError) as e:
                raise BackendError(describe_client_error(e)) from e
        self._mobile = client
        self.region = region

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def fetch_snapshot(self, project_id):
        response = self._call("describe_project", projectId=project_id)
        return self._snapshot(response)

    def create_project(self, name, contents=None):
        params = {"name": name}
        if self.region:
            params["region"] = self.region
        if contents:
            params["contents"] = contents
        response = self._call("create_project", **params)
        return self._snapshot(response)

    def submit_update(self, project_id, contents):
        response = self._call("update_project", projectId=project_id, contents=contents)
        return self._snapshot(response)

    def query_status(self, project_id):
        response = self._call("describe_project", projectId=project_id, syncFromResources=True)
        return self._snapshot(response)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _call(self, method, **params):
        try:
            return getattr(self._mobile, method)(**params)
        except (ClientError, BotoCoreError) as e:
            raise BackendError(describe_client_error(e)) from e

    def _snapshot(self, response):
        details = (response or {}).get("details")
        if not details:
            raise BackendError("Mobile Hub returned no project details")
        return RemoteSnapshot.from_details(details)
