"""cloud-api feature: Lambda-backed REST APIs.

Each directory under <backend_dir>/cloud-api/ is one Lambda function. Before
the update, every function is zipped and uploaded to the project's
deployment bucket as uploads/<function>.zip, where the CloudFormation stack
picks it up.
"""

import io
import zipfile
from pathlib import Path

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from mobilesync.backend.base import CLOUD_API_FEATURE
from mobilesync.builder import backend_source_path, get_ignore_set, should_ignore
from mobilesync.errors import BackendError, describe_client_error
from mobilesync.features.base import Feature

FUNCTIONS_DIR = "cloud-api"
UPLOAD_PREFIX = "uploads"


def find_deployment_bucket(snapshot):
    """Name of the Mobile Hub deployments bucket, or None."""
    for resource in snapshot.resources:
        if resource.get("type") == "AWS::S3::Bucket" and "deployments" in resource.get("name", ""):
            return resource["name"]
    return None


def zip_function(function_path):
    function_path = Path(function_path)
    ignore_set = get_ignore_set(function_path) - {"node_modules"}
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
        for f in sorted(function_path.rglob("*")):
            rel = f.relative_to(function_path)
            if f.is_file() and not should_ignore(rel, ignore_set):
                zf.write(f, arcname=rel.as_posix())
    return buf.getvalue()


class CloudApiFeature(Feature):
    name = "cloud-api"
    spec_key = CLOUD_API_FEATURE

    def __init__(self, s3_client=None):
        self._s3 = s3_client

    def _client(self, config):
        if self._s3 is None:
            try:
                session = boto3.session.Session(profile_name=config.get("profile"),
                                                region_name=config.get("region"))
                self._s3 = session.client("s3")
            except (ClientError, BotoCoreError) as e:
                raise BackendError(f"Cannot reach S3: {describe_client_error(e)}") from e
        return self._s3

    def function_dirs(self, state, config):
        root = backend_source_path(state.project_path, config.get("backend_dir", "backend")) / FUNCTIONS_DIR
        if not root.is_dir():
            return []
        return sorted(d for d in root.iterdir() if d.is_dir())

    def pre_update(self, state, config, snapshot):
        functions = self.function_dirs(state, config)
        if not functions:
            return []

        bucket = find_deployment_bucket(snapshot)
        if not bucket:
            raise BackendError(
                f"No deployment bucket found for backend project {snapshot.project_id}; "
                "cannot upload cloud-api functions."
            )

        s3 = self._client(config)
        uploaded = []
        for function in functions:
            key = f"{UPLOAD_PREFIX}/{function.name}.zip"
            try:
                s3.put_object(Bucket=bucket, Key=key, Body=zip_function(function))
            except (ClientError, BotoCoreError) as e:
                raise BackendError(f"Upload of {function.name} failed: {describe_client_error(e)}") from e
            uploaded.append(key)
        return uploaded
