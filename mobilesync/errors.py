"""Exceptions raised by mobilesync and hints for Mobile Hub service errors."""


class MobileSyncError(Exception):
    """Base class for every error mobilesync raises on purpose."""


class ProjectNotFound(MobileSyncError):
    """No mobilesync project (or no project-info.json) in this directory tree."""


class UserCancelled(MobileSyncError):
    pass


class RemoteConflictUnresolved(MobileSyncError):
    """The remote backend is ahead of the local copy and the push was declined."""


class BackendError(MobileSyncError):
    """A Mobile Hub call failed or returned something unusable."""


class SubmissionFailed(BackendError):
    pass


class PollInterrupted(BackendError):
    """The wait for the update operation ended without a success status."""

    def __init__(self, code, message=""):
        super().__init__(message or f"wait interrupted (code {code})")
        self.code = code


class PollExhausted(PollInterrupted):
    def __init__(self, attempts):
        super().__init__(0, f"gave up waiting after {attempts} status checks")
        self.attempts = attempts


class MalformedRemoteResponse(PollInterrupted):
    def __init__(self):
        super().__init__(-2, "CloudFormation stack information missing")


class UnrecognizedRemoteStatus(PollInterrupted):
    def __init__(self, status):
        super().__init__(-1, f"unrecognized status code: {status}")
        self.status = status


# Mobile Hub error code → what the user should do about it.
_MOBILE_HINTS = {
    "UnauthorizedException": "Credentials are not authorized for Mobile Hub. "
                             "Check AWS_ACCESS_KEY_ID / AWS_PROFILE and the IAM policy.",
    "AccessDeniedException": "Credentials are not authorized for Mobile Hub. "
                             "Check AWS_ACCESS_KEY_ID / AWS_PROFILE and the IAM policy.",
    "NotFoundException": "The backend project no longer exists. "
                         "Remove backend_project_id from .mobilesync/project-info.json to create a new one.",
    "TooManyRequestsException": "Mobile Hub is throttling requests. Wait a minute and push again.",
    "LimitExceededException": "An account limit was reached (projects or resources).",
    "ServiceUnavailableException": "Mobile Hub is temporarily unavailable. Try again later.",
    "InternalFailureException": "Mobile Hub reported an internal failure. Try again later.",
    "AccountActionRequiredException": "The AWS account needs attention in the console before it can be used.",
    "BadRequestException": "Mobile Hub rejected the request. The backend contents may be invalid.",
}


def error_code(exc):
    """Extract the service error code from a botocore ClientError, or ''."""
    return (getattr(exc, "response", None) or {}).get("Error", {}).get("Code", "")


def describe_client_error(exc):
    """Return a one-line explanation for a failed Mobile Hub call."""
    code = error_code(exc)
    hint = _MOBILE_HINTS.get(code)
    if hint:
        return f"{code}: {hint}"
    return str(exc) or exc.__class__.__name__
