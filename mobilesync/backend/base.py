from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

# Mobile Hub feature whose resources are provisioned through CloudFormation.
CLOUD_API_FEATURE = "cloudlogic"

# Resource attribute holding the CloudFormation stack status.
FORMATION_STATE_ATTRIBUTE = "status"


def _as_text(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value) if value else ""


@dataclass
class RemoteSnapshot:
    """The state of a remote backend project as described by the service."""

    project_id: str
    name: str = ""
    console_url: str = ""
    last_updated: str = ""
    state: str = ""
    region: str = ""
    resources: list = field(default_factory=list)

    @classmethod
    def from_details(cls, details):
        details = details or {}
        return cls(
            project_id=details.get("projectId", ""),
            name=details.get("name", ""),
            console_url=details.get("consoleUrl", ""),
            last_updated=_as_text(details.get("lastUpdatedDate")),
            state=details.get("state", ""),
            region=details.get("region", ""),
            resources=list(details.get("resources") or []),
        )

    def to_details(self):
        return {
            "projectId": self.project_id,
            "name": self.name,
            "consoleUrl": self.console_url,
            "lastUpdatedDate": self.last_updated,
            "state": self.state,
            "region": self.region,
            "resources": self.resources,
        }

    def feature_resources(self, feature):
        return [r for r in self.resources if r.get("feature") == feature]

    @property
    def formation_states(self):
        """Raw CloudFormation statuses reported for the cloud-api resources."""
        states = []
        for resource in self.feature_resources(CLOUD_API_FEATURE):
            value = (resource.get("attributes") or {}).get(FORMATION_STATE_ATTRIBUTE)
            if value:
                states.append(value)
        return states


class BackendService(ABC):
    """Base interface for the remote backend project service.

    Implementations: MobileHubBackend (boto3). Every method raises
    BackendError when the remote call fails.
    """

    @abstractmethod
    def fetch_snapshot(self, project_id):
        """Describe the project as it is now. Returns RemoteSnapshot."""
        pass

    @abstractmethod
    def create_project(self, name, contents=None):
        """Create a new backend project. Returns RemoteSnapshot."""
        pass

    @abstractmethod
    def submit_update(self, project_id, contents):
        """Upload packaged backend contents, starting an update. Returns RemoteSnapshot."""
        pass

    @abstractmethod
    def query_status(self, project_id):
        """Describe the project, syncing resource status first. Returns RemoteSnapshot."""
        pass
