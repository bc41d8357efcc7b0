"""Dataclasses for the Tharsis resources returned by the SDK."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import TypeAdapter


class RunStatus(str, Enum):
    """The states a run goes through."""

    APPLIED = "applied"
    APPLY_QUEUED = "apply_queued"
    APPLYING = "applying"
    CANCELED = "canceled"
    ERRORED = "errored"
    PENDING = "pending"
    PLAN_QUEUED = "plan_queued"
    PLANNED = "planned"
    PLANNED_AND_FINISHED = "planned_and_finished"
    PLANNING = "planning"


TERMINAL_RUN_STATUSES = frozenset(
    {
        RunStatus.APPLIED,
        RunStatus.CANCELED,
        RunStatus.PLANNED,
        RunStatus.PLANNED_AND_FINISHED,
        RunStatus.ERRORED,
    }
)
"""Statuses after which a run makes no further progress, so its job logs stop growing."""


def is_terminal_run_status(status: RunStatus | str) -> bool:
    """Return True if no further progress will happen on a run with the given status."""
    return run_status_from_graphql(status) in TERMINAL_RUN_STATUSES


def run_status_from_graphql(value: RunStatus | str) -> RunStatus | str:
    """Convert a status string, keeping values unknown to this SDK as plain strings."""
    try:
        return RunStatus(value)
    except ValueError:
        return value


class JobType(str, Enum):
    """The type of a job."""

    PLAN = "plan"
    APPLY = "apply"


@dataclass
class ResourceMetadata:
    """Metadata shared by all resources. Unlike the GraphQL schema, the ID lives here."""

    id: str
    version: str = ""
    trn: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


_DATETIME = TypeAdapter(datetime)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return _DATETIME.validate_python(value)


def metadata_from_graphql(node: dict[str, Any]) -> ResourceMetadata:
    """Convert the `id` and `metadata` of a GraphQL node into ResourceMetadata."""
    metadata = node.get("metadata") or {}
    return ResourceMetadata(
        id=node["id"],
        version=metadata.get("version", ""),
        trn=metadata.get("trn", ""),
        created_at=_parse_time(metadata.get("createdAt")),
        updated_at=_parse_time(metadata.get("updatedAt")),
    )


METADATA_FIELDS = "id metadata { createdAt updatedAt version trn }"
"""GraphQL selection matching metadata_from_graphql."""


@dataclass
class Group:
    """A Tharsis group."""

    metadata: ResourceMetadata
    name: str
    description: str
    full_path: str


@dataclass
class Workspace:
    """A Tharsis workspace."""

    metadata: ResourceMetadata
    name: str
    description: str
    full_path: str
    terraform_version: str
    max_job_duration: int
    prevent_destroy_plan: bool = False
    current_state_version_id: str | None = None


@dataclass
class Run:
    """A Tharsis run. It owns a plan job and optionally an apply job."""

    metadata: ResourceMetadata
    workspace_id: str
    workspace_path: str
    status: RunStatus | str
    created_by: str
    terraform_version: str = ""
    is_destroy: bool = False
    speculative: bool = False
    module_source: str | None = None
    module_version: str | None = None
    configuration_version_id: str | None = None
    plan_job_id: str | None = None
    apply_job_id: str | None = None
    force_canceled: bool = False


@dataclass
class Job:
    """A unit of remote execution producing an append-only log."""

    metadata: ResourceMetadata
    status: str
    type: JobType | str
    run_id: str
    workspace_path: str
    log_size: int
    max_job_duration: int = 0
    cancel_requested: bool = False


@dataclass
class TerraformModuleVersion:
    """A version of a Terraform module in the Tharsis module registry."""

    metadata: ResourceMetadata
    module_id: str
    version: str
    sha_sum: str
    status: str
    error: str = ""
    diagnostics: str = ""
    latest: bool = False
    submodules: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)


@dataclass
class TerraformProviderVersionMirror:
    """A Terraform provider version mirrored in a group."""

    metadata: ResourceMetadata
    version: str
    registry_namespace: str
    registry_hostname: str
    type: str


@dataclass
class User:
    """A Tharsis user."""

    metadata: ResourceMetadata
    username: str
    email: str = ""
    scim_external_id: str = ""
    admin: bool = False
    active: bool = False
