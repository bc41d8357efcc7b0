"""Tharsis SDK module."""

from .auth import NoopTokenProvider, ServiceAccountTokenProvider, StaticTokenProvider, TokenProvider
from .client import Client
from .config import Config, Settings, load_config
from .errors import ErrorCode, TharsisError, is_conflict_error, is_not_found_error
from .graphql_client import GraphQLClient
from .group import GetGroupsInput, GetGroupsOutput, GroupFilter, GroupSortableField
from .job import JobLogsSubscriptionInput, JobLogStreamEvent, LogSink
from .log_tail import LogChunk, LogTailer
from .pagination import (
    PageInfo,
    PaginatedResponse,
    PaginationError,
    PaginationOptions,
    Paginator,
    paginate_items,
)
from .run import GetRunsInput, GetRunsOutput, RunFilter, RunSortableField
from .subscription import EventStream, SubscriptionClient
from .terraform_module_version import (
    GetTerraformModuleVersionsInput,
    GetTerraformModuleVersionsOutput,
    TerraformModuleVersionSortableField,
)
from .terraform_provider_version_mirror import (
    GetTerraformProviderVersionMirrorsInput,
    GetTerraformProviderVersionMirrorsOutput,
    TerraformProviderVersionMirrorSortableField,
)
from .types import (
    TERMINAL_RUN_STATUSES,
    Group,
    Job,
    JobType,
    ResourceMetadata,
    Run,
    RunStatus,
    TerraformModuleVersion,
    TerraformProviderVersionMirror,
    User,
    Workspace,
    is_terminal_run_status,
)
from .user import GetUsersInput, GetUsersOutput, UserFilter, UserSortableField
from .workspace import GetWorkspacesInput, GetWorkspacesOutput, WorkspaceFilter
from .workspace import WorkspaceSortableField

__all__ = [
    "TERMINAL_RUN_STATUSES",
    "Client",
    "Config",
    "ErrorCode",
    "EventStream",
    "GetGroupsInput",
    "GetGroupsOutput",
    "GetRunsInput",
    "GetRunsOutput",
    "GetTerraformModuleVersionsInput",
    "GetTerraformModuleVersionsOutput",
    "GetTerraformProviderVersionMirrorsInput",
    "GetTerraformProviderVersionMirrorsOutput",
    "GetUsersInput",
    "GetUsersOutput",
    "GetWorkspacesInput",
    "GetWorkspacesOutput",
    "GraphQLClient",
    "Group",
    "GroupFilter",
    "GroupSortableField",
    "Job",
    "JobLogStreamEvent",
    "JobLogsSubscriptionInput",
    "JobType",
    "LogChunk",
    "LogSink",
    "LogTailer",
    "NoopTokenProvider",
    "PageInfo",
    "PaginatedResponse",
    "PaginationError",
    "PaginationOptions",
    "Paginator",
    "ResourceMetadata",
    "Run",
    "RunFilter",
    "RunSortableField",
    "RunStatus",
    "ServiceAccountTokenProvider",
    "Settings",
    "StaticTokenProvider",
    "SubscriptionClient",
    "TerraformModuleVersion",
    "TerraformModuleVersionSortableField",
    "TerraformProviderVersionMirror",
    "TerraformProviderVersionMirrorSortableField",
    "TharsisError",
    "TokenProvider",
    "User",
    "UserFilter",
    "UserSortableField",
    "Workspace",
    "WorkspaceFilter",
    "WorkspaceSortableField",
    "is_conflict_error",
    "is_not_found_error",
    "is_terminal_run_status",
    "load_config",
    "paginate_items",
]
