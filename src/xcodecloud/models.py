"""Canonical Pydantic models shared across all xcodecloud modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Credential models** -- what the resolver reads and produces:
    :class:`Credentials`, :class:`Profile`, :class:`ConfigFile`, and
    :class:`CredentialOptions`.

**JSON:API envelope models** -- the wrappers every App Store Connect
response uses: :class:`APIResponse`, :class:`APIListResponse`,
:class:`IncludedResource`, :class:`PageLinks`, :class:`ResponseMeta`, and
:class:`APIErrorResponse`.

**CI resource models** -- :class:`CiProduct`, :class:`CiWorkflow`,
:class:`CiBuildRun`, :class:`CiBuildAction`, :class:`CiIssue`,
:class:`CiTestResult`, :class:`CiArtifact`, plus the request body used to
start a build run.

Python attributes are snake_case; the wire and config-file representation is
camelCase, produced by an alias generator. Always dump with
``by_alias=True``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generic, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel

from xcodecloud.exceptions import (
    InvalidPrivateKeyError,
    KeyFileNotFoundError,
    MissingCredentialsError,
)

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase JSON keys.

    Unknown keys are ignored so that new API attributes never break
    decoding.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# --- Credentials ---


class Credentials(CamelModel):
    """Key id, issuer id, and PEM private key needed to sign a token.

    Instances are immutable and every field must be non-blank. Use
    :meth:`from_key_file` to read the key from a ``.p8`` file.

    Example::

        creds = Credentials(key_id="ABC123DEF4", issuer_id="6953...", private_key=pem)
    """

    model_config = ConfigDict(frozen=True)

    key_id: str
    issuer_id: str
    private_key: str = Field(repr=False)

    @field_validator("key_id", "issuer_id", "private_key")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @classmethod
    def from_key_file(cls, key_id: str, issuer_id: str, path: str) -> Credentials:
        """Build credentials by reading the private key from *path*.

        Args:
            key_id: App Store Connect API key id.
            issuer_id: App Store Connect issuer id.
            path: Path to the ``.p8`` key file; ``~`` is expanded.

        Raises:
            KeyFileNotFoundError: If nothing exists at *path*.
            InvalidPrivateKeyError: If the file exists but cannot be read.
        """
        expanded = Path(path).expanduser()
        if not expanded.exists():
            raise KeyFileNotFoundError(path)
        try:
            private_key = expanded.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise InvalidPrivateKeyError(f"Could not read file: {exc}") from exc
        if not private_key.strip():
            raise InvalidPrivateKeyError(f"Key file is empty: {path}")
        return cls(key_id=key_id, issuer_id=issuer_id, private_key=private_key)


class Profile(CamelModel):
    """A named credential entry inside a :class:`ConfigFile`.

    Exactly one of ``private_key`` (inline PEM) or ``private_key_path`` is
    expected; the inline key wins when both are present.
    """

    key_id: str = Field(min_length=1)
    issuer_id: str = Field(min_length=1)
    private_key_path: Optional[str] = None
    private_key: Optional[str] = Field(default=None, repr=False)

    def to_credentials(self) -> Credentials:
        """Resolve this profile into :class:`Credentials`.

        Raises:
            MissingCredentialsError: If neither key field is set.
            KeyFileNotFoundError: If ``private_key_path`` does not exist.
            InvalidPrivateKeyError: If the key file cannot be read.
        """
        if self.private_key:
            return Credentials(
                key_id=self.key_id, issuer_id=self.issuer_id, private_key=self.private_key
            )
        if self.private_key_path:
            return Credentials.from_key_file(self.key_id, self.issuer_id, self.private_key_path)
        raise MissingCredentialsError("No private key or path specified")


class ConfigFile(CamelModel):
    """On-disk config file: an optional default profile name plus named profiles.

    Serialised as ``{"default": "...", "profiles": {"name": {...}}}``.
    """

    default_profile: Optional[str] = Field(default=None, alias="default")
    profiles: dict[str, Profile] = Field(default_factory=dict)


class CredentialOptions(BaseModel):
    """Explicit credential inputs, typically taken from command-line flags.

    ``private_key`` may be literal PEM text or base64-encoded PEM.
    ``profile`` selects a named profile from the config files.
    """

    key_id: Optional[str] = None
    issuer_id: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key: Optional[str] = Field(default=None, repr=False)
    profile: Optional[str] = None


# --- JSON:API envelope ---


class ResourceLinks(CamelModel):
    self_: Optional[str] = Field(default=None, alias="self")


class PageLinks(CamelModel):
    """Pagination links. ``next`` is an opaque, absolute URL."""

    self_: Optional[str] = Field(default=None, alias="self")
    first: Optional[str] = None
    next: Optional[str] = None


class Paging(CamelModel):
    total: Optional[int] = None
    limit: Optional[int] = None


class ResponseMeta(CamelModel):
    paging: Optional[Paging] = None


class IncludedResource(CamelModel):
    """A sideloaded resource from the ``included`` array.

    Its attributes are loosely typed: any JSON value (null, bool, number,
    string, list, or mapping, nested arbitrarily).
    """

    type: str
    id: str
    attributes: Optional[dict[str, JsonValue]] = None


class APIResponse(CamelModel, Generic[T]):
    """Envelope for a single resource."""

    data: T
    included: Optional[list[IncludedResource]] = None
    links: Optional[ResourceLinks] = None
    meta: Optional[ResponseMeta] = None


class APIListResponse(CamelModel, Generic[T]):
    """Envelope for one page of a collection.

    :attr:`next_cursor` is the verbatim ``links.next`` value; pass it to
    :meth:`~xcodecloud.client.APIClient.follow` unchanged to get the next
    page.
    """

    data: list[T]
    included: Optional[list[IncludedResource]] = None
    links: Optional[PageLinks] = None
    meta: Optional[ResponseMeta] = None

    @property
    def next_cursor(self) -> Optional[str]:
        return self.links.next if self.links else None

    @property
    def total(self) -> Optional[int]:
        if self.meta and self.meta.paging:
            return self.meta.paging.total
        return None


class APIErrorDetail(CamelModel):
    id: Optional[str] = None
    status: str
    code: str
    title: str
    detail: Optional[str] = None


class APIErrorResponse(CamelModel):
    errors: list[APIErrorDetail]


# --- Relationships ---


class RelationshipData(CamelModel):
    type: str
    id: str


class Relationship(CamelModel):
    data: Optional[RelationshipData] = None
    links: Optional[ResourceLinks] = None


class RelationshipList(CamelModel):
    data: Optional[list[RelationshipData]] = None
    links: Optional[ResourceLinks] = None
    meta: Optional[ResponseMeta] = None


# --- CI products ---


class CiProductAttributes(CamelModel):
    name: Optional[str] = None
    created_date: Optional[str] = None
    product_type: Optional[str] = None


class CiProductRelationships(CamelModel):
    app: Optional[Relationship] = None
    bundle_id: Optional[Relationship] = None
    primary_repositories: Optional[RelationshipList] = None


class CiProduct(CamelModel):
    type: str
    id: str
    attributes: Optional[CiProductAttributes] = None
    relationships: Optional[CiProductRelationships] = None

    def bundle_id(self, included: Optional[list[IncludedResource]]) -> Optional[str]:
        """Look up this product's bundle identifier in *included*.

        Checks the ``bundleId`` relationship first (``bundleIds`` resource,
        ``identifier`` attribute), then the ``app`` relationship (``apps``
        resource, ``bundleId`` attribute).
        """
        if not included or self.relationships is None:
            return None

        lookups = (
            (self.relationships.bundle_id, "bundleIds", "identifier"),
            (self.relationships.app, "apps", "bundleId"),
        )
        for relationship, resource_type, attribute in lookups:
            if relationship is None or relationship.data is None:
                continue
            ref = relationship.data.id
            for resource in included:
                if resource.type == resource_type and resource.id == ref:
                    value = (resource.attributes or {}).get(attribute)
                    if isinstance(value, str):
                        return value
        return None


# --- CI workflows ---


class Pattern(CamelModel):
    pattern: Optional[str] = None
    is_prefix: Optional[bool] = None


class SourcePattern(CamelModel):
    is_all_match: Optional[bool] = None
    patterns: Optional[list[Pattern]] = None


class Matcher(CamelModel):
    directory: Optional[str] = None
    file_extension: Optional[str] = None
    file_name: Optional[str] = None


class FilesAndFoldersRule(CamelModel):
    mode: Optional[str] = None
    matchers: Optional[list[Matcher]] = None


class Schedule(CamelModel):
    frequency: Optional[str] = None
    days: Optional[list[str]] = None
    hour: Optional[int] = None
    minute: Optional[int] = None
    timezone: Optional[str] = None


class BranchStartCondition(CamelModel):
    source: Optional[SourcePattern] = None
    files_and_folders_rule: Optional[FilesAndFoldersRule] = None
    auto_cancel: Optional[bool] = None


class TagStartCondition(CamelModel):
    source: Optional[SourcePattern] = None
    files_and_folders_rule: Optional[FilesAndFoldersRule] = None
    auto_cancel: Optional[bool] = None


class PullRequestStartCondition(CamelModel):
    source: Optional[SourcePattern] = None
    destination: Optional[SourcePattern] = None
    files_and_folders_rule: Optional[FilesAndFoldersRule] = None
    auto_cancel: Optional[bool] = None


class ScheduledStartCondition(CamelModel):
    source: Optional[SourcePattern] = None
    schedule: Optional[Schedule] = None


class ManualBranchStartCondition(CamelModel):
    source: Optional[SourcePattern] = None


class TestDestination(CamelModel):
    device_type_name: Optional[str] = None
    device_type_identifier: Optional[str] = None
    runtime_name: Optional[str] = None
    runtime_identifier: Optional[str] = None


class TestConfiguration(CamelModel):
    kind: Optional[str] = None
    test_plan_name: Optional[str] = None
    test_destinations: Optional[list[TestDestination]] = None


class CiAction(CamelModel):
    name: Optional[str] = None
    action_type: Optional[str] = None
    destination: Optional[str] = None
    build_distribution_audience: Optional[str] = None
    test_configuration: Optional[TestConfiguration] = None
    scheme: Optional[str] = None
    platform: Optional[str] = None
    is_required_to_pass: Optional[bool] = None


class CiWorkflowAttributes(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    branch_start_condition: Optional[BranchStartCondition] = None
    tag_start_condition: Optional[TagStartCondition] = None
    pull_request_start_condition: Optional[PullRequestStartCondition] = None
    scheduled_start_condition: Optional[ScheduledStartCondition] = None
    manual_branch_start_condition: Optional[ManualBranchStartCondition] = None
    actions: Optional[list[CiAction]] = None
    is_enabled: Optional[bool] = None
    is_locked_for_editing: Optional[bool] = None
    clean: Optional[bool] = None
    container_file_path: Optional[str] = None
    last_modified_date: Optional[str] = None


class CiWorkflowRelationships(CamelModel):
    product: Optional[Relationship] = None
    repository: Optional[Relationship] = None
    xcode_version: Optional[Relationship] = None
    mac_os_version: Optional[Relationship] = None


class CiWorkflow(CamelModel):
    type: str
    id: str
    attributes: Optional[CiWorkflowAttributes] = None
    relationships: Optional[CiWorkflowRelationships] = None


# --- CI build runs ---


class Author(CamelModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class SourceCommit(CamelModel):
    commit_sha: Optional[str] = None
    message: Optional[str] = None
    author: Optional[Author] = None
    web_url: Optional[str] = None


class CiBuildRunAttributes(CamelModel):
    number: Optional[int] = None
    created_date: Optional[str] = None
    started_date: Optional[str] = None
    finished_date: Optional[str] = None
    source_commit: Optional[SourceCommit] = None
    destination_commit: Optional[SourceCommit] = None
    is_pull_request_build: Optional[bool] = None
    execution_progress: Optional[str] = None
    completion_status: Optional[str] = None
    start_reason: Optional[str] = None
    cancel_reason: Optional[str] = None


class CiBuildRunRelationships(CamelModel):
    builds: Optional[RelationshipList] = None
    workflow: Optional[Relationship] = None
    product: Optional[Relationship] = None
    source_branch_or_tag: Optional[Relationship] = None
    destination_branch: Optional[Relationship] = None
    pull_request: Optional[Relationship] = None


class CiBuildRun(CamelModel):
    type: str
    id: str
    attributes: Optional[CiBuildRunAttributes] = None
    relationships: Optional[CiBuildRunRelationships] = None


# --- CI build actions, issues, test results, artifacts ---


class CiBuildActionAttributes(CamelModel):
    name: Optional[str] = None
    action_type: Optional[str] = None
    started_date: Optional[str] = None
    finished_date: Optional[str] = None
    execution_progress: Optional[str] = None
    completion_status: Optional[str] = None
    is_required_to_pass: Optional[bool] = None


class CiBuildAction(CamelModel):
    type: str
    id: str
    attributes: Optional[CiBuildActionAttributes] = None

    @property
    def failed(self) -> bool:
        """True when the action completed as ``FAILED`` or ``ERRORED``."""
        status = self.attributes.completion_status if self.attributes else None
        return status in ("FAILED", "ERRORED")


class FileSource(CamelModel):
    path: Optional[str] = None
    line_number: Optional[int] = None


class CiIssueAttributes(CamelModel):
    issue_type: Optional[str] = None
    message: Optional[str] = None
    file_source: Optional[FileSource] = None
    category: Optional[str] = None


class CiIssue(CamelModel):
    type: str
    id: str
    attributes: Optional[CiIssueAttributes] = None


class DestinationTestResult(CamelModel):
    uuid: Optional[str] = None
    device_name: Optional[str] = None
    os_version: Optional[str] = None
    status: Optional[str] = None
    duration: Optional[float] = None


class CiTestResultAttributes(CamelModel):
    class_name: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = Field(
        default=None, description="EXPECTED_FAILURE, FAILURE, SKIPPED, or SUCCESS"
    )
    file_source: Optional[FileSource] = None
    message: Optional[str] = None
    destination_test_results: Optional[list[DestinationTestResult]] = None


class CiTestResult(CamelModel):
    type: str
    id: str
    attributes: Optional[CiTestResultAttributes] = None


class CiArtifactAttributes(CamelModel):
    file_type: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    download_url: Optional[str] = None


class CiArtifact(CamelModel):
    type: str
    id: str
    attributes: Optional[CiArtifactAttributes] = None


# --- Build run creation ---


class GitReference(CamelModel):
    """Branch or tag to build. Build with :meth:`branch` or :meth:`tag`."""

    kind: Literal["BRANCH", "TAG"]
    name: str

    @classmethod
    def branch(cls, name: str) -> GitReference:
        return cls(kind="BRANCH", name=name)

    @classmethod
    def tag(cls, name: str) -> GitReference:
        return cls(kind="TAG", name=name)


class CiBuildRunCreateAttributes(CamelModel):
    source_branch_or_tag: Optional[GitReference] = None


class CreateRelationship(CamelModel):
    data: RelationshipData


class CiBuildRunCreateRelationships(CamelModel):
    workflow: CreateRelationship


class CiBuildRunCreateData(CamelModel):
    type: str = "ciBuildRuns"
    attributes: Optional[CiBuildRunCreateAttributes] = None
    relationships: CiBuildRunCreateRelationships


class CiBuildRunCreateRequest(CamelModel):
    """Request body for ``POST /v1/ciBuildRuns``."""

    data: CiBuildRunCreateData

    @classmethod
    def for_workflow(
        cls, workflow_id: str, git_reference: Optional[GitReference] = None
    ) -> CiBuildRunCreateRequest:
        attributes = None
        if git_reference is not None:
            attributes = CiBuildRunCreateAttributes(source_branch_or_tag=git_reference)
        return cls(
            data=CiBuildRunCreateData(
                attributes=attributes,
                relationships=CiBuildRunCreateRelationships(
                    workflow=CreateRelationship(
                        data=RelationshipData(type="ciWorkflows", id=workflow_id)
                    )
                ),
            )
        )
