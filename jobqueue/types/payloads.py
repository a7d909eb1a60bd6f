"""
Job payload variants.

Every job carries exactly one payload variant, tagged by its ``type`` field.
The queue engine stores and loads payloads opaquely; only executors inspect
their fields. New job kinds are added by defining a variant and listing it in
``JobPayload``.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class _PayloadBase(BaseModel):
    """Common configuration: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class ClaudeExtractionPayload(_PayloadBase):
    """Run an extraction prompt against a repository checkout."""

    type: Literal["claude_extraction"] = "claude_extraction"
    name: str
    prompt: str
    branch: str | None = None
    target_path: str | None = None
    origin_url: str | None = None
    requirement_id: str | None = None
    prompt_hash: str


class CreateFilePayload(_PayloadBase):
    type: Literal["create_file"] = "create_file"
    path: str
    content: str
    overwrite: bool = False


class DeleteFilePayload(_PayloadBase):
    type: Literal["delete_file"] = "delete_file"
    path: str
    require_exists: bool = False


class SyncAwsPayload(_PayloadBase):
    """Synchronise a single cloud resource with its declared configuration."""

    type: Literal["sync_aws"] = "sync_aws"
    resource_type: str
    resource_id: str
    config: dict[str, Any]


class EchoPayload(_PayloadBase):
    type: Literal["echo"] = "echo"
    message: str


JobPayload = Annotated[
    Union[
        ClaudeExtractionPayload,
        CreateFilePayload,
        DeleteFilePayload,
        SyncAwsPayload,
        EchoPayload,
    ],
    Field(discriminator="type"),
]

_payload_adapter: TypeAdapter[JobPayload] = TypeAdapter(JobPayload)

JOB_TYPES: tuple[str, ...] = (
    "claude_extraction",
    "create_file",
    "delete_file",
    "sync_aws",
    "echo",
)


def parse_payload(data: Any) -> JobPayload:
    """
    Validate raw data into a payload variant.

    Args:
        data: A mapping with a ``type`` tag, or an already-built payload.

    Returns:
        The matching payload model.

    Raises:
        pydantic.ValidationError: If the tag is unknown or fields are missing.
    """
    if isinstance(data, _PayloadBase):
        return data
    return _payload_adapter.validate_python(data)


def dump_payload(payload: JobPayload) -> dict[str, Any]:
    """Serialize a payload to its stored JSON form."""
    return payload.model_dump(mode="json", by_alias=True)
