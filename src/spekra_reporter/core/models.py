"""Wire models for the Spekra reports API and the artifact entity.

Payload models are Pydantic models that serialise with camelCase aliases,
which is what the collection API expects. Python code uses snake_case field
names; both spellings are accepted on input.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Literal
import uuid

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from spekra_reporter.constants import (
    PRE_COMPRESSED_CONTENT_TYPES,
    PRE_COMPRESSED_EXTENSIONS,
)

Framework = Literal["playwright", "jest", "vitest"]
TestStatus = Literal["passed", "failed", "skipped", "timedOut", "interrupted"]
ArtifactType = Literal["trace", "screenshot", "video", "attachment"]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json(self) -> str:
        """Compact JSON using the API's camelCase field names."""
        return self.model_dump_json(by_alias=True)


class TestResult(_WireModel):
    """Framework-agnostic result of one test execution."""

    __test__ = False  # not a pytest test class

    test_file: str
    full_title: str
    suite_path: list[str] = Field(default_factory=list)
    test_name: str
    tags: list[str] = Field(default_factory=list)
    project: str | None = None
    status: TestStatus
    duration_ms: int = Field(ge=0)
    retry: int = Field(default=0, ge=0)
    error_message: str | None = None


class RunMetadata(_WireModel):
    """Identity and CI/git context of one test run."""

    run_id: str
    source: str
    framework: Framework
    branch: str | None = None
    commit_sha: str | None = None
    ci_url: str | None = None
    shard_index: int | None = None
    total_shards: int | None = None
    started_at: str
    finished_at: str | None = None


class ReportPayload(RunMetadata):
    """Report body sent to ``POST /reports``."""

    results: list[TestResult] = Field(default_factory=list)


class RunSummary(_WireModel):
    run_id: str
    tests_received: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class ReportResponse(_WireModel):
    """Response to a report submission.

    ``upload_urls`` maps artifact ids to presigned storage URLs.
    """

    success: bool
    message: str = ""
    summary: RunSummary
    upload_urls: dict[str, str] = Field(default_factory=dict)


class ConfirmUploadsResponse(_WireModel):
    success: bool
    confirmed: int = 0


# --- Artifact entity ---


def is_pre_compressed(content_type: str, path: str | Path) -> bool:
    """Whether content type or file extension marks an already-compressed file."""
    if content_type in PRE_COMPRESSED_CONTENT_TYPES:
        return True
    lower_path = str(path).lower()
    return any(lower_path.endswith(ext) for ext in PRE_COMPRESSED_EXTENSIONS)


@dataclasses.dataclass(frozen=True, slots=True)
class Artifact:
    """Metadata for a captured test artifact; content stays on disk."""

    id: str
    type: ArtifactType
    name: str
    path: Path
    content_type: str
    size: int
    is_pre_compressed: bool

    @classmethod
    def create(
        cls,
        *,
        type: ArtifactType,  # noqa: A002
        name: str,
        path: str | Path,
        content_type: str,
        size: int,
    ) -> Artifact:
        """Create an artifact with a fresh id and pre-compression detection."""
        return cls(
            id=str(uuid.uuid4()),
            type=type,
            name=name,
            path=Path(path),
            content_type=content_type,
            size=size,
            is_pre_compressed=is_pre_compressed(content_type, path),
        )

    @staticmethod
    def infer_type(name: str, content_type: str) -> ArtifactType:
        """Map an attachment name and MIME type onto an artifact type."""
        if name == "trace" or content_type == "application/zip":
            return "trace"
        if name == "screenshot" or content_type.startswith("image/"):
            return "screenshot"
        if name == "video" or content_type.startswith("video/"):
            return "video"
        return "attachment"

    def to_metadata(self) -> dict[str, object]:
        """API-safe metadata; the local path never leaves the machine."""
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "contentType": self.content_type,
            "size": self.size,
            "compressed": self.is_pre_compressed,
        }
