"""
Unit tests for payload variants.
"""

import pytest
from pydantic import ValidationError

from jobqueue.types.api import EnqueueJobRequest
from jobqueue.types.payloads import (
    JOB_TYPES,
    ClaudeExtractionPayload,
    CreateFilePayload,
    DeleteFilePayload,
    SyncAwsPayload,
    dump_payload,
    parse_payload,
)


class TestParsePayload:
    """Tests for decoding tagged payloads."""

    def test_parse_by_tag(self):
        payload = parse_payload({"type": "create_file", "path": "a.txt", "content": "hi"})

        assert isinstance(payload, CreateFilePayload)
        assert payload.overwrite is False

    def test_parse_camel_case_fields(self):
        payload = parse_payload(
            {"type": "delete_file", "path": "old.txt", "requireExists": True}
        )

        assert isinstance(payload, DeleteFilePayload)
        assert payload.require_exists is True

    def test_parse_snake_case_fields(self):
        payload = parse_payload(
            {
                "type": "sync_aws",
                "resource_type": "bucket",
                "resource_id": "b-1",
                "config": {"versioning": True},
            }
        )

        assert isinstance(payload, SyncAwsPayload)
        assert payload.resource_id == "b-1"

    def test_missing_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload({"type": "claude_extraction", "name": "x", "prompt": "y"})

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload({"type": "launch_rocket"})

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            parse_payload({"type": "echo", "message": "x", "extra": 1})

    def test_job_types_cover_every_variant(self):
        for job_type in JOB_TYPES:
            with pytest.raises(ValidationError) as exc_info:
                parse_payload({"type": job_type, "unexpected": True})
            assert "union_tag_invalid" not in str(exc_info.value)


class TestDumpPayload:
    """Tests for the stored payload form."""

    def test_dump_uses_camel_case(self):
        payload = ClaudeExtractionPayload(
            name="extract",
            prompt="List the endpoints",
            target_path="services/api",
            origin_url="https://example.com/repo.git",
            prompt_hash="abc123",
        )

        data = dump_payload(payload)

        assert data == {
            "type": "claude_extraction",
            "name": "extract",
            "prompt": "List the endpoints",
            "branch": None,
            "targetPath": "services/api",
            "originUrl": "https://example.com/repo.git",
            "requirementId": None,
            "promptHash": "abc123",
        }

    def test_dump_then_parse_preserves_variant(self):
        original = SyncAwsPayload(resource_type="queue", resource_id="q-1", config={})

        assert parse_payload(dump_payload(original)) == original


class TestEnqueueJobRequest:
    """Tests for the enqueue request body."""

    def test_camel_case_options(self):
        request = EnqueueJobRequest.model_validate(
            {
                "payload": {"type": "echo", "message": "hi"},
                "priority": 4,
                "maxAttempts": 5,
                "idempotencyKey": "abc",
            }
        )

        assert request.max_attempts == 5
        assert request.idempotency_key == "abc"
        assert request.payload.type == "echo"

    def test_zero_max_attempts_rejected(self):
        with pytest.raises(ValidationError):
            EnqueueJobRequest.model_validate(
                {"payload": {"type": "echo", "message": "hi"}, "maxAttempts": 0}
            )
