"""
Tests for data models.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ErrorKind
from shared.models import (
    AspectRatio,
    Credentials,
    GenerationMode,
    GenerationOutcome,
    GenerationRequest,
    LifecycleEntry,
    LifecycleState,
    QuotaRecord,
    summarize_outcomes,
)


def test_generation_request_defaults_and_frozen():
    """Test GenerationRequest defaults and immutability."""
    request = GenerationRequest(source_image=b"\x89PNG", prompt="Watercolor")

    assert request.mode == GenerationMode.IMAGE
    assert request.aspect_ratio == AspectRatio.LANDSCAPE
    assert request.source_mime_type == "image/png"
    assert "source_image" not in repr(request)

    with pytest.raises(PydanticValidationError):
        request.prompt = "changed"


def test_outcome_success():
    outcome = GenerationOutcome(index=0, prompt="p", artifact="data:image/png;base64,AAAA")
    assert outcome.succeeded is True
    assert outcome.error_kind is None


def test_outcome_failure():
    outcome = GenerationOutcome(
        index=2, prompt="p", error_kind=ErrorKind.RATE_LIMITED, error_message="429"
    )
    assert outcome.succeeded is False


def test_outcome_requires_exactly_one_of_artifact_or_error():
    """Test GenerationOutcome XOR validation."""
    with pytest.raises(PydanticValidationError):
        GenerationOutcome(index=0, prompt="p")

    with pytest.raises(PydanticValidationError):
        GenerationOutcome(
            index=0, prompt="p", artifact="data:,", error_kind=ErrorKind.OTHER
        )

    with pytest.raises(PydanticValidationError):
        GenerationOutcome(index=-1, prompt="p", artifact="data:,")


def test_summarize_outcomes():
    outcomes = [
        GenerationOutcome(index=0, prompt="a", artifact="data:,"),
        GenerationOutcome(index=1, prompt="b", error_kind=ErrorKind.TIMEOUT, error_message="slow"),
        GenerationOutcome(index=2, prompt="c", artifact="data:,"),
    ]

    assert summarize_outcomes(outcomes) == {"total": 3, "succeeded": 2, "failed": 1}
    assert summarize_outcomes([]) == {"total": 0, "succeeded": 0, "failed": 0}


def test_lifecycle_entry_defaults():
    entry = LifecycleEntry(id="item-0", prompt="p")
    assert entry.state == LifecycleState.PROCESSING
    assert entry.is_processing is True


def test_quota_record_validation():
    with pytest.raises(PydanticValidationError):
        QuotaRecord(count=-1, date="2024-05-01")


def test_credentials_is_configured():
    assert Credentials(api_key="abc").is_configured is True
    assert Credentials(api_key="   ").is_configured is False
    assert Credentials().is_configured is False
    assert "abc" not in repr(Credentials(api_key="abc"))
