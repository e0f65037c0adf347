"""Event ingestion contracts: parsing, field validation and reference checks."""

from .reason_codes import EventValidationReasonCode
from .validation import (
    EventValidationIssue,
    issues_from_validation_error,
    validate_event_references,
    ensure_event_references,
)
from .parser import EventParser

__all__ = [
    "EventParser",
    "EventValidationIssue",
    "EventValidationReasonCode",
    "issues_from_validation_error",
    "validate_event_references",
    "ensure_event_references",
]
