import logging
from typing import Any, Mapping

from pydantic import ValidationError

from ..events import Event, event_adapter
from ..exceptions import EventValidationError
from .validation import issues_from_validation_error

logger = logging.getLogger(__name__)

# Assigned by the event store; never taken from caller input.
STORE_OWNED_FIELDS = ("event_id", "sequence", "revision")


class EventParser:
    """
    Parses raw event dictionaries into validated Event objects.
    """
    def parse(self, raw_event: Mapping[str, Any]) -> Event:
        payload = {k: v for k, v in raw_event.items() if k not in STORE_OWNED_FIELDS}
        try:
            return event_adapter.validate_python(payload)
        except ValidationError as e:
            issues = issues_from_validation_error(e)
            logger.debug(
                "Rejected malformed event payload.",
                extra={"issues": [f"{i.code}: {i.field}" for i in issues]}
            )
            raise EventValidationError(issues) from e

    def apply_patch(self, event: Event, patch: Mapping[str, Any]) -> Event:
        """
        Re-validates `event` with `patch` applied. Store-owned fields and the
        event type cannot be patched.
        """
        data = event.model_dump()
        for key, value in patch.items():
            if key in STORE_OWNED_FIELDS or key == "event_type":
                continue
            data[key] = value
        try:
            return event_adapter.validate_python(data)
        except ValidationError as e:
            raise EventValidationError(issues_from_validation_error(e)) from e
