from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..events import STOCK_OPERATION, STOCK_SPLIT, EventBase, StockOperationEvent
from ..exceptions import UnknownReferenceError
from .reason_codes import EventValidationReasonCode

if TYPE_CHECKING:
    from ..reference_directory import ReferenceDirectory

_EVENT_TAGS = {STOCK_OPERATION, STOCK_SPLIT}

# (field, pydantic error type) -> reason code for bound violations.
_BOUND_CODES = {
    ("quantity", "greater_than"): EventValidationReasonCode.NON_POSITIVE_QUANTITY,
    ("price", "greater_than_equal"): EventValidationReasonCode.NEGATIVE_PRICE,
    ("fees", "greater_than_equal"): EventValidationReasonCode.NEGATIVE_FEES,
    ("factor", "greater_than"): EventValidationReasonCode.NON_POSITIVE_FACTOR,
}


@dataclass(frozen=True)
class EventValidationIssue:
    code: EventValidationReasonCode
    field: str
    message: str


def _field_of(loc: tuple) -> str:
    for part in loc:
        if isinstance(part, str) and part not in _EVENT_TAGS:
            return part
    return "event_type"


def issues_from_validation_error(error: ValidationError) -> list[EventValidationIssue]:
    """Translates pydantic errors for an event payload into reason-coded issues."""
    issues: list[EventValidationIssue] = []
    for err in error.errors():
        err_type = err.get("type", "")
        field = _field_of(tuple(err.get("loc", ())))

        if err_type.startswith("union_tag"):
            code = EventValidationReasonCode.UNKNOWN_EVENT_TYPE
        elif err_type == "missing":
            code = EventValidationReasonCode.MISSING_FIELD
        elif (field, err_type) in _BOUND_CODES:
            code = _BOUND_CODES[(field, err_type)]
        elif field == "portfolios":
            code = EventValidationReasonCode.EMPTY_PORTFOLIOS
        elif field == "time":
            code = EventValidationReasonCode.INVALID_TIMESTAMP
        else:
            code = EventValidationReasonCode.INVALID_VALUE

        issues.append(EventValidationIssue(code=code, field=field, message=err.get("msg", "")))
    return issues


async def validate_event_references(
    event: EventBase, directory: "ReferenceDirectory"
) -> list[EventValidationIssue]:
    """
    Checks every identifier the event carries against the reference directory.
    Brokers only exist on stock operations.
    """
    issues: list[EventValidationIssue] = []

    for portfolio_id in event.portfolios:
        if not await directory.portfolio_exists(portfolio_id):
            issues.append(
                EventValidationIssue(
                    code=EventValidationReasonCode.UNKNOWN_PORTFOLIO,
                    field="portfolios",
                    message=f"portfolio '{portfolio_id}' does not exist.",
                )
            )

    if isinstance(event, StockOperationEvent) and not await directory.broker_exists(event.broker):
        issues.append(
            EventValidationIssue(
                code=EventValidationReasonCode.UNKNOWN_BROKER,
                field="broker",
                message=f"broker '{event.broker}' does not exist.",
            )
        )

    return issues


async def ensure_event_references(event: EventBase, directory: "ReferenceDirectory") -> None:
    issues = await validate_event_references(event, directory)
    if issues:
        raise UnknownReferenceError(issues)
