from enum import Enum


class EventValidationReasonCode(str, Enum):
    MISSING_FIELD = "MISSING_FIELD"
    NON_POSITIVE_QUANTITY = "NON_POSITIVE_QUANTITY"
    NEGATIVE_PRICE = "NEGATIVE_PRICE"
    NEGATIVE_FEES = "NEGATIVE_FEES"
    NON_POSITIVE_FACTOR = "NON_POSITIVE_FACTOR"
    EMPTY_PORTFOLIOS = "EMPTY_PORTFOLIOS"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    UNKNOWN_EVENT_TYPE = "UNKNOWN_EVENT_TYPE"
    INVALID_VALUE = "INVALID_VALUE"
    UNKNOWN_PORTFOLIO = "UNKNOWN_PORTFOLIO"
    UNKNOWN_BROKER = "UNKNOWN_BROKER"

    def __str__(self) -> str:
        return self.value
