# src/libs/performance-calculator-engine/src/performance_calculator_engine/constants.py
from decimal import Decimal

# --- Bucket frequencies ---
FREQUENCY_DAILY = "DAILY"
FREQUENCY_WEEKLY = "WEEKLY"
FREQUENCY_MONTHLY = "MONTHLY"

# --- Period types accepted by resolve_period ---
PERIOD_TYPE_EXPLICIT = "EXPLICIT"
PERIOD_TYPE_YEAR = "YEAR"
PERIOD_TYPE_YTD = "YTD"
PERIOD_TYPE_QTD = "QTD"
PERIOD_TYPE_MTD = "MTD"
PERIOD_TYPE_THREE_YEAR = "THREE_YEAR"
PERIOD_TYPE_FIVE_YEAR = "FIVE_YEAR"
PERIOD_TYPE_SI = "SI"

# --- Output Field Names (performance series frame) ---
LABEL = "label"
BOUNDARY = "boundary"
PERCENTUAL_GAIN = "percentual_gain"
COST_BASIS = "cost_basis"
CURRENT_VALUE = "current_value"
REFERENCE = "reference"
SERIES_COLUMNS = [LABEL, BOUNDARY, PERCENTUAL_GAIN, COST_BASIS, CURRENT_VALUE, REFERENCE]

# --- Reference index ---
REFERENCE_BASE = Decimal(100)

# --- Zero cost basis handling ---
ZERO_COST_BASIS_ZERO = "zero"
ZERO_COST_BASIS_GAP = "gap"
