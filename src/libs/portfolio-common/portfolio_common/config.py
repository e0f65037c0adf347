# src/libs/portfolio-common/portfolio_common/config.py
import os
from dotenv import load_dotenv

# Load environment variables from a .env file for local development.
load_dotenv()


# Service identity
SERVICE_NAME = os.getenv("SERVICE_NAME", "position-ledger")
ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Ledger arithmetic. Quantities, prices and cost basis are Decimals folded inside a
# local context of this precision and quantized to a fixed number of places.
LEDGER_DECIMAL_PRECISION = int(os.getenv("LEDGER_DECIMAL_PRECISION", "28"))
LEDGER_DECIMAL_PLACES = int(os.getenv("LEDGER_DECIMAL_PLACES", "10"))

# Position cache: 'lazy' recomputes on next read, 'write-through' recomputes on write.
POSITION_CACHE_POLICY = os.getenv("POSITION_CACHE_POLICY", "lazy").lower()

# Performance series
PERFORMANCE_DEFAULT_FREQUENCY = os.getenv("PERFORMANCE_DEFAULT_FREQUENCY", "WEEKLY").upper()
# 'zero' reports 0% for a bucket with no cost basis, 'gap' reports None.
PERFORMANCE_ZERO_COST_BASIS = os.getenv("PERFORMANCE_ZERO_COST_BASIS", "zero").lower()

# Price lookups fall back to the latest close within this many days.
PRICE_LOOKBACK_DAYS = int(os.getenv("PRICE_LOOKBACK_DAYS", "7"))
