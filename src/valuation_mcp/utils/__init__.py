"""Utility modules."""

from valuation_mcp.utils.merge import (
    METRIC_UNSET,
    TOLERANCE_MS,
    carry_forward_metric,
    merge_series,
    nearest_secondary,
)
from valuation_mcp.utils.ohlcv import standardize_ohlcv, to_price_observations
from valuation_mcp.utils.provenance import build_error_response, build_meta, build_provenance
from valuation_mcp.utils.validators import (
    FetchParams,
    LedgerInputError,
    parse_amount,
    parse_purchase_date,
)

__all__ = [
    "METRIC_UNSET",
    "TOLERANCE_MS",
    "carry_forward_metric",
    "merge_series",
    "nearest_secondary",
    "standardize_ohlcv",
    "to_price_observations",
    "build_error_response",
    "build_meta",
    "build_provenance",
    "FetchParams",
    "LedgerInputError",
    "parse_amount",
    "parse_purchase_date",
]
