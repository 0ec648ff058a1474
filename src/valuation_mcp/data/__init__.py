"""Data layer: domain types, source adapters and the ledger store."""

from valuation_mcp.data.models import (
    MergedRecord,
    Observation,
    PipelineResult,
    PortfolioEntry,
    PortfolioSummary,
    PriceObservation,
    Signal,
)
from valuation_mcp.data.sources import (
    FALLBACK_METRIC,
    ServerShuttingDownError,
    SourceFetchError,
    fetch_metric,
    fetch_metric_with_provenance,
    fetch_primary,
    fetch_primary_with_provenance,
    fetch_secondary,
    fetch_secondary_with_provenance,
    shutdown_executor,
)
from valuation_mcp.data.store import LedgerStore, ledger_store

__all__ = [
    # Models
    "MergedRecord",
    "Observation",
    "PipelineResult",
    "PortfolioEntry",
    "PortfolioSummary",
    "PriceObservation",
    "Signal",
    # Sources
    "FALLBACK_METRIC",
    "ServerShuttingDownError",
    "SourceFetchError",
    "fetch_metric",
    "fetch_metric_with_provenance",
    "fetch_primary",
    "fetch_primary_with_provenance",
    "fetch_secondary",
    "fetch_secondary_with_provenance",
    "shutdown_executor",
    # Store
    "LedgerStore",
    "ledger_store",
]
