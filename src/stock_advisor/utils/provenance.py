"""Response metadata and error envelopes."""

from datetime import datetime
from typing import Any

from stock_advisor import SCHEMA_VERSION, SERVER_VERSION


def build_meta(operation: str, duration_ms: float | None = None) -> dict[str, Any]:
    """
    Build standard metadata block for responses.

    Args:
        operation: Name of the operation producing this response
        duration_ms: Execution time in milliseconds (optional)

    Returns:
        Metadata dict with version info
    """
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "operation": operation,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    return meta


def build_provenance(
    source: str,
    as_of: datetime | str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Build provenance block for one analysis component.

    Args:
        source: Source name (e.g., "yfinance", "huggingface", "mock")
        as_of: Timestamp of data freshness
        **kwargs: Additional provenance fields (model, from_cache, ...)

    Returns:
        Provenance dict for this component
    """
    prov: dict[str, Any] = {"source": source}

    if as_of is not None:
        prov["as_of"] = as_of.isoformat() if isinstance(as_of, datetime) else as_of

    prov.update(kwargs)
    return prov


def build_error_response(
    error_type: str,
    message: str,
    symbol: str | None = None,
    operation: str = "error",
) -> dict[str, Any]:
    """
    Build standardized error response.

    Args:
        error_type: data_unavailable, insufficient_data, invalid_input, analysis_failed
        message: Human-readable error message
        symbol: Symbol that caused the error (if applicable)
        operation: Operation that failed

    Returns:
        Error response dict
    """
    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta(operation),
    }

    if symbol is not None:
        response["symbol"] = symbol

    return response


def is_error(payload: Any) -> bool:
    """True for a missing payload or any error envelope."""
    if not isinstance(payload, dict):
        return True
    return bool(payload.get("error"))
