"""
consol_engines.tracer -- CONSOL_ENGINE_TRACE records for pure engine calls.

Responsibility:
    ``@traced_engine`` wraps a keyword-only engine function and, after it
    returns, logs which engine ran, at which version, over which inputs
    (a short SHA-256 fingerprint) and how long it took.  Two runs over the
    same ownership edges or the same account lists share a fingerprint, so
    a consolidation can be matched to the graph it was computed from.

Architecture position:
    Engines -- infrastructure for the pure calculation layer.  Emits a log
    record and nothing else.  The logger lives under
    ``consol_kernel.engines.tracer`` so configure_logging() picks it up
    without the engines importing kernel logging.

Invariants enforced:
    - Fingerprints are order-insensitive for mappings and sets and
      order-sensitive for sequences (child order is meaningful).
    - Dataclasses (edges, accounts) fingerprint by field values, enums by
      value, Decimals by ``str`` (so 80 and 80.0 differ).
    - Absent kwargs fingerprint as "null".
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Mapping, Set
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

_logger = logging.getLogger("consol_kernel.engines.tracer")

FINGERPRINT_LENGTH = 16


def _canonicalize(value: Any) -> str:
    match value:
        case None:
            return "null"
        case Enum():
            return str(value.value)
        case str():
            return value
        case Mapping():
            items = sorted((str(k), _canonicalize(v)) for k, v in value.items())
            return "{" + ",".join(f"{k}:{v}" for k, v in items) + "}"
        case Set():
            return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
        case list() | tuple():
            return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if is_dataclass(value) and not isinstance(value, type):
        body = ",".join(f"{f.name}={_canonicalize(getattr(value, f.name))}" for f in fields(value))
        return f"{type(value).__name__}({body})"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """First FINGERPRINT_LENGTH hex chars of SHA-256 over the named kwargs."""
    canonical = "|".join(f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate an engine entry point.

    Args:
        engine_name: e.g. "ownership_graph" or "name_matching".
        engine_version: bumped whenever results for the same inputs change.
        fingerprint_fields: keyword arguments hashed into input_fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            _logger.info(
                "CONSOL_ENGINE_TRACE",
                extra={
                    "trace_type": "CONSOL_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return result

        return wrapper

    return decorator
