"""
closing_engines.tracer -- CLOSING_ENGINE_TRACE records for engine calls.

Responsibility:
    ``@traced_engine`` wraps an engine entry point and, after a successful
    call, logs which engine ran (name and version), a fingerprint of the
    inputs it was given and how long it took.  Two runs over the same
    ledger snapshot produce the same fingerprint, so a posted voucher can
    be tied back to the preview it was built from.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; no other side effects.

Invariants enforced:
    - The fingerprint covers only the named keyword arguments, is
      independent of dict ordering, and is the first 16 hex characters of
      a SHA-256 digest.
    - Inputs and return values pass through untouched.

Failure modes:
    - A named argument the caller did not pass is fingerprinted as "null".
    - An exception from the engine propagates and no trace is logged.

Usage:
    @traced_engine("closing", "1.0", fingerprint_fields=("balances",))
    def compute(self, *, balances):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import time
from collections.abc import Callable, Mapping
from datetime import date
from enum import Enum
from typing import Any

from closing_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_TYPE = "CLOSING_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        pairs = sorted((str(k), _canonicalize(v)) for k, v in value.items())
        return "{" + ",".join(f"{k}:{v}" for k, v in pairs) + "}"
    if isinstance(value, (list, tuple, frozenset, set)):
        items = [_canonicalize(v) for v in value]
        if isinstance(value, (set, frozenset)):
            items.sort()
        return "[" + ",".join(items) + "]"
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return type(value).__name__ + _canonicalize(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """SHA-256 over ``name=value`` pairs of the selected arguments, 16 hex chars."""
    canonical = "|".join(
        f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


@dataclasses.dataclass(frozen=True)
class EngineTrace:
    engine_name: str
    engine_version: str
    function: str
    input_fingerprint: str
    duration_ms: float

    def emit(self) -> None:
        _logger.info(TRACE_TYPE, extra={"trace_type": TRACE_TYPE, **dataclasses.asdict(self)})


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate an engine entry point so each successful call is traced.

    Args:
        engine_name: Engine identifier, e.g. "closing".
        engine_version: Bumped whenever the engine's arithmetic changes.
        fingerprint_fields: Keyword arguments that make up the fingerprint.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            EngineTrace(
                engine_name=engine_name,
                engine_version=engine_version,
                function=func.__qualname__,
                input_fingerprint=fingerprint,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            ).emit()
            return result

        return wrapper

    return decorator
