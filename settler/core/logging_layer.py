# settler/core/logging_layer.py
# Audit Logging Layer
#
# Scope: Event-sourced audit log for reconciliation runs.
# Zero tolerance for lost events. No file IO. No global mutable state.
# All timestamps are caller-supplied. All hashes are deterministic.
#
# Canonical import:
#   from settler.core.logging_layer import EventLogger, Event
#
# The kernel never reads the wall clock; a caller that wants an audit trail
# passes an EventLogger and a timestamp into engine.compute_variances().
# Prohibited: datetime.now(), uuid, random, file IO, the logging module.

# ===========================================================================
# SECTION 1 -- STDLIB IMPORTS
# ===========================================================================

import hashlib
import json
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

# ===========================================================================
# SECTION 2 -- CONSTANTS
# ===========================================================================

# Sentinel strings used when numeric sanitization detects invalid values.
# These are logged in place of the invalid value; the event is never dropped.
_NAN_SENTINEL: str = "NaN_DETECTED"
_INF_SENTINEL: str = "Inf_DETECTED"

_HASH_SEP: str = "|"

# Event types emitted by the kernel and the runner.
RUN_STARTED:           str = "RUN_STARTED"
RULESET_VALIDATED:     str = "RULESET_VALIDATED"
RECORDS_CANONICALIZED: str = "RECORDS_CANONICALIZED"
MATCHING_COMPLETED:    str = "MATCHING_COMPLETED"
REPORT_ASSEMBLED:      str = "REPORT_ASSEMBLED"
MANIFEST_BUILT:        str = "MANIFEST_BUILT"
RUN_FAILED:            str = "RUN_FAILED"

# ===========================================================================
# SECTION 3 -- DATACLASS: Event
# ===========================================================================

@dataclass
class Event:
    """
    Immutable record of a single audit event.

    Fields
    ------
    id        : Deterministic identifier derived from the instance counter.
    type      : Category string (RUN_STARTED, MATCHING_COMPLETED, ...).
    timestamp : Caller-supplied datetime. Never generated internally.
    data      : Sanitized key-value payload.
    hash      : SHA-256 hex digest over (id, type, timestamp, data).
    """
    id: str
    type: str
    timestamp: datetime
    data: Dict[str, Any]
    hash: str


# ===========================================================================
# SECTION 4 -- INTERNAL HELPERS
# ===========================================================================

def _sanitize_numeric(value: Any) -> Any:
    """Replace float NaN or Inf with the matching sentinel string."""
    if isinstance(value, float):
        if math.isnan(value):
            return _NAN_SENTINEL
        if math.isinf(value):
            return _INF_SENTINEL
    return value


def _sanitize_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a new dict with float values sanitized. The input is not mutated."""
    return {k: _sanitize_numeric(v) for k, v in data.items()}


def _compute_hash(
    event_id: str,
    event_type: str,
    timestamp: datetime,
    data: Dict[str, Any],
) -> str:
    """
    Deterministic SHA-256 hex digest for an event.

    Preimage: event_id | event_type | timestamp.isoformat() | payload
    where payload is sorted-key compact JSON (non-JSON values via str()).
    """
    payload: str = json.dumps(
        data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )
    preimage: str = _HASH_SEP.join(
        (event_id, event_type, timestamp.isoformat(), payload)
    )
    return hashlib.sha256(preimage.encode("utf-8")).hexdigest()


def _make_event_id(counter: int) -> str:
    """Format: "EVT-{counter:016d}". Zero-padded for lexicographic sort stability."""
    return "EVT-{:016d}".format(counter)


# ===========================================================================
# SECTION 5 -- EventLogger
# ===========================================================================

class EventLogger:
    """
    Event-sourced audit logger.

    Storage
    -------
    Events are held in an instance-level list. No file IO. Each EventLogger
    instance is independent; the runner exports it into the run pack.

    Determinism guarantees
    ----------------------
    - Timestamps are caller-supplied.
    - Event IDs derive from a monotonic counter.
    - Hashes depend only on the four explicit event fields.

    Zero lost events
    ----------------
    log_event() raises LoggingError on any invalid input instead of
    discarding the event.
    """

    def __init__(self) -> None:
        self._store: List[Event] = []
        self._counter: int = 0

    def log_event(self, event_type: str, data: Dict[str, Any], timestamp: datetime) -> str:
        """
        Record one event. Return the assigned event ID.

        Raises
        ------
        LoggingError : If event_type is empty, data is not a dict, or
                       timestamp is not a datetime.
        """
        if not event_type:
            raise LoggingError("event_type must be a non-empty string")
        if timestamp is None:
            raise LoggingError("timestamp must be caller-supplied; None is not permitted")
        if not isinstance(timestamp, datetime):
            raise LoggingError(
                "timestamp must be a datetime instance; got: {}".format(type(timestamp))
            )
        if not isinstance(data, dict):
            raise LoggingError(
                "data must be a dict; got: {}".format(type(data))
            )

        self._counter += 1
        event_id: str = _make_event_id(self._counter)
        sanitized: Dict[str, Any] = _sanitize_data(data)

        self._store.append(Event(
            id=event_id,
            type=event_type,
            timestamp=timestamp,
            data=sanitized,
            hash=_compute_hash(event_id, event_type, timestamp, sanitized),
        ))
        return event_id

    def log_failure(self, error: BaseException, timestamp: datetime) -> str:
        """Log a RUN_FAILED event carrying the error class and message."""
        if error is None:
            raise LoggingError("error must not be None")
        data: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "message": str(error),
        }
        return self.log_event(RUN_FAILED, data, timestamp)

    def event_count(self) -> int:
        return len(self._store)

    def export(self) -> List[Dict[str, Any]]:
        """JSON-ready list of events in insertion order."""
        return [
            {
                "id": e.id,
                "type": e.type,
                "timestamp": e.timestamp.isoformat(),
                "data": dict(e.data),
                "hash": e.hash,
            }
            for e in self._store
        ]


# ===========================================================================
# SECTION 6 -- EXCEPTIONS
# ===========================================================================

class LoggingError(Exception):
    """
    Raised by EventLogger when an invariant is violated.

    Never silently swallowed. Silent failure is prohibited (zero lost
    events invariant).
    """
