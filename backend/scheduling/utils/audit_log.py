from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from ..domain.ledger import Conflict, Reservation
from .request_context import get_request_id

AuditAction = Literal[
    "reservation.held",
    "reservation.conflict",
    "reservation.released",
    "reservation.confirmed",
    "reservation.holder_released",
]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(timezone.utc).isoformat() if value is not None else None


def emit_audit_log(
    *,
    action: AuditAction,
    holder_id: Optional[str],
    event_type_id: Optional[int] = None,
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    expires_at: Optional[datetime] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "request_id": get_request_id(),
        "holder_id": holder_id,
        "event_type_id": event_type_id,
        "starts_at": _iso(starts_at),
        "ends_at": _iso(ends_at),
        "expires_at": _iso(expires_at),
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=True, default=str))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc


def audit_reservation(action: AuditAction, reservation: Reservation) -> None:
    emit_audit_log(
        action=action,
        holder_id=reservation.holder_id,
        event_type_id=reservation.event_type_id,
        starts_at=reservation.window.start,
        ends_at=reservation.window.end,
        expires_at=reservation.expires_at,
    )


def audit_conflict(conflict: Conflict, holder_id: str) -> None:
    emit_audit_log(
        action="reservation.conflict",
        holder_id=holder_id,
        event_type_id=conflict.key.event_type_id,
        starts_at=conflict.key.window.start,
        ends_at=conflict.key.window.end,
        expires_at=conflict.held_until,
    )
