from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from fastapi import Request
from sqlalchemy.orm import Session

from promotracker.models.audit_log import AuditLog

# Free-text fields may carry personal details (confirmation numbers, names)
SENSITIVE_KEYS = {
    "notes",
    "confirmation_number",
    "guest_name",
}


def _sanitize(obj: Any) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        clean: dict[str, Any] = {}
        for k, v in obj.items():
            if k in SENSITIVE_KEYS:
                clean[k] = "<redacted>"
            else:
                clean[k] = _sanitize(v)
        return clean
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [_sanitize(v) for v in obj]
    # JSON column cannot hold these natively
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    return obj


def write_audit_log(
    db: Session,
    *,
    actor: str = "system",
    action_type: str,
    target_type: str = "",
    target_id: str = "",
    summary: str = "",
    diff_json: Mapping[str, Any] | None = None,
    report: Any = None,
    request: Request | None = None,
    commit: bool = True,
) -> None:
    """Record one action. ``report`` takes the result dataclass of a re-evaluation run."""
    ip = ""
    ua = ""
    if request is not None:
        ip = request.client.host if request.client else ""
        ua = request.headers.get("user-agent", "")

    log = AuditLog(
        actor=actor,
        action_type=action_type,
        target_type=target_type,
        target_id=str(target_id),
        summary=summary[:255],
        diff_json=_sanitize(dict(diff_json)) if diff_json is not None else None,
        report_json=_sanitize(asdict(report)) if report is not None else None,
        ip_address=ip,
        user_agent=ua,
    )
    db.add(log)
    if commit:
        db.commit()
