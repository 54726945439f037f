"""Audit trail for state-changing requests.

``AuditLoggingMiddleware`` calls ``log_action`` after every successful
POST/PUT/PATCH/DELETE. Without an explicit ``db`` the entry is written in its
own short-lived session, committed independently of the request's session.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aquaflow.db.session import SessionLocal
from aquaflow.models.operations import AuditLogEntry

logger = logging.getLogger("audit")

# Replaced in tests so audit rows land in the test database
session_factory = SessionLocal


def log_action(
    action: str,
    entity_type: str = "",
    entity_id: str = "",
    user_id: Optional[int] = None,
    user_name: str = "",
    ip_address: str = "",
    details: Optional[Dict[str, Any]] = None,
    db: Optional[Session] = None,
) -> None:
    """Write an audit log entry.

    Args:
        action: create, update, delete, login, ...
        entity_type: Resource segment of the path (Orders, RecyclingBins, ...)
        entity_id: ID of the affected record, when the path carries one
        user_id: ID of the acting user
        user_name: Email of the acting user
        ip_address: Client IP address
        details: Free-form context (method, path, status code)
        db: Existing session; a private one is opened when omitted.
    """
    own_session = db is None
    if own_session:
        db = session_factory()

    try:
        db.add(AuditLogEntry(
            user_id=user_id,
            user_name=user_name,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id else "",
            details=details or {},
            ip_address=ip_address or "",
            created_at=datetime.now(timezone.utc),
        ))
        if own_session:
            db.commit()
        else:
            db.flush()
    except SQLAlchemyError:
        logger.exception("Failed to write audit log entry")
        if own_session:
            db.rollback()
    finally:
        if own_session:
            db.close()


def log_login(user_id: Optional[int], email: str, ip_address: str, success: bool = True) -> None:
    """Log a login attempt."""
    log_action(
        action="login" if success else "failed_login",
        entity_type="session",
        user_id=user_id if success else None,
        user_name=email,
        ip_address=ip_address,
        details={"description": f"{'Successful' if success else 'Failed'} login for {email}"},
    )

