"""Human-readable identifiers for orders, drivers, bins and requests.

Daily sequences look like ``ORD-20250114-003``: prefix, UTC date, then one
more than the highest number already issued under that prefix today. Deleted
rows leave gaps rather than freeing their numbers for reuse.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session


def _today() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d")


def daily_sequence(db: Session, column, prefix: str, width: int = 3, now: Optional[datetime] = None) -> str:
    """Next ``{prefix}-{YYYYMMDD}-{NNN}`` value for ``column``."""
    day = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    stem = f"{prefix}-{day}-"
    # Longest first so that -1000 sorts above -999 once the width overflows.
    last = (
        db.query(column)
        .filter(column.like(f"{stem}%"))
        .order_by(func.length(column).desc(), column.desc())
        .first()
    )
    suffix = last[0][len(stem):] if last else ""
    issued = int(suffix) if suffix.isdigit() else 0
    return f"{stem}{issued + 1:0{width}d}"


def random_code(prefix: str, digits: int = 9) -> str:
    """``{prefix}-{YYYYMMDD}-{random digits}`` for records created by customers."""
    number = secrets.randbelow(10 ** digits)
    return f"{prefix}-{_today()}-{number:0{digits}d}"
