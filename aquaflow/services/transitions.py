"""Conditional status updates.

A status transition is written as ``UPDATE ... WHERE id = :id AND status IN
(:expected)``. If another request moved the row first, no row matches and the
caller gets a ``PreconditionError`` carrying the status it lost to, instead of
both requests applying their side effects.
"""

import logging
from enum import Enum
from typing import Any, Iterable, Union

from sqlalchemy import update
from sqlalchemy.orm import Session

from aquaflow.core.errors import NotFoundError, PreconditionError

logger = logging.getLogger(__name__)


def _as_tuple(expected: Union[Enum, Iterable[Enum]]) -> tuple:
    if isinstance(expected, Enum):
        return (expected,)
    return tuple(expected)


def compare_and_set_status(
    db: Session,
    model,
    entity_id: int,
    expected: Union[Enum, Iterable[Enum]],
    new_status: Enum,
    label: str = "Record",
    **values: Any,
) -> None:
    """Move ``model`` row ``entity_id`` to ``new_status`` if its status is in ``expected``.

    Extra column values are written in the same statement. Pending ORM
    changes are flushed first and the instance (if loaded) is refreshed after.
    """
    allowed = _as_tuple(expected)
    db.flush()
    result = db.execute(
        update(model)
        .where(model.id == entity_id, model.status.in_(allowed))
        .values(status=new_status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        current = db.query(model.status).filter(model.id == entity_id).scalar()
        if current is None:
            raise NotFoundError(f"{label} not found")
        current_value = current.value if isinstance(current, Enum) else str(current)
        logger.info(
            f"{label} {entity_id}: transition to {new_status.value} refused, status is {current_value}"
        )
        raise PreconditionError(
            f"{label} cannot be moved to {new_status.value}. Current status: {current_value}",
            current_status=current_value,
        )
    instance = db.get(model, entity_id)
    if instance is not None:
        db.refresh(instance)
