"""At-most-once side effects.

``run_once`` claims a ``SideEffectKey`` row for (entity_type, entity_id,
effect) inside a savepoint before running the effect. A second caller, even
a concurrent one, hits the unique constraint and skips the effect.
"""

import logging
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aquaflow.models.operations import SideEffectKey

logger = logging.getLogger(__name__)

T = TypeVar("T")


def already_ran(db: Session, entity_type: str, entity_id: Any, effect: str) -> bool:
    return (
        db.query(SideEffectKey.id)
        .filter(
            SideEffectKey.entity_type == entity_type,
            SideEffectKey.entity_id == str(entity_id),
            SideEffectKey.effect == effect,
        )
        .first()
        is not None
    )


def run_once(
    db: Session,
    entity_type: str,
    entity_id: Any,
    effect: str,
    fn: Callable[[], T],
) -> Optional[T]:
    """Run ``fn`` unless ``effect`` already ran for this entity.

    Returns ``fn()``'s result, or ``None`` when the effect was skipped. The
    key row and whatever ``fn`` writes share the caller's transaction, so a
    rollback releases the key too.
    """
    if already_ran(db, entity_type, entity_id, effect):
        logger.info(f"{effect} for {entity_type} {entity_id} already applied, skipped")
        return None

    key = SideEffectKey(entity_type=entity_type, entity_id=str(entity_id), effect=effect)
    try:
        with db.begin_nested():
            db.add(key)
    except IntegrityError:
        logger.info(f"{effect} for {entity_type} {entity_id} claimed concurrently, skipped")
        return None

    result = fn()
    ref = getattr(result, "id", None)
    if ref is not None:
        key.result_ref = str(ref)
        db.flush()
    return result
