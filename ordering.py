"""Attribution et compactage des order_index d'un utilisateur.

Ces fonctions travaillent dans la transaction de l'appelant : elles ne font
jamais de commit.
"""

from datetime import datetime
from typing import Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

import models
from errors import ValidationError


def _siblings(db: Session, user_id: str):
    return db.query(models.Link).filter(models.Link.user_id == user_id)


def next_index(db: Session, user_id: str) -> int:
    # max + 1 (et non count) : on tolère des trous déjà présents
    highest = (
        db.query(func.max(models.Link.order_index))
        .filter(models.Link.user_id == user_id)
        .scalar()
    )
    return 0 if highest is None else highest + 1


def open_slot(db: Session, user_id: str, position: int) -> None:
    _siblings(db, user_id).filter(models.Link.order_index >= position).update(
        {
            models.Link.order_index: models.Link.order_index + 1,
            models.Link.updated_at: datetime.utcnow(),
        },
        synchronize_session="fetch",
    )


def close_gap(db: Session, user_id: str, index: int) -> None:
    _siblings(db, user_id).filter(models.Link.order_index > index).update(
        {
            models.Link.order_index: models.Link.order_index - 1,
            models.Link.updated_at: datetime.utcnow(),
        },
        synchronize_session="fetch",
    )


def move(db: Session, user_id: str, link: models.Link, new_index: int) -> None:
    count = _siblings(db, user_id).count()
    new_index = max(0, min(new_index, count - 1))
    old_index = link.order_index
    if new_index == old_index:
        return

    now = datetime.utcnow()
    others = _siblings(db, user_id).filter(models.Link.id != link.id)
    if new_index < old_index:
        others.filter(
            models.Link.order_index >= new_index, models.Link.order_index < old_index
        ).update(
            {models.Link.order_index: models.Link.order_index + 1, models.Link.updated_at: now},
            synchronize_session="fetch",
        )
    else:
        others.filter(
            models.Link.order_index > old_index, models.Link.order_index <= new_index
        ).update(
            {models.Link.order_index: models.Link.order_index - 1, models.Link.updated_at: now},
            synchronize_session="fetch",
        )
    link.order_index = new_index


def apply_reorder(current: Dict[str, int], changes: Dict[str, int]) -> Dict[str, int]:
    # `current` : tous les liens de l'utilisateur ; le résultat doit valoir 0..n-1
    result = dict(current)
    result.update(changes)

    if sorted(result.values()) != list(range(len(result))):
        raise ValidationError(
            f"Le nouvel ordre doit numéroter les liens de 0 à {len(result) - 1}, sans trou ni doublon"
        )
    return result
