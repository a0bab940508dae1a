"""Liste ordonnée et plafonnée des liens d'un utilisateur.

Toutes les écritures passent par `transaction()` : la suppression et la
renumérotation des voisins, ou un lot de réordonnancement, sont appliqués
entièrement ou pas du tout.
"""

import logging
from datetime import datetime
from typing import Iterable, List, NamedTuple, Tuple

from sqlalchemy.orm import Session

import limits
import models
import ordering
import schemas
from database import transaction
from errors import CapacityExceeded, InvalidOwnership, NotFound, Unauthorized, ValidationError

log = logging.getLogger(__name__)

# Colonnes NOT NULL : un `null` explicite n'a pas de sens pour elles
_NON_NULLABLE = ("title", "url", "order_index", "is_active")


class LimitStatus(NamedTuple):
    can_create_link: bool
    link_count: int
    max_links: limits.LinkCap
    is_premium: bool


def _get_user(db: Session, user_id: str, lock: bool = False) -> models.User:
    query = db.query(models.User).filter(models.User.id == user_id)
    if lock:
        query = query.with_for_update()
    user = query.first()
    if user is None:
        raise NotFound("Utilisateur introuvable")
    return user


def _get_owned_link(db: Session, link_id: str, user_id: str) -> models.Link:
    link = db.query(models.Link).filter(models.Link.id == link_id).with_for_update().first()
    if link is None:
        raise NotFound("Lien introuvable")
    if link.user_id != user_id:
        # Même message que NotFound côté client
        raise Unauthorized("Lien introuvable")
    return link


def count_links(db: Session, user_id: str) -> int:
    # Actifs ET inactifs : c'est ce total que le plafond gratuit limite
    return db.query(models.Link).filter(models.Link.user_id == user_id).count()


def create_link(db: Session, user_id: str, data: schemas.LinkCreate) -> models.Link:
    with transaction(db):
        # Toute modification des order_index d'un utilisateur verrouille d'abord sa ligne
        user = _get_user(db, user_id, lock=True)
        current = count_links(db, user_id)
        if not limits.can_create(current, user.is_premium):
            log.warning("Plafond atteint pour %s (%d liens)", user_id, current)
            raise CapacityExceeded(
                f"Les comptes gratuits sont limités à {limits.FREE_LINK_LIMIT} liens. "
                "Passez PREMIUM pour des liens illimités."
            )

        if data.order_index is None:
            index = ordering.next_index(db, user_id)
        else:
            index = min(data.order_index, current)
            ordering.open_slot(db, user_id, index)

        link = models.Link(
            user_id=user_id,
            title=data.title,
            url=data.url,
            icon=data.icon or None,
            description=data.description or None,
            order_index=index,
            is_active=True,
            click_count=0,
        )
        db.add(link)

    db.refresh(link)
    log.info("Lien %s créé pour %s (index %d)", link.id, user_id, link.order_index)
    return link


def update_link(db: Session, link_id: str, user_id: str, data: schemas.LinkUpdate) -> models.Link:
    fields = data.model_dump(exclude_unset=True)
    for name in _NON_NULLABLE:
        if name in fields and fields[name] is None:
            raise ValidationError(f"Le champ '{name}' ne peut pas être vide")

    with transaction(db):
        if fields.get("order_index") is not None:
            _get_user(db, user_id, lock=True)
        link = _get_owned_link(db, link_id, user_id)
        new_index = fields.pop("order_index", None)
        for name, value in fields.items():
            setattr(link, name, value)
        if new_index is not None:
            ordering.move(db, user_id, link, new_index)
        link.updated_at = datetime.utcnow()

    db.refresh(link)
    log.info("Lien %s modifié (%s)", link_id, ", ".join(sorted(data.model_fields_set)) or "-")
    return link


def delete_link(db: Session, link_id: str, user_id: str) -> None:
    with transaction(db):
        # Même verrou que create_link : une création concurrente ne peut pas rater le compactage
        _get_user(db, user_id, lock=True)
        link = _get_owned_link(db, link_id, user_id)
        removed_index = link.order_index
        db.delete(link)
        db.flush()
        ordering.close_gap(db, user_id, removed_index)

    log.info("Lien %s supprimé, liens suivants renumérotés", link_id)


def list_links(db: Session, user_id: str) -> List[models.Link]:
    return (
        db.query(models.Link)
        .filter(models.Link.user_id == user_id)
        .order_by(models.Link.order_index.asc())
        .all()
    )


def list_public_links(db: Session, username: str) -> List[models.Link]:
    # Pseudo inconnu => liste vide, pas d'erreur
    return (
        db.query(models.Link)
        .join(models.User, models.Link.user_id == models.User.id)
        .filter(models.User.username == username, models.Link.is_active.is_(True))
        .order_by(models.Link.order_index.asc())
        .all()
    )


def reorder_links(db: Session, user_id: str, link_orders: Iterable[Tuple[str, int]]) -> None:
    link_orders = list(link_orders)
    if not link_orders:
        return

    with transaction(db):
        _get_user(db, user_id, lock=True)
        owned = (
            db.query(models.Link)
            .filter(models.Link.user_id == user_id)
            .with_for_update()
            .all()
        )
        by_id = {link.id: link for link in owned}

        foreign = [link_id for link_id, _ in link_orders if link_id not in by_id]
        if foreign:
            log.warning("Réordonnancement refusé pour %s : %s", user_id, ", ".join(foreign))
            raise InvalidOwnership("Lien introuvable")

        changes = {}
        for link_id, index in link_orders:
            if link_id in changes:
                raise ValidationError(f"Le lien {link_id} apparaît deux fois")
            changes[link_id] = index

        ordering.apply_reorder({link.id: link.order_index for link in owned}, changes)

        now = datetime.utcnow()
        for link_id, index in changes.items():
            by_id[link_id].order_index = index
            by_id[link_id].updated_at = now

    log.info("%d liens réordonnés pour %s", len(changes), user_id)


def check_limits(db: Session, user_id: str) -> LimitStatus:
    user = _get_user(db, user_id)
    current = count_links(db, user_id)
    cap = limits.max_links(user.is_premium)
    return LimitStatus(
        can_create_link=cap.allows(current),
        link_count=current,
        max_links=cap,
        is_premium=user.is_premium,
    )
