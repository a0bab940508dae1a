"""Côté BioLink du webhook de facturation.

Le prestataire de paiement reste externe : on reçoit seulement le statut de
l'abonnement. C'est le seul endroit qui écrit `User.is_premium`.
"""

import calendar
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import models
import schemas
from database import transaction
from errors import NotFound

log = logging.getLogger(__name__)


def _add_one_month(moment: datetime) -> datetime:
    year = moment.year + moment.month // 12
    month = moment.month % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _sync_user(user: models.User, subscription: models.Subscription, now: datetime) -> None:
    # is_premium <=> abonnement actif
    user.is_premium = subscription.status == "active"
    user.subscription_id = subscription.id
    user.subscription_status = subscription.status
    user.updated_at = now


def create_subscription(db: Session, data: schemas.SubscriptionCreate) -> models.Subscription:
    with transaction(db):
        user = db.query(models.User).filter(models.User.id == data.user_id).with_for_update().first()
        if user is None:
            raise NotFound("Utilisateur introuvable")

        now = datetime.utcnow()
        subscription = models.Subscription(
            user_id=user.id,
            external_reference=data.external_reference or None,
            status=data.status,
            current_period_start=now,
            current_period_end=_add_one_month(now),
        )
        db.add(subscription)
        db.flush()
        _sync_user(user, subscription, now)

    db.refresh(subscription)
    log.info("Abonnement %s créé pour %s (%s)", subscription.id, data.user_id, data.status)
    return subscription


def update_subscription_status(
    db: Session, data: schemas.SubscriptionStatusUpdate
) -> Optional[models.Subscription]:
    with transaction(db):
        user = db.query(models.User).filter(models.User.id == data.user_id).with_for_update().first()
        if user is None:
            raise NotFound("Utilisateur introuvable")

        subscription = (
            db.query(models.Subscription)
            .filter(models.Subscription.user_id == data.user_id)
            .order_by(models.Subscription.created_at.desc())
            .first()
        )
        if subscription is None:
            return None

        now = datetime.utcnow()
        subscription.status = data.status
        subscription.updated_at = now
        _sync_user(user, subscription, now)

    db.refresh(subscription)
    log.info("Abonnement %s passé à %s", subscription.id, data.status)
    return subscription
