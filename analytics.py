"""Statistiques réservées aux comptes premium."""

from datetime import datetime, timedelta
from typing import List

from sqlalchemy.orm import Session

import models
from errors import NotFound, PremiumRequired, ValidationError

MAX_DAYS = 365


def _premium_user(db: Session, user_id: str, days: int) -> models.User:
    if not 1 <= days <= MAX_DAYS:
        raise ValidationError(f"`days` doit être compris entre 1 et {MAX_DAYS}")
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise NotFound("Utilisateur introuvable")
    if not user.is_premium:
        raise PremiumRequired("Les statistiques sont réservées aux membres PREMIUM.")
    return user


def get_user_analytics(db: Session, user_id: str, days: int = 30) -> List[models.PageAnalytics]:
    _premium_user(db, user_id, days)
    since = datetime.utcnow() - timedelta(days=days)
    return (
        db.query(models.PageAnalytics)
        .filter(models.PageAnalytics.user_id == user_id, models.PageAnalytics.date >= since)
        .order_by(models.PageAnalytics.date.asc())
        .all()
    )


def get_link_analytics(db: Session, user_id: str, days: int = 30) -> List[models.LinkClick]:
    _premium_user(db, user_id, days)
    since = datetime.utcnow() - timedelta(days=days)
    # Jointure sur les liens : seuls les clics sur les liens de l'utilisateur
    return (
        db.query(models.LinkClick)
        .join(models.Link, models.LinkClick.link_id == models.Link.id)
        .filter(models.Link.user_id == user_id, models.LinkClick.clicked_at >= since)
        .order_by(models.LinkClick.clicked_at.desc())
        .all()
    )
