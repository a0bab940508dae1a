import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models
import schemas
from database import transaction
from errors import AlreadyExists, NotFound, ValidationError

log = logging.getLogger(__name__)


def get_user(db: Session, user_id: str) -> models.User:
    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise NotFound("Utilisateur introuvable")
    return user


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.username == username).first()


def create_user(db: Session, data: schemas.UserCreate) -> models.User:
    try:
        with transaction(db):
            if db.query(models.User).filter(models.User.email == data.email).first():
                raise AlreadyExists("Email déjà utilisé")
            if get_user_by_username(db, data.username):
                raise AlreadyExists("Ce pseudo est déjà pris")

            user = models.User(
                email=data.email,
                username=data.username,
                display_name=data.display_name or None,
                avatar_url=data.avatar_url or None,
                bio=data.bio or None,
                theme=data.theme,
            )
            db.add(user)
    except IntegrityError as exc:
        # Deux inscriptions simultanées : la contrainte UNIQUE tranche
        raise AlreadyExists("Email ou pseudo déjà utilisé") from exc

    db.refresh(user)
    log.info("Utilisateur %s créé", user.id)
    return user


def update_user(db: Session, user_id: str, data: schemas.UserUpdate) -> models.User:
    fields = data.model_dump(exclude_unset=True)
    for name in ("username", "theme"):
        if name in fields and fields[name] is None:
            raise ValidationError(f"Le champ '{name}' ne peut pas être vide")

    try:
        with transaction(db):
            user = get_user(db, user_id)
            new_username = fields.get("username")
            if new_username and new_username != user.username:
                if get_user_by_username(db, new_username):
                    raise AlreadyExists("Ce pseudo est déjà pris")
            for name, value in fields.items():
                setattr(user, name, value)
            user.updated_at = datetime.utcnow()
    except IntegrityError as exc:
        raise AlreadyExists("Ce pseudo est déjà pris") from exc

    db.refresh(user)
    return user
