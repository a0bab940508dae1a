import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import models
from database import transaction
from errors import NotFound

log = logging.getLogger(__name__)


def record_click(
    db: Session,
    link_id: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    referrer: Optional[str] = None,
) -> models.LinkClick:
    # Événement + compteur dans la même transaction
    with transaction(db):
        link = db.query(models.Link).filter(models.Link.id == link_id).first()
        # Un lien masqué n'est pas cliquable, ni par l'API ni par la redirection
        if link is None or not link.is_active:
            raise NotFound("Lien introuvable")

        click = models.LinkClick(
            link_id=link.id,
            user_id=link.user_id,
            ip_address=ip_address or None,
            user_agent=user_agent or None,
            referrer=referrer or None,
            country=None,  # pas de géolocalisation IP pour l'instant
        )
        db.add(click)

        # Incrément côté SQL : deux clics simultanés ne s'écrasent pas
        db.query(models.Link).filter(models.Link.id == link.id).update(
            {
                models.Link.click_count: models.Link.click_count + 1,
                models.Link.updated_at: datetime.utcnow(),
            },
            synchronize_session="fetch",
        )

    db.refresh(click)
    log.info("Clic enregistré sur %s", link_id)
    return click
