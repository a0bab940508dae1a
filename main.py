import logging
import os
import secrets
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

# On importe nos fichiers
import analytics, auth, billing, clicks, links, models, schemas, users
from database import SessionLocal, engine
from errors import BioLinkError, NotFound, Unauthorized

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# Création des tables
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="BioLink API", version="0.1.0")

# Le token est émis par le service de session, on ne fait que le vérifier
bearer_scheme = HTTPBearer(auto_error=False)

BILLING_WEBHOOK_SECRET = os.getenv("BILLING_WEBHOOK_SECRET", "")


# --- UTILITAIRES ---
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    user_id = auth.read_user_id(credentials.credentials)
    if user_id is None:
        raise credentials_exception

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if user is None:
        raise credentials_exception
    return user


def require_billing_secret(x_billing_secret: str = Header(default="")):
    if not BILLING_WEBHOOK_SECRET:
        raise HTTPException(status_code=503, detail="Webhook de facturation non configuré")
    if not secrets.compare_digest(x_billing_secret, BILLING_WEBHOOK_SECRET):
        raise HTTPException(status_code=403, detail="Signature de facturation invalide")


# --- ERREURS ---
@app.exception_handler(BioLinkError)
def biolink_error_handler(request: Request, exc: BioLinkError):
    kind = exc.kind
    if isinstance(exc, Unauthorized):
        # Le client ne doit pas savoir que le lien existe chez quelqu'un d'autre
        log.warning("%s sur %s", exc.kind, request.url.path)
        kind = NotFound.kind
    return JSONResponse(status_code=exc.status_code, content={"kind": kind, "detail": exc.message})


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "kind": "ValidationError",
            "detail": "Requête invalide",
            "errors": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.get("/health")
def health_check():
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}


# --- ROUTES UTILISATEURS ---

@app.post("/users", response_model=schemas.UserResponse, status_code=201)
def register_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return users.create_user(db, user)


@app.get("/users/me", response_model=schemas.UserResponse)
def read_users_me(current_user: models.User = Depends(get_current_user)):
    return current_user


@app.patch("/users/me", response_model=schemas.UserResponse)
def update_users_me(
    changes: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return users.update_user(db, current_user.id, changes)


@app.get("/users/{username}", response_model=schemas.UserResponse)
def read_user_by_username(username: str, db: Session = Depends(get_db)):
    user = users.get_user_by_username(db, username)
    if user is None:
        raise NotFound("Utilisateur introuvable")
    return user


# Page publique (PAS d'authentification)
@app.get("/u/{username}/links", response_model=List[schemas.LinkResponse])
def read_public_links(username: str, db: Session = Depends(get_db)):
    return links.list_public_links(db, username)


# --- ROUTES LIENS (LE PRODUIT) ---

@app.post("/links", response_model=schemas.LinkResponse, status_code=201)
def create_link(
    item: schemas.LinkCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return links.create_link(db, current_user.id, item)


@app.get("/links", response_model=List[schemas.LinkResponse])
def read_my_links(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return links.list_links(db, current_user.id)


@app.get("/links/limits", response_model=schemas.UserLimits)
def read_my_limits(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return schemas.UserLimits.from_status(links.check_limits(db, current_user.id))


@app.post("/links/reorder")
def reorder_links(
    body: schemas.ReorderRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    links.reorder_links(db, current_user.id, [(o.id, o.order_index) for o in body.link_orders])
    return {"success": True}


@app.patch("/links/{link_id}", response_model=schemas.LinkResponse)
def update_link(
    link_id: str,
    changes: schemas.LinkUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return links.update_link(db, link_id, current_user.id, changes)


@app.delete("/links/{link_id}")
def delete_link(
    link_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    links.delete_link(db, link_id, current_user.id)
    return {"success": True}


# --- CLICS (PUBLIC : tout le monde peut cliquer) ---

@app.post("/links/{link_id}/click", response_model=schemas.LinkClickResponse, status_code=201)
def track_click(
    link_id: str,
    request: Request,
    body: Optional[schemas.ClickCreate] = None,
    db: Session = Depends(get_db),
):
    body = body or schemas.ClickCreate()
    return clicks.record_click(
        db,
        link_id,
        ip_address=body.ip_address or (request.client.host if request.client else None),
        user_agent=body.user_agent or request.headers.get("user-agent"),
        referrer=body.referrer or request.headers.get("referer"),
    )


# Redirection
@app.get("/r/{link_id}")
def redirect_to_site(link_id: str, request: Request, db: Session = Depends(get_db)):
    click = clicks.record_click(
        db,
        link_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referrer=request.headers.get("referer"),
    )
    return RedirectResponse(url=click.link.url)


# --- STATISTIQUES (PREMIUM) ---

@app.get("/analytics/pages", response_model=List[schemas.PageAnalyticsResponse])
def read_page_analytics(
    days: int = Query(default=30),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return analytics.get_user_analytics(db, current_user.id, days)


@app.get("/analytics/clicks", response_model=List[schemas.LinkClickResponse])
def read_click_analytics(
    days: int = Query(default=30),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return analytics.get_link_analytics(db, current_user.id, days)


# --- FACTURATION (appelé par le webhook du prestataire de paiement) ---

@app.post(
    "/billing/subscriptions",
    response_model=schemas.SubscriptionResponse,
    status_code=201,
    dependencies=[Depends(require_billing_secret)],
)
def create_subscription(data: schemas.SubscriptionCreate, db: Session = Depends(get_db)):
    return billing.create_subscription(db, data)


@app.post(
    "/billing/subscriptions/status",
    response_model=Optional[schemas.SubscriptionResponse],
    dependencies=[Depends(require_billing_secret)],
)
def update_subscription_status(data: schemas.SubscriptionStatusUpdate, db: Session = Depends(get_db)):
    return billing.update_subscription_status(db, data)
