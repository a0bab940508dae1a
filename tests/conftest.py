import os

# Pas de fichier sqlite créé pendant les tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import auth
import links
import main
import schemas
import users
from database import Base


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[main.get_db] = override_get_db
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(username="alice", premium=False):
        user = users.create_user(
            db, schemas.UserCreate(email=f"{username}@example.com", username=username)
        )
        if premium:
            user.is_premium = True
            db.commit()
            db.refresh(user)
        return user

    return _make


@pytest.fixture
def add_links(db):
    def _add(user, titles, **extra):
        return [
            links.create_link(
                db, user.id, schemas.LinkCreate(title=title, url=f"https://{title.lower()}.example.com", **extra)
            )
            for title in titles
        ]

    return _add


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        return {"Authorization": f"Bearer {auth.create_access_token(user_id)}"}

    return _headers
