from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catalogo.database import Base, get_db
from catalogo.form import ImageFile
from catalogo.main import app
from catalogo.models import Category
from catalogo.storage import LocalStorage


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def category(db) -> Category:
    cat = Category(name="Mercearia", slug="mercearia")
    db.add(cat)
    db.commit()
    db.refresh(cat)
    return cat


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(str(tmp_path / "media"), "http://testserver/media")


@pytest.fixture
def jpeg() -> ImageFile:
    return ImageFile(name="feijao.jpg", content_type="image/jpeg", data=b"\xff\xd8\xff\xe0" + b"0" * 1024)
