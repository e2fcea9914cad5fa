"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests.

The program catalog is seeded once per session:
  module 1  "Reconocer el burnout"    3 activities
  module 2  "Manejo del estrés"       2 activities
  module 3  "Cierre del programa"     1 activity
plus the achievement catalog and a 16-item OLBI questionnaire.
Every test creates its own patient, so progress never leaks between tests.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_burnout.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db
from app.main import app
from app.models.achievement import Achievement
from app.models.activity import Activity
from app.models.burnout import BurnoutDimension, BurnoutQuestion
from app.models.module import Module
from app.models.patient import Patient
from app.services.achievement_engine import ACHIEVEMENT_RULES

SQLITE_URL = "sqlite:///./test_burnout.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_MODULES = [
    ("Reconocer el burnout", ["Qué es el burnout", "Mis señales de alerta", "Diario de energía"]),
    ("Manejo del estrés",    ["Respiración diafragmática", "Pausas activas"]),
    ("Cierre del programa",  ["Plan de autocuidado"]),
]

# (dimension, is_reversed) in questionnaire order: 8 per dimension, 4 reversed each
_QUESTIONS = [
    (BurnoutDimension.disengagement, True),
    (BurnoutDimension.exhaustion,    False),
    (BurnoutDimension.disengagement, False),
    (BurnoutDimension.exhaustion,    False),
    (BurnoutDimension.exhaustion,    True),
    (BurnoutDimension.disengagement, False),
    (BurnoutDimension.disengagement, True),
    (BurnoutDimension.exhaustion,    False),
    (BurnoutDimension.disengagement, False),
    (BurnoutDimension.exhaustion,    True),
    (BurnoutDimension.disengagement, False),
    (BurnoutDimension.exhaustion,    False),
    (BurnoutDimension.disengagement, True),
    (BurnoutDimension.exhaustion,    True),
    (BurnoutDimension.disengagement, True),
    (BurnoutDimension.exhaustion,    True),
]


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def _seed(db) -> None:
    # Catalog rows normally come from the Alembic migrations
    for position, (title, activities) in enumerate(_MODULES, start=1):
        module = Module(title=title, order=position)
        db.add(module)
        db.flush()
        for a_position, a_title in enumerate(activities, start=1):
            db.add(Activity(
                module_id=module.id,
                title=a_title,
                duration_minutes=15,
                order=a_position,
            ))

    for rule in ACHIEVEMENT_RULES:
        db.add(Achievement(
            code=rule.code,
            name=rule.name,
            description=rule.description,
            category=rule.category,
            image=f"{rule.code}.png",
        ))

    for position, (dimension, is_reversed) in enumerate(_QUESTIONS, start=1):
        db.add(BurnoutQuestion(
            text=f"Pregunta {position}",
            dimension=dimension,
            is_reversed=is_reversed,
            order=position,
        ))
    db.commit()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        _seed(db)
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_patient(db):
    """Factory: a fresh, committed patient with no progress."""
    def _make(full_name: str = "Paciente de prueba") -> Patient:
        patient = Patient(full_name=full_name)
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient
    return _make


@pytest.fixture()
def program(db):
    """The seeded catalog as [(module, [activity, ...]), ...] in program order."""
    modules = db.query(Module).order_by(Module.order.asc()).all()
    return [
        (
            module,
            db.query(Activity)
            .filter(Activity.module_id == module.id)
            .order_by(Activity.order.asc())
            .all(),
        )
        for module in modules
    ]


@pytest.fixture()
def questions(db):
    return db.query(BurnoutQuestion).order_by(BurnoutQuestion.order.asc()).all()


@pytest.fixture()
def other_session():
    """A second, independent session, standing in for a concurrent request."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
