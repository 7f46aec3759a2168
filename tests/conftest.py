import os

# must be set before config/db are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

import models
from db import engine
from main import app


@pytest.fixture(autouse=True)
def _tables():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def services():
    return app.state.services


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, username: str, password: Optional[str] = "secret1", **extra) -> dict:
    payload = {"username": username, **extra}
    if password is not None:
        payload["password"] = password
    resp = client.post("/api/users/register", json=payload)
    assert resp.status_code in (200, 201), resp.text
    return resp.json()["data"]


def help_request_payload(**overrides) -> dict:
    payload = {
        "lat": 6.9271,
        "lng": 79.8612,
        "urgency": "HIGH",
        "shortNote": "Water rising, need food",
        "approxArea": "Colombo",
        "contactType": "PHONE",
        "contact": "0771234567",
        "name": "Perera family",
        "totalPeople": 4,
        "elders": 1,
        "children": 2,
        "pets": 0,
        "rationItems": ["rice", "water"],
    }
    payload.update(overrides)
    return payload


def create_help_request(client: TestClient, token: Optional[str] = None, **overrides) -> dict:
    headers = auth(token) if token else {}
    resp = client.post("/api/help-requests", json=help_request_payload(**overrides), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def insert_help_request(session: Session, age_days: float = 0, **fields) -> models.HelpRequest:
    """Write a row directly so tests can control created_at and status."""
    values = {
        "lat": 7.0,
        "lng": 80.0,
        "urgency": "LOW",
        "approx_area": "Kandy",
        "total_people": 1,
        "ration_items": [],
        "status": "OPEN",
        "created_at": models.utcnow() - timedelta(days=age_days),
    }
    values.update(fields)
    row = models.HelpRequest(**values)
    session.add(row)
    session.commit()
    session.refresh(row)
    return row
