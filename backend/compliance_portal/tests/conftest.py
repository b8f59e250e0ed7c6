import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from compliance_portal import models
from compliance_portal.main import app
from compliance_portal.database import Base, get_db

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def register(client, *, email: str | None = None, password: str = "secret"):
    """
    purpose: register a fresh applicant account and return its bearer token with the email used
    status: active
    """

    normalized_email = email or f"user-{uuid.uuid4()}@example.com"
    resp = client.post(
        "/api/auth/register",
        json={"email": normalized_email, "password": password, "full_name": "Test Applicant"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["access_token"], normalized_email


def get_headers(client):
    token, _ = register(client)
    return {"Authorization": f"Bearer {token}"}


def reviewer_headers(client, role: str = "reviewer"):
    """
    purpose: register an account and promote it to a reviewer role directly in the database
    status: active
    """

    token, email = register(client)
    db = TestingSessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == email).one()
        user.role = role
        user.full_name = "Committee Reviewer"
        db.commit()
    finally:
        db.close()
    return {"Authorization": f"Bearer {token}"}


def admin_headers(client):
    """
    purpose: register an account flagged as portal administrator
    status: active
    """

    token, email = register(client)
    db = TestingSessionLocal()
    try:
        db.query(models.User).filter(models.User.email == email).one().is_admin = True
        db.commit()
    finally:
        db.close()
    return {"Authorization": f"Bearer {token}"}

def create_scientist(client, headers, *, name: str = "Dr. Ada Reyes", pi: bool = True):
    resp = client.post(
        "/api/scientists",
        json={"name": name, "email": f"{uuid.uuid4()}@example.org", "isPrincipalInvestigator": pi},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_research_activity(client, headers, pi_id: str):
    resp = client.post(
        "/api/research-activities",
        json={
            "sdrNumber": f"SDR-{uuid.uuid4().hex[:8]}",
            "title": "Lentiviral delivery of tumour suppressors",
            "principalInvestigatorId": pi_id,
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def ibc_payload(pi_id: str, activity_ids: list[str], **overrides):
    payload = {
        "title": "Lentiviral vectors in HEK293 cells",
        "principalInvestigatorId": pi_id,
        "biosafetyLevel": "BSL-2",
        "researchActivityIds": activity_ids,
        "isDraft": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def ibc_setup(client):
    """
    purpose: bundle headers, a principal investigator and a linked research activity for IBC tests
    status: active
    """

    headers = get_headers(client)
    pi = create_scientist(client, headers)
    activity = create_research_activity(client, headers, pi["id"])
    return {"headers": headers, "pi": pi, "activity": activity}


class RecordingSession:
    """Forward requests to a TestClient and remember each call."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs.get("json")))
        return self.client.request(method, url, **kwargs)

    def writes(self):
        return [(method, url) for method, url, _ in self.calls if method != "GET"]
