"""Pytest configuration: a throwaway SQLite database per test run."""
import json
import os
import tempfile
from pathlib import Path

_DB_DIR = Path(tempfile.mkdtemp(prefix="amberlear-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("OPENROUTER_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from amberlear.db import Base, SessionLocal, engine
from amberlear.main import app
from amberlear.models import ProgressGraph


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def register(client):
    def _register(email="ada@example.com", name="Ada", password="s3cret-pass"):
        response = client.post("/auth/register", json={"email": email, "name": name, "password": password})
        assert response.status_code == 201, response.text
        token = response.json()["token"]
        return {"Authorization": f"Bearer {token}"}

    return _register


def node(topic_id, mastery=0.0, status="locked", prerequisites=(), subject="Math"):
    return {
        "id": topic_id,
        "name": topic_id,
        "subject": subject,
        "mastery": mastery,
        "status": status,
        "prerequisites": list(prerequisites),
        "timeSpent": 0,
    }


def edge(source, target, strength=1.0):
    return {"from": source, "to": target, "strength": strength}


@pytest.fixture
def seed_graph():
    def _seed(user_id, nodes, edges=()):
        session = SessionLocal()
        try:
            row = session.get(ProgressGraph, user_id)
            if row is None:
                row = ProgressGraph(user_id=user_id)
                session.add(row)
            row.nodes_json = json.dumps(list(nodes))
            row.edges_json = json.dumps(list(edges))
            session.commit()
        finally:
            session.close()

    return _seed
