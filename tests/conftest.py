import os
import uuid

os.environ.setdefault("ACHIEVEMENTS_DATABASE_URL", "sqlite://")
os.environ.setdefault("ACHIEVEMENTS_RECONCILE_ENABLED", "false")
os.environ.setdefault("ACHIEVEMENTS_MONGO_ENSURE_INDEXES", "false")
os.environ.setdefault("ACHIEVEMENTS_JWT_SECRET_KEY", "test-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from student_achievements.core.config import get_settings
from student_achievements.core.database import Base, get_db
from student_achievements.core.documents import get_achievement_collection
from student_achievements.core.security import Role, SessionClaims, TokenVerifier
from student_achievements.main import app
from student_achievements.models import Student
from student_achievements.repositories import AdvisorDirectory, DetailStore, ReferenceStore
from student_achievements.schemas import AchievementContent
from student_achievements.services.achievement_service import AchievementCoordinator
from student_achievements.services.file_storage import LocalFileStorage

# Use in-memory SQLite for testing to ensure isolation
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

LECTURER_A = uuid.UUID("11111111-1111-1111-1111-111111111111")
LECTURER_B = uuid.UUID("22222222-2222-2222-2222-222222222222")
STUDENT_S = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
STUDENT_T = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")
STUDENT_U = uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")


def student_claims(student_id: uuid.UUID) -> SessionClaims:
    return SessionClaims(subject_id=uuid.uuid4(), role=Role.STUDENT, student_id=student_id)


def advisor_claims(lecturer_id: uuid.UUID) -> SessionClaims:
    return SessionClaims(subject_id=uuid.uuid4(), role=Role.ADVISOR, lecturer_id=lecturer_id)


def admin_claims() -> SessionClaims:
    return SessionClaims(subject_id=uuid.uuid4(), role=Role.ADMIN)


def make_content(**overrides) -> AchievementContent:
    payload = {
        "achievement_type": "competition",
        "title": "Hackathon Winner",
        "description": "First place at the campus hackathon",
        "details": {"competitionName": "HackCampus", "competitionLevel": "national", "rank": 1},
        "tags": ["hackathon", "programming"],
        "points": 10,
    }
    payload.update(overrides)
    return AchievementContent.model_validate(payload)


@pytest.fixture(scope="function")
def session():
    """
    Create a fresh database session for each test, with three students:
    S and T advised by lecturer A, U advised by lecturer B.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    db.add_all(
        [
            Student(student_id=STUDENT_S, user_id=uuid.uuid4(), student_number="S1001", advisor_id=LECTURER_A),
            Student(student_id=STUDENT_T, user_id=uuid.uuid4(), student_number="S1002", advisor_id=LECTURER_A),
            Student(student_id=STUDENT_U, user_id=uuid.uuid4(), student_number="S1003", advisor_id=LECTURER_B),
        ]
    )
    db.commit()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def collection():
    return mongomock.MongoClient().student_achievements.achievements


@pytest.fixture(scope="function")
def references(session):
    return ReferenceStore(session)


@pytest.fixture(scope="function")
def details(collection):
    return DetailStore(collection)


@pytest.fixture(scope="function")
def coordinator(session, references, details, tmp_path):
    return AchievementCoordinator(
        references,
        details,
        AdvisorDirectory(session),
        file_storage=LocalFileStorage(tmp_path / "uploads"),
        max_upload_bytes=1024,
    )


@pytest.fixture(scope="function")
def settings(tmp_path):
    return get_settings().model_copy(
        update={"upload_dir": str(tmp_path / "uploads"), "max_upload_bytes": 1024}
    )


@pytest.fixture(scope="function")
def client(session, collection, settings):
    """
    Create a TestClient wired to the test database and document collection.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_achievement_collection] = lambda: collection
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_headers(settings):
    verifier = TokenVerifier.from_settings(settings)

    def _headers(claims: SessionClaims) -> dict:
        return {"Authorization": f"Bearer {verifier.create_access_token(claims)}"}

    return _headers
