import os
import tempfile

# must be set before sentiscope.config is imported
_TMP_DIR = tempfile.mkdtemp(prefix="sentiscope-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["HUGGINGFACE_API_KEY"] = "hf-test-key"
os.environ["HF_REQUEST_DELAY"] = "0"
os.environ["OPENAI_API_KEY"] = ""
os.environ["S3_BUCKET_NAME"] = ""

import pytest
from fastapi.testclient import TestClient

from sentiscope.app import app
from sentiscope.errors import AppError
from sentiscope.services import auth_service
from sentiscope.services.db_service import Base, engine


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def registered():
    return auth_service.register(email="alice@sentiscope.io", password="secret123", name="Alice")


@pytest.fixture
def auth_headers(registered):
    return {"Authorization": f"Bearer {registered['accessToken']}"}


@pytest.fixture
def user_id(registered):
    return registered["user"]["id"]


@pytest.fixture
def fake_classifier(monkeypatch):
    """Keyword-driven stand-in for the hosted classifier. Texts containing "boom" fail."""
    calls = []

    def _classify(text):
        calls.append(text)
        lowered = text.lower()
        if "boom" in lowered:
            raise AppError("Model is loading, please try again in a moment", 503)
        if "love" in lowered or "great" in lowered:
            label = "Very Positive"
        elif "hate" in lowered or "awful" in lowered:
            label = "Negative"
        else:
            label = "Neutral"
        return [{"label": label, "score": 0.9}, {"label": "Neutral", "score": 0.1}]

    monkeypatch.setattr("sentiscope.services.sentiment_service._classify", _classify)
    return calls
