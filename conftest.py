import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from lifequest.auth import TokenAuth
from lifequest.storage import Storage

TEST_DATA_DIR = Path("data-tests")
SCHEDULER_SECRET = "cron-secret"


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    TEST_DATA_DIR.mkdir(parents=True)
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture
def storage() -> Storage:
    return Storage(TEST_DATA_DIR)


# ---------------------------------------------------------------------------
# StubLLM: dispatches by stage name, independent queue per stage
# ---------------------------------------------------------------------------

class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    A response that is an Exception instance is raised instead of returned.
    Raises if a stage is called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list] | None = None) -> None:
        self._queues: dict[str, list] = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {self.calls}"
            )
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def assert_exhausted(self) -> None:
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


@pytest.fixture
def make_llm():
    return StubLLM


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------

@pytest.fixture
def auth() -> TokenAuth:
    return TokenAuth("test-secret", expires_hours=1)


@pytest.fixture
def app(auth: TokenAuth):
    from backend.app import create_app

    return create_app(TEST_DATA_DIR, llm=StubLLM(), auth=auth, scheduler_secret=SCHEDULER_SECRET)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def signup(client: TestClient):
    """Onboard a user through the API; returns (auth headers, response body)."""

    def _signup(email: str = "hero@example.com", **fields) -> tuple[dict[str, str], dict]:
        resp = client.post("/api/users", json={"email": email, **fields})
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return {"Authorization": f"Bearer {body['token']}"}, body

    return _signup
