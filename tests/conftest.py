"""
Shared fixtures. Environment is set before any studyguide module is imported.
"""
import os
import random
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="studyguide-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
for _var in ("LLM_BASE_URL", "LLM_API_KEY", "OPENAI_API_KEY", "LLM_MODEL"):
    os.environ.pop(_var, None)

import pytest

from studyguide.services.llm import RetryPolicy


CELL_TEXT = """Photosynthesis is a process used by plants to convert light energy into chemical energy.
Chlorophyll is a green pigment that absorbs light in the chloroplasts.
The chloroplast is an organelle where photosynthesis takes place in plant cells.
Mitochondria are organelles that release energy from glucose during respiration.
The nucleus is the control center that contains the genetic material of the cell.
Ribosomes are small structures that assemble proteins from amino acids.
Osmosis is the movement of water across a selectively permeable membrane.
Diffusion is the spreading of particles from high to low concentration."""


class FakeProvider:
    """Replays canned completions keyed by prompt category.

    ``responses`` maps a category ("sections", "concepts", "trueFalse",
    "multipleChoice", "identification") to a string or an exception; a
    category may also map to a dict keyed by difficulty.
    """

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.calls = []

    @staticmethod
    def categorize(prompt: str):
        if "break it into 4-6 logical sections" in prompt:
            return "sections", None
        if "unique scientific concepts" in prompt:
            return "concepts", None
        count = prompt.split("EXACTLY ", 1)[1].split(" ", 1)[0] if "EXACTLY " in prompt else ""
        difficulty = {"15": "easy", "12": "medium", "10": "hard"}.get(count)
        if "true/false" in prompt:
            return "trueFalse", difficulty
        if "multiple choice" in prompt:
            return "multipleChoice", difficulty
        return "identification", difficulty

    def complete(self, prompt, *, temperature=0.4, max_tokens=4096):
        category, difficulty = self.categorize(prompt)
        self.calls.append((category, difficulty))
        response = self.responses.get(category, "")
        if isinstance(response, dict):
            response = response.get(difficulty, "")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def no_wait_retry():
    return RetryPolicy(max_retries=2, base_delay=0.0, sleep=lambda _: None)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def biology_text():
    return CELL_TEXT


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from studyguide.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
