import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Keep outbound calls and rate limits predictable during tests
os.environ.setdefault("RATE_LIMIT_SIMPLIFY", "100/minute")

# Ensure the project root is on sys.path so `import medreport` works when running
# pytest from the repository root.
ROOT_DIR = Path(__file__).resolve().parents[2]  # repository root
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from medreport.app import app
from medreport.services.glossary import build_catalog
from medreport.services.reference_ranges import build_ranges
from medreport.services.report_pipeline import (
    ON_UNMATCHED_BUCKET,
    ReportInterpreter,
    get_interpreter,
    load_settings,
)


FIXTURE_TERMS = {
    "Ferritin": {
        "section": "iron",
        "sectionTitle": "Iron Studies",
        "label": "Ferritin",
        "simple": "Ferritin measures how much iron the body has stored.",
    },
    "Vitamin D": {
        "section": "vitamins",
        "sectionTitle": "Vitamins",
        "label": "Vitamin D (25-OH)",
        "simple": "Vitamin D helps the body absorb calcium.",
    },
    "Iron": {
        "section": "iron",
        "sectionTitle": "Iron Studies",
        "label": "Serum Iron",
        "simple": "Serum iron measures the iron that carries oxygen-building material in the blood.",
    },
}

FIXTURE_RANGES = {
    "Ferritin": {"unit": "ng/mL", "typical": [30, 400]},
    "Vitamin D": {"unit": "ng/mL"},
    "Iron": {"unit": "ug/dL", "typical": [60, 170]},
}


@pytest.fixture(autouse=True)
def no_gemini_key(monkeypatch):
    # A developer .env must never trigger real outbound calls
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    # ensure limiter state fresh each test
    if hasattr(app.state, "limiter") and hasattr(app.state.limiter, "reset"):
        app.state.limiter.reset()
    yield


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def interpreter():
    """Interpreter over the packaged tables."""
    return get_interpreter()


@pytest.fixture
def fixture_catalog():
    return build_catalog(FIXTURE_TERMS)


@pytest.fixture
def fixture_ranges():
    return build_ranges(FIXTURE_RANGES)


@pytest.fixture
def fixture_interpreter(fixture_catalog, fixture_ranges):
    return ReportInterpreter(fixture_catalog, fixture_ranges, load_settings())


@pytest.fixture
def bucketing_interpreter(interpreter):
    return ReportInterpreter(
        interpreter.catalog, interpreter.ranges, interpreter.settings, on_unmatched=ON_UNMATCHED_BUCKET
    )


@pytest.fixture
def mock_gemini(monkeypatch):
    """Configure a key and capture prompts instead of calling the network."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    calls = []
    replies = {"text": "Your results look mostly fine.\n1. Should I repeat the blood count?\n2. Does my diet matter?"}

    def fake_generate_text(prompt, **_kwargs):
        calls.append(prompt)
        reply = replies["text"]
        if isinstance(reply, Exception):
            raise reply
        return reply

    import medreport.services.gemini as gemini
    monkeypatch.setattr(gemini, "generate_text", fake_generate_text)
    return {"calls": calls, "replies": replies}
