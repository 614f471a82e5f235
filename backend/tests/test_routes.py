"""
HTTP-level tests for the /api routes and error bodies.

Dependencies are overridden so no OpenAI call or database is involved.
"""

import pytest
from fastapi.testclient import TestClient

from claimcheck.config import Settings
from claimcheck.main import app
from claimcheck.models.errors import CollaboratorError
from claimcheck.models.schemas import ErrorResponse, ExtractionResult, RawSearchAnswer
from claimcheck.services.collaborator import OpenAICollaborator, get_collaborator
from claimcheck.services.rankings import InMemoryRankingsStore, RankingsAggregator, get_rankings_aggregator

from conftest import FakeCollaborator, raw_claim, raw_source


@pytest.fixture
def aggregator():
    return RankingsAggregator(InMemoryRankingsStore())


@pytest.fixture
def use_collaborator(aggregator):
    """Install a collaborator (and a fresh leaderboard) for one test."""

    def install(collaborator):
        app.dependency_overrides[get_collaborator] = lambda: collaborator
        return collaborator

    app.dependency_overrides[get_rankings_aggregator] = lambda: aggregator
    install(FakeCollaborator())
    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client(use_collaborator):
    return TestClient(app)


def _moon_extraction():
    return ExtractionResult(
        claims=[
            raw_claim("The Moon orbits Earth.", [raw_source("nasa.gov"), raw_source("noaa.gov")]),
            raw_claim("Moon cheese is delicious.", [], type="opinion"),
        ],
        overall_verdict="The factual claim checks out.",
    )


# =============================================================================
# VERIFY
# =============================================================================

def test_verify_returns_camel_case_body(client, use_collaborator):
    use_collaborator(FakeCollaborator(extraction=_moon_extraction()))

    response = client.post("/api/verify", json={"text": "The Moon orbits Earth.", "sourceLabel": "ChatGPT"})

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total": 2, "verified": 1, "false": 0, "unconfirmed": 0, "opinions": 1}
    assert body["message"] == "The factual claim checks out."
    first = body["claims"][0]
    assert first["status"] == "verified"
    assert first["sourceAgreement"] == 2
    assert {"claim", "type", "explanation", "sources", "confidence"} <= set(first)
    assert first["sources"][0]["quality"] == "high"


def test_verify_accepts_legacy_keys(client, use_collaborator):
    collaborator = use_collaborator(FakeCollaborator())

    response = client.post("/api/verify", json={"content": "Some text", "aiSource": "Gemini"})

    assert response.status_code == 200
    assert response.json()["message"] == "No factual claims found to verify."
    assert collaborator.calls == [("extract_claims", "Some text", "Gemini")]


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"text": "", "sourceLabel": "ChatGPT"}, "text"),
        ({"sourceLabel": "ChatGPT"}, "text"),
        ({"text": "Some text"}, "sourceLabel"),
        ({"text": 123, "sourceLabel": "ChatGPT"}, "text"),
    ],
)
def test_verify_rejects_bad_input_with_400(client, payload, field):
    response = client.post("/api/verify", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["field"] == field
    assert body["error"]


def test_verify_rejects_non_json_body(client):
    response = client.post("/api/verify", content=b"not json", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_verify_upstream_failure_is_502_without_details(client, use_collaborator):
    use_collaborator(FakeCollaborator(error=CollaboratorError("secret-token rejected by provider")))

    response = client.post("/api/verify", json={"text": "Some text", "sourceLabel": "ChatGPT"})

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "UPSTREAM_ERROR"
    assert "secret-token" not in body["error"]
    assert "try again" in body["error"].lower()


def test_missing_api_key_is_500_config_error(client, use_collaborator):
    use_collaborator(OpenAICollaborator(settings=Settings(openai_api_key="")))

    response = client.post("/api/verify", json={"text": "Some text", "sourceLabel": "ChatGPT"})

    assert response.status_code == 500
    assert response.json() == {"error": "Server configuration error", "code": "CONFIG_ERROR"}


# =============================================================================
# SEARCH AND REPHRASE
# =============================================================================

def test_search_returns_trust_score(client, use_collaborator):
    answer = RawSearchAnswer(
        answer="About 384,400 km.",
        sources=[raw_source("nasa.gov"), raw_source("reuters.com")],
        agreement_count=2,
    )
    use_collaborator(FakeCollaborator(search_answer=answer))

    response = client.post("/api/search", json={"query": "How far is the Moon?"})

    assert response.status_code == 200
    body = response.json()
    assert body["query"] == "How far is the Moon?"
    assert body["trustScore"] == 83  # 50 + 15 + 8 + 10
    assert body["sourceAgreement"] == 2
    assert [s["domain"] for s in body["sources"]] == ["nasa.gov", "reuters.com"]
    assert body["warnings"] == []


def test_search_requires_a_query(client):
    response = client.post("/api/search", json={"query": "   "})

    assert response.status_code == 400
    assert response.json()["error"] == "Please enter a search query"


def test_rephrase_success_and_failure(client, use_collaborator):
    use_collaborator(FakeCollaborator(rephrased="  Different words.  "))
    ok = client.post("/api/rephrase", json={"text": "Same facts."})

    use_collaborator(FakeCollaborator(error=CollaboratorError("boom")))
    failed = client.post("/api/rephrase", json={"text": "Same facts."})

    assert ok.status_code == 200
    assert ok.json() == {"rephrased": "Different words."}
    assert failed.status_code == 500
    assert failed.json()["code"] == "UPSTREAM_ERROR"


# =============================================================================
# RANKINGS
# =============================================================================

def test_rankings_start_empty(client):
    response = client.get("/api/rankings")

    assert response.status_code == 200
    assert response.json() == {"rankings": []}


def test_post_then_get_rankings(client):
    posted = client.post(
        "/api/rankings",
        json={"aiSource": "ChatGPT", "verified": 8, "false": 1, "unconfirmed": 1, "opinions": 4, "total": 14},
    )
    assert posted.status_code == 200
    assert posted.json() == {"success": True}

    [ranking] = client.get("/api/rankings").json()["rankings"]
    assert ranking == {
        "name": "ChatGPT",
        "checksCount": 1,
        "verifiedRate": 80,
        "falseRate": 10,
        "avgScore": 60,
    }


def test_post_rankings_requires_a_source(client):
    response = client.post("/api/rankings", json={"verified": 1})

    assert response.status_code == 400
    assert response.json()["error"] == "AI source is required"


def test_post_rankings_rejects_negative_counts(client):
    response = client.post("/api/rankings", json={"aiSource": "ChatGPT", "verified": -1})

    assert response.status_code == 400
    assert response.json()["field"] == "verified"


def test_verify_feeds_the_leaderboard(client, use_collaborator):
    use_collaborator(FakeCollaborator(extraction=_moon_extraction()))

    client.post("/api/verify", json={"text": "The Moon orbits Earth.", "sourceLabel": "Claude"})
    client.post("/api/verify", json={"text": "The Moon orbits Earth.", "sourceLabel": "Claude"})

    [ranking] = client.get("/api/rankings").json()["rankings"]
    assert ranking["name"] == "Claude"
    assert ranking["checksCount"] == 2
    assert ranking["verifiedRate"] == 100


# =============================================================================
# FRAMEWORK ERRORS
# =============================================================================

def test_wrong_method_is_405_with_error_body(client):
    response = client.get("/api/verify")

    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed", "code": None}


def test_unknown_route_is_404(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found", "code": None}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


@pytest.mark.parametrize(
    "method, path, payload",
    [
        ("post", "/api/verify", {"text": ""}),
        ("post", "/api/search", {}),
        ("post", "/api/rephrase", {"text": 7}),
        ("post", "/api/rankings", {"aiSource": "ChatGPT", "verified": -1}),
        ("get", "/api/verify", None),
        ("get", "/api/nothing-here", None),
    ],
)
def test_every_error_body_is_an_error_response(client, method, path, payload):
    kwargs = {} if payload is None else {"json": payload}
    response = getattr(client, method)(path, **kwargs)

    assert response.status_code >= 400
    body = response.json()
    assert set(body) <= {"error", "code", "field"}, f"Unexpected keys in {body}"
    parsed = ErrorResponse.model_validate(body)
    assert parsed.error, "Error bodies always carry a message"
