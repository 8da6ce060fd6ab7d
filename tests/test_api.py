"""
Tests for the storyboard cache API.
"""

import pytest
from fastapi.testclient import TestClient

from storyboard_cache.api.app import create_app
from storyboard_cache.api.dependencies import build_services
from storyboard_cache.errors import ProviderError
from tests.fakes import FakeImageGenerator, FakeLanguageModel

LION = "a lion wearing sunglasses"
COMPLETIONS = '["man walking down street", "man walking through door", "man walking up stairs"]'


@pytest.fixture
def services(settings, store, generator, uploader, llm):
    return build_services(settings, store=store, generator=generator, uploader=uploader, language_model=llm)


@pytest.fixture
def client(services):
    """Create a test client with the lifespan running."""
    with TestClient(create_app(services=services)) as client:
        yield client


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Storyboard Cache API"
    assert data["endpoints"]["generate"] == "/generate"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["store_backend"] == "InMemoryKeyValueStore"


def test_request_id_in_header_and_body(client):
    response = client.post("/generate/instant", json={"prompt": LION})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == response.json()["request_id"]
    assert response.json()["request_id"]


def test_repeat_submission_is_instant(client, generator):
    """Cold prompt is generated at final quality; a reworded-case repeat is served from cache."""
    first = client.post("/generate", json={"prompt": LION})
    assert first.status_code == 200
    cold = first.json()
    assert cold["success"] is True
    assert cold["tier"] == "final"
    assert cold["cached"] is False
    assert cold["url"] == "https://imagedelivery.example/img-1/public"

    second = client.post("/generate", json={"prompt": "A Lion Wearing Sunglasses "})
    warm = second.json()
    assert warm["tier"] == "instant"
    assert warm["cached"] is True
    assert warm["url"] == cold["url"]
    assert len(generator.calls) == 1


def test_instant_only_miss(client, generator):
    response = client.post("/generate", json={"prompt": "an empty alley at night", "tiers": ["instant"]})
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["tier"] == "instant"
    assert data["url"] is None
    assert generator.calls == []


def test_instant_lookup_reports_reason(client):
    miss = client.post("/generate/instant", json={"prompt": LION}).json()
    assert miss["success"] is False
    assert miss["reason"] == "not_cached"

    client.post("/generate", json={"prompt": LION})
    hit = client.post("/generate/instant", json={"prompt": LION}).json()
    assert hit["success"] is True
    assert hit["reason"] == "exact_match"
    assert hit["confidence"] == 1.0


@pytest.mark.parametrize(
    "payload",
    [
        {"prompt": "   "},
        {"prompt": ""},
        {},
        {"prompt": LION, "tiers": ["ultra"]},
        {"prompt": LION, "tiers": []},
        {"prompt": LION, "max_tiers": 7},
    ],
)
def test_invalid_generate_request_is_400(client, payload):
    response = client.post("/generate", json=payload)
    assert response.status_code == 400
    data = response.json()
    assert data["success"] is False
    assert data["error"].startswith("Invalid request")
    assert data["request_id"] == response.headers["X-Request-ID"]


def test_generation_failure_returns_error_envelope(settings, store, uploader, llm):
    services = build_services(
        settings, store=store, generator=FakeImageGenerator(fail=True), uploader=uploader, language_model=llm
    )
    with TestClient(create_app(services=services)) as client:
        response = client.post("/generate", json={"prompt": LION})

    assert response.status_code == 500
    assert response.json()["error"] == "Image generation failed"
    assert response.json()["success"] is False
    assert services.cache.count() == 0


def test_background_generation_returns_immediately(services, generator):
    with TestClient(create_app(services=services)) as client:
        response = client.post("/generate/background", json={"prompt": LION})
        assert response.json()["success"] is True

    # lifespan shutdown drains background work
    assert [quality.tier.value for _, quality in generator.calls] == ["final"]
    assert services.cache.count() == 1


def test_background_without_generation_tier(client):
    response = client.post("/generate/background", json={"prompt": LION, "tiers": ["instant"]})
    assert response.json()["success"] is False


def test_semantic_check(client):
    assert client.post("/cache/semantic-check", json={"prompt": LION}).json()["found"] is False

    client.post("/generate", json={"prompt": LION})
    data = client.post("/cache/semantic-check", json={"prompt": LION.upper()}).json()
    assert data["found"] is True
    assert data["matched_prompt"] == LION


def test_predict_typing(settings, store, generator, uploader):
    llm = FakeLanguageModel([COMPLETIONS])
    services = build_services(settings, store=store, generator=generator, uploader=uploader, language_model=llm)
    with TestClient(create_app(services=services)) as client:
        response = client.post("/predict/typing", json={"partial": "man walking", "recent_prompts": []})

    data = response.json()
    assert data["success"] is True
    assert data["predictions"] == ["man walking down street", "man walking through door", "man walking up stairs"]
    assert data["warming"] == data["predictions"]
    assert len(generator.calls) == 3


def test_predict_typing_short_input(client, llm):
    data = client.post("/predict/typing", json={"partial": "ma"}).json()
    assert data["predictions"] == []
    assert data["confidence"] == 0.0
    assert llm.prompts == []


def test_track_session_issues_id(client, services):
    data = client.post(
        "/analytics/session",
        json={"prompts": ["man walking"], "cache_hits": 1, "user_agent": "curl/8.4.0"},
    ).json()

    assert data["success"] is True
    session = services.analytics.get_session(data["session_id"])
    assert session.prompts == ["man walking"]
    assert session.user_agent == "Unknown"


def test_track_typing_and_prediction(client, services):
    typing = client.post(
        "/analytics/typing",
        json={"session_id": "s-1", "partial": "man wa", "duration": 900, "abandoned": True},
    )
    prediction = client.post(
        "/analytics/prediction",
        json={"session_id": "s-1", "partial": "man wa", "predictions": ["man walking"], "accuracy": 1.0},
    )

    assert typing.json()["success"] is True
    assert prediction.json()["session_id"] == "s-1"
    session = services.analytics.get_session("s-1")
    assert session.typing_patterns[0].abandoned is True
    assert session.predictions[0].accuracy == 1.0


def test_track_typing_requires_session(client):
    response = client.post("/analytics/typing", json={"partial": "man", "duration": 100})
    assert response.status_code == 400


def test_user_analytics(client):
    client.post("/analytics/session", json={"session_id": "s-1", "prompts": ["man walking", "man walking"]})
    client.post("/analytics/session", json={"session_id": "s-2", "prompts": ["pizza on ice"], "cache_misses": 1})

    response = client.get("/analytics/users")
    assert response.status_code == 200
    analytics = response.json()["analytics"]
    assert analytics["total_sessions"] == 2
    assert analytics["common_patterns"][0] == "man walking"
    assert analytics["average_session_length"] == 1.5


def test_cluster_analysis(client):
    client.post("/generate", json={"prompt": LION})
    client.post("/generate", json={"prompt": "pizza on ice"})

    response = client.get("/cache/clusters")
    assert response.status_code == 200
    analysis = response.json()["analysis"]
    assert analysis["stats"]["total_clusters"] == 2
    assert sorted(analysis["optimization"]["cleanup_candidates"]) == [LION, "pizza on ice"]


def test_stats(client):
    client.post("/generate", json={"prompt": LION})
    client.post("/generate", json={"prompt": LION})

    data = client.get("/cache/stats").json()
    assert data["total_entries"] == 1
    assert data["variation_entries"] == 0
    assert data["semantic_cache_enabled"] is True
    assert data["prediction_threshold"] == 0.4
    assert data["metrics"]["instant_hits"] == 1
    assert data["metrics"]["final_generations"] == 1


def test_browse(client):
    for prompt in ["pizza on ice", LION, "man walking"]:
        client.post("/generate", json={"prompt": prompt})

    data = client.get("/cache/browse", params={"limit": 2}).json()
    assert data["total"] == 3
    assert [item["key"] for item in data["items"]] == [LION, "man walking"]

    filtered = client.get("/cache/browse", params={"prefix": "Pizza"}).json()
    assert [item["key"] for item in filtered["items"]] == ["pizza on ice"]


def test_browse_rejects_bad_limit(client):
    assert client.get("/cache/browse", params={"limit": 0}).status_code == 400


def test_delete_and_clear(client, services):
    client.post("/generate", json={"prompt": LION})
    client.post("/generate", json={"prompt": "pizza on ice"})
    client.post("/analytics/session", json={"session_id": "s-1"})

    deleted = client.post("/cache/delete", json={"prompt": " A lion wearing sunglasses"}).json()
    assert deleted["success"] is True
    assert client.post("/cache/delete", json={"prompt": LION}).json()["deleted_count"] == 0

    cleared = client.delete("/cache", params={"include_sessions": True}).json()
    assert cleared["deleted_count"] == 2
    assert services.cache.count() == 0
    assert services.analytics.count_sessions() == 0
    assert client.get("/cache/stats").json()["metrics"]["total_requests"] == 0


@pytest.mark.parametrize("error", [ProviderError("gemini", "quota exceeded"), RuntimeError("unexpected payload")])
def test_failed_expansion_does_not_change_generate_response(settings, store, generator, uploader, error):
    services = build_services(
        settings, store=store, generator=generator, uploader=uploader, language_model=FakeLanguageModel(error=error)
    )
    with TestClient(create_app(services=services)) as client:
        response = client.post("/generate", json={"prompt": LION})
        data = response.json()
        assert response.status_code == 200
        assert data["success"] is True
        assert data["tier"] == "final"
        assert data["url"] == "https://imagedelivery.example/img-1/public"

        again = client.post("/generate", json={"prompt": LION}).json()
        assert again["tier"] == "instant"
        assert again["url"] == data["url"]

    # lifespan shutdown drains the expansion task
    assert services.runner.stats()["failed"] == (1 if isinstance(error, RuntimeError) else 0)
    assert services.cache.count() == 1
