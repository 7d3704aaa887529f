import json

import pytest
from fastapi.testclient import TestClient
from google.api_core.exceptions import NotFound

from app.config import Settings
from app.main import app
from app.routers.reviews import get_db, get_provider, get_settings
from app.services.providers import ProviderHTTPError

client = TestClient(app)

FIVE_REVIEWS = [f"Review point {i}" for i in range(1, 6)]


class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, store, doc_id):
        self._store = store
        self._id = doc_id

    def get(self):
        return FakeSnapshot(self._store.docs.get(self._id))

    def set(self, data, merge=False):
        self._store.writes.append((self._id, "set", data))
        current = self._store.docs.get(self._id) or {}
        self._store.docs[self._id] = {**current, **data} if merge else dict(data)

    def update(self, data):
        if self._id not in self._store.docs:
            raise NotFound(f"No document to update: products/{self._id}")
        self._store.writes.append((self._id, "update", data))
        self._store.docs[self._id].update(data)


class FakeCollection:
    def __init__(self, store):
        self._store = store

    def document(self, doc_id):
        return FakeDocument(self._store, doc_id)


class FakeFirestore:
    def __init__(self, docs=None):
        self.docs = docs or {}
        self.writes = []
        self.calls = 0

    def collection(self, name):
        self.calls += 1
        return FakeCollection(self)


class FakeProvider:
    name = "Gemini"

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        for marker, text in self.responses.items():
            if marker in prompt:
                if isinstance(text, Exception):
                    raise text
                return text
        return json.dumps(FIVE_REVIEWS)


@pytest.fixture
def store():
    return FakeFirestore({"p1": {"ingredients": ["water", "glycerin"], "name": "Serum"}})


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def configure(store, provider):
    def _configure(**overrides):
        app.dependency_overrides[get_settings] = lambda: Settings(**overrides)

    app.dependency_overrides[get_db] = lambda: store
    app.dependency_overrides[get_provider] = lambda: provider
    _configure()
    yield _configure
    app.dependency_overrides.clear()


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "1.0.0"}


def test_generate_reviews_for_existing_and_missing_product(configure, store, provider):
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 200
    assert response.json() == {"p1": FIVE_REVIEWS, "p2": FIVE_REVIEWS}

    assert len(provider.prompts) == 2
    assert any('["water","glycerin"]' in p for p in provider.prompts)
    assert any("Ingredients: []" in p for p in provider.prompts)

    assert store.docs["p1"]["ai_review"] == FIVE_REVIEWS
    assert store.docs["p1"]["name"] == "Serum"
    assert store.docs["p2"] == {"ai_review": FIVE_REVIEWS}


def test_string_ingredients_field_reaches_prompt_intact(configure, store, provider):
    store.docs["p2"] = {"ingredients": "Crème, β-glucan"}
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 200
    assert any(p.endswith('Ingredients: "Crème, β-glucan"') for p in provider.prompts)


def test_netlify_path_is_served(configure, store):
    store.docs["p2"] = {"ingredients": ["niacinamide"]}
    response = client.post(
        "/.netlify/functions/generateAiReview",
        json={"productId1": "p1", "productId2": "p2"},
    )
    assert response.status_code == 200
    assert set(response.json()) == {"p1", "p2"}


def test_field_name_response_keys(configure):
    configure(response_keys="field_name")
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 200
    assert response.json() == {"productId1": FIVE_REVIEWS, "productId2": FIVE_REVIEWS}


@pytest.mark.parametrize(
    "payload",
    [{}, {"productId1": "p1"}, {"productId2": "p2"}, {"productId1": "", "productId2": "p2"}],
)
def test_missing_product_ids_returns_400(configure, store, provider, payload):
    response = client.post("/generateAiReview", json=payload)

    assert response.status_code == 400
    assert response.text == "productId1 and productId2 are required"
    assert store.calls == 0
    assert provider.prompts == []


def test_empty_body_returns_400(configure, store):
    response = client.post("/generateAiReview")
    assert response.status_code == 400
    assert store.calls == 0


def test_malformed_json_returns_400(configure, store):
    response = client.post(
        "/generateAiReview",
        content="{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert store.calls == 0


def test_get_returns_405_plain_text(configure, store):
    response = client.get("/generateAiReview")

    assert response.status_code == 405
    assert response.text == "Method Not Allowed"
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert store.calls == 0


def test_options_preflight_returns_204_with_cors_headers(configure):
    response = client.options("/generateAiReview")

    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert response.headers["access-control-allow-headers"] == "Content-Type"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"


def test_options_without_cors_returns_405(configure):
    configure(cors_enabled=False)
    response = client.options("/generateAiReview")

    assert response.status_code == 405
    assert "access-control-allow-origin" not in response.headers


def test_cors_headers_on_success(configure):
    configure(cors_allow_origin="https://shop.example.com")
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})
    assert response.headers["access-control-allow-origin"] == "https://shop.example.com"


def test_unparsable_provider_text_returns_500_without_writes(configure, store, provider):
    provider.responses = {"glycerin": "Here are your reviews: great stuff"}
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 500
    assert "Here are your reviews: great stuff" in response.text
    assert response.text.startswith("Failed to parse Gemini response")
    assert store.writes == []


def test_non_array_provider_json_returns_500(configure, store, provider):
    provider.responses = {"glycerin": '{"review": "nice"}'}
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 500
    assert response.text == "Gemini response is not a JSON array."
    assert store.writes == []


def test_provider_http_error_returns_raw_message(configure, provider):
    provider.responses = {"Ingredients: []": ProviderHTTPError("Gemini", 503, "overloaded")}
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 500
    assert response.text == "Gemini API error (503): overloaded"


def test_update_mode_fails_for_missing_document(configure, store):
    configure(write_mode="update")
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 500
    assert "No document to update" in response.text
    assert "p2" not in store.docs


def test_update_mode_succeeds_for_existing_documents(configure, store):
    configure(write_mode="update")
    store.docs["p2"] = {"ingredients": ["retinol"]}
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 200
    assert {op for _, op, _ in store.writes} == {"update"}
    assert store.docs["p2"]["ai_review"] == FIVE_REVIEWS


def test_not_found_policy_returns_404_without_generation(configure, provider):
    configure(missing_product_policy="not_found")
    response = client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert response.status_code == 404
    assert response.text == "Product 'p2' not found"
    assert provider.prompts == []


def test_concise_prompt_style(configure, provider):
    configure(prompt_style="concise")
    client.post("/generateAiReview", json={"productId1": "p1", "productId2": "p2"})

    assert all(p.startswith("Skincare expert. Generate 3 short review bullets") for p in provider.prompts)
