"""
Tests for the Markov HTTP endpoints.
"""
import asyncio

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from babble.api.routers.markov_router import MODEL_CACHE, _train as train_model
from babble.services.errors import InvalidInput
from babble.app import app
from babble.config import settings


@pytest.fixture
def client():
    """Test client with an empty model cache."""
    MODEL_CACHE.clear()
    with TestClient(app) as test_client:
        yield test_client
    MODEL_CACHE.clear()


def _train(client, text="abab", order=1, mode="char", model_name="default"):
    return client.post(
        "/markov/train",
        json={"text": text, "order": order, "mode": mode, "model_name": model_name},
    )


class TestHealth:
    """Test suite for service-level endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["data"]["status"] == "healthy"
        assert body["data"]["models_loaded"] == 0

    def test_root_lists_endpoints(self, client):
        body = client.get("/").json()

        assert body["endpoints"]["generate"] == "/markov/generate"


class TestTrainEndpoint:
    """Test suite for POST /markov/train."""

    def test_train_returns_stats(self, client):
        response = _train(client)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["model"] == "default"
        assert data["order"] == 1
        assert data["stats"] == {"state_count": 2, "average_branching_factor": 1.0}
        assert "default" in MODEL_CACHE

    def test_retrain_with_new_order_replaces_model(self, client):
        _train(client, order=1)
        response = _train(client, text="abcabc", order=2)

        assert response.status_code == 200
        assert response.json()["data"]["order"] == 2
        assert MODEL_CACHE["default"].model.order == 2

    def test_whitespace_text_rejected(self, client):
        response = _train(client, text="   \n ")

        assert response.status_code == 400
        body = response.json()
        assert body["ok"] is False
        assert body["error"]["code"] == "INVALID_INPUT"

    def test_text_too_short_rejected(self, client):
        response = _train(client, text="ab", order=2)

        assert response.status_code == 400
        assert "default" not in MODEL_CACHE

    def test_failed_train_keeps_previous_model(self, client):
        _train(client, text="abab", order=1)
        response = _train(client, text="x", order=1)

        assert response.status_code == 400
        assert MODEL_CACHE["default"].model.transitions == {"a": {"b": 2}, "b": {"a": 1}}

    @pytest.mark.parametrize("order", [0, -2, settings.MAX_ORDER + 1])
    def test_order_out_of_range(self, client, order):
        assert _train(client, order=order).status_code == 422

    def test_unknown_mode(self, client):
        assert _train(client, mode="sentence").status_code == 422

    def test_model_limit(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_MODELS", 1)
        _train(client, model_name="first")

        response = _train(client, model_name="second")

        assert response.status_code == 429
        # retraining an existing model is still allowed
        assert _train(client, model_name="first").status_code == 200


class TestUploadEndpoint:
    """Test suite for POST /markov/train/upload."""

    def test_upload_txt(self, client):
        response = client.post(
            "/markov/train/upload",
            files={"file": ("corpus.txt", "the cat sat on the mat".encode("utf-8"), "text/plain")},
            data={"order": "1", "mode": "word", "model_name": "uploaded"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["model"] == "uploaded"
        assert data["mode"] == "word"
        assert data["stats"]["state_count"] == 4

    def test_non_txt_rejected(self, client):
        response = client.post(
            "/markov/train/upload",
            files={"file": ("corpus.pdf", b"abab", "application/pdf")},
        )

        assert response.status_code == 400

    def test_invalid_utf8_rejected(self, client):
        response = client.post(
            "/markov/train/upload",
            files={"file": ("corpus.txt", b"\xff\xfe\xfa", "text/plain")},
        )

        assert response.status_code == 400

    def test_oversized_upload_rejected(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)
        response = client.post(
            "/markov/train/upload",
            files={"file": ("corpus.txt", b"ababab", "text/plain")},
        )

        assert response.status_code == 413
        assert "default" not in MODEL_CACHE


class TestGenerateEndpoint:
    """Test suite for POST /markov/generate."""

    def test_generate_after_train(self, client):
        _train(client)
        response = client.post(
            "/markov/generate",
            json={"length": 3, "mode": "char", "temperature": 1.0},
        )

        assert response.status_code == 200
        assert response.json()["data"]["text"] == "abab"

    def test_generate_unknown_model(self, client):
        response = client.post("/markov/generate", json={"model_name": "nope"})

        assert response.status_code == 404

    def test_generate_auto_trains_from_text(self, client):
        """Test a missing model is trained from the request text first."""
        response = client.post(
            "/markov/generate",
            json={"text": "abc", "order": 1, "length": 10, "mode": "char"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["text"] == "abc"
        assert MODEL_CACHE["default"].model.is_trained

    def test_generate_after_clear_is_not_trained(self, client):
        _train(client)
        client.post("/markov/models/default/clear")

        response = client.post("/markov/generate", json={"length": 3})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NOT_TRAINED"

    def test_generate_after_clear_with_text_retrains(self, client):
        _train(client)
        client.post("/markov/models/default/clear")

        response = client.post(
            "/markov/generate",
            json={"text": "xyxy", "order": 1, "length": 3, "mode": "char"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["text"] == "xyxy"

    @pytest.mark.parametrize(
        "payload",
        [{"temperature": -0.1}, {"length": -1}, {"length": settings.MAX_GENERATE_LENGTH + 1}],
    )
    def test_invalid_generate_params(self, client, payload):
        _train(client)

        assert client.post("/markov/generate", json=payload).status_code == 422

    def test_zero_temperature(self, client):
        _train(client, text="a b a b a c a b", mode="word")
        response = client.post(
            "/markov/generate",
            json={"length": 6, "mode": "word", "temperature": 0},
        )

        tokens = response.json()["data"]["text"].split(" ")
        for prev, nxt in zip(tokens, tokens[1:]):
            if prev == "a":
                assert nxt == "b"


class TestModelEndpoints:
    """Test suite for stats, clear, list and delete."""

    def test_stats(self, client):
        _train(client)
        data = client.get("/markov/models/default/stats").json()["data"]

        assert data["trained"] is True
        assert data["stats"]["state_count"] == 2

    def test_stats_unknown_model(self, client):
        assert client.get("/markov/models/ghost/stats").status_code == 404

    def test_clear(self, client):
        _train(client)
        response = client.post("/markov/models/default/clear")

        assert response.status_code == 200
        assert response.json()["data"]["stats"] == {
            "state_count": 0,
            "average_branching_factor": 0.0,
        }

    def test_list_models(self, client):
        _train(client, model_name="one")
        _train(client, model_name="two", order=2)

        models = client.get("/markov/models").json()["data"]["models"]

        assert {m["name"] for m in models} == {"one", "two"}

    def test_delete(self, client):
        _train(client)

        assert client.delete("/markov/models/default").status_code == 200
        assert client.get("/markov/models/default/stats").status_code == 404


class TestModelRegistry:
    """Test suite for concurrent training against the shared model cache."""

    @pytest.fixture(autouse=True)
    def empty_cache(self):
        MODEL_CACHE.clear()
        yield
        MODEL_CACHE.clear()

    @staticmethod
    def _gather(*calls):
        async def run():
            return await asyncio.gather(*calls, return_exceptions=True)
        return asyncio.run(run())

    def test_concurrent_new_models_respect_limit(self, monkeypatch):
        """Test two first-time trainings cannot both slip under the model limit."""
        monkeypatch.setattr(settings, "MAX_MODELS", 1)

        first, second = self._gather(
            train_model("one", "abab", 1, "char"),
            train_model("two", "abab", 1, "char"),
        )

        assert list(MODEL_CACHE) == ["one"]
        assert first is MODEL_CACHE["one"]
        assert isinstance(second, HTTPException)
        assert second.status_code == 429

    def test_concurrent_same_name_shares_one_entry(self):
        """Test same-name trainings share an entry and run one after the other."""
        first, second = self._gather(
            train_model("x", "abab", 1, "char"),
            train_model("x", "xyxy", 1, "char"),
        )

        assert first is second
        assert first is MODEL_CACHE["x"]
        assert first.model.transitions == {"x": {"y": 2}, "y": {"x": 1}}

    def test_failed_first_training_drops_placeholder(self):
        """Test a rejected first training leaves no entry behind."""
        (result,) = self._gather(train_model("bad", "a", 1, "char"))

        assert isinstance(result, InvalidInput)
        assert "bad" not in MODEL_CACHE

    def test_failed_placeholder_owner_keeps_concurrent_success(self):
        """Test a same-name training that succeeds stays registered after the first one fails."""
        failed, entry = self._gather(
            train_model("x", "a", 1, "char"),
            train_model("x", "abab", 1, "char"),
        )

        assert isinstance(failed, InvalidInput)
        assert MODEL_CACHE["x"] is entry
        assert entry.model.is_trained

    def test_returned_entry_survives_delete(self):
        """Test the caller keeps a usable entry even if the name is deleted afterwards."""
        (entry,) = self._gather(train_model("gone", "abab", 1, "char"))
        MODEL_CACHE.pop("gone")

        assert entry.model.generate(3, "char", 0) in ("abab", "baba")
