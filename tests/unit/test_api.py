import pytest
from fastapi.testclient import TestClient

from bike_rental.api import main as api_main
from bike_rental.main import DEFAULT_SAMPLE, Orchestrator


@pytest.fixture
def client(monkeypatch, tmp_path):
    api_main.get_artifact.cache_clear()
    monkeypatch.setenv("MODEL_PATH", str(tmp_path / "models" / "BikeModel.pkl"))
    yield TestClient(api_main.app)
    api_main.get_artifact.cache_clear()


def test_healthcheck(client, tmp_path):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["model_path"].endswith("BikeModel.pkl")


def test_predict_without_model_returns_503(client):
    response = client.post("/predict", json=DEFAULT_SAMPLE)

    assert response.status_code == 503


def test_predict_with_trained_model(client, pipeline_config, light_model_configs, large_csv):
    summary = Orchestrator(config=pipeline_config, model_configs=light_model_configs).stage_train(
        csv_path=str(large_csv)
    )

    response = client.post("/predict", json=DEFAULT_SAMPLE)

    assert response.status_code == 200
    body = response.json()
    assert body["model_name"] == "LogisticRegression"
    assert body["label"] == summary["prediction"].label
    assert body["probability"] == pytest.approx(summary["prediction"].probability)
    assert body["rental_type"] in ("Long-Term", "Short-term")


def test_predict_rejects_out_of_range_payload(client):
    payload = dict(DEFAULT_SAMPLE, season=7)

    response = client.post("/predict", json=payload)

    assert response.status_code == 422
