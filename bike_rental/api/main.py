"""
FastAPI application exposing the selected rental type model.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path

from fastapi import FastAPI, HTTPException

from bike_rental.errors import PersistError, SchemaError
from bike_rental.persistence import ModelArtifact, load_model
from bike_rental.train_predict import Predictor

from .schemas import PredictionResponse, RentalRecord

logger = logging.getLogger(__name__)

# Este archivo está en: bike_rental/api/main.py
# La raíz del repo está 2 niveles arriba
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_MODEL_PATH = BASE_DIR / "models" / "BikeModel.pkl"


def get_model_path() -> Path:
    return Path(os.getenv("MODEL_PATH", str(DEFAULT_MODEL_PATH)))


@lru_cache(maxsize=None)
def get_artifact(model_path: Path) -> ModelArtifact:
    """Cachea artefactos por ruta para no recargarlos en cada request."""
    return load_model(model_path)


app = FastAPI(
    title="Bike Rental Type Predictor",
    version="1.0.0",
    description="Servicio FastAPI para inferencia con el mejor modelo entrenado.",
)


@app.on_event("startup")
def warmup_model():
    """Carga el modelo al iniciar; si falta sólo se registra un warning."""
    try:
        get_artifact(get_model_path())
        logger.info("[warmup] Modelo cargado desde: %s", get_model_path())
    except PersistError as e:
        logger.warning("[warmup] %s", e)


@app.get("/", summary="Healthcheck")
def healthcheck():
    return {
        "message": "Bike Rental API lista.",
        "model_path": str(get_model_path()),
        "docs": "/docs",
    }


@app.post("/predict", response_model=PredictionResponse, summary="Predice el tipo de renta")
def predict(record: RentalRecord):
    try:
        artifact = get_artifact(get_model_path())
    except PersistError as e:
        raise HTTPException(status_code=503, detail=str(e))

    try:
        prediction = Predictor(artifact.pipeline).predict(record)
    except (SchemaError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Error en inferencia: {exc}") from exc

    return PredictionResponse(
        rental_type=prediction.rental_type,
        label=prediction.label,
        probability=prediction.probability,
        score=prediction.score,
        model_name=artifact.model_name,
    )
