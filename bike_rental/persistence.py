"""
Guardado y carga del modelo seleccionado junto con el esquema de entrada.

El artefacto es un único .pkl; al lado se escribe <nombre>.metadata.json con métricas y esquema.
"""
import json
import logging
import math
import os
import pickle
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from bike_rental.data import ColumnSpec
from bike_rental.errors import PersistError

logger = logging.getLogger(__name__)


@dataclass
class ModelArtifact:
    pipeline: object
    schema: List[ColumnSpec]
    model_name: str


def metadata_path_for(model_path) -> str:
    stem, _ = os.path.splitext(str(model_path))
    return f"{stem}.metadata.json"


def _json_safe(value):
    """Reemplaza floats no finitos (NaN, inf) por None para que la metadata sea JSON estricto."""
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def save_model(pipeline, schema, model_path, model_name, report=None, feature_names=None, extra=None) -> str:
    """
    Serializa pipeline + esquema en model_path y escribe la metadata JSON.

    Returns:
        str: ruta del artefacto.
    Raises:
        PersistError: si no se puede escribir alguno de los dos archivos.
    """
    payload = {
        "pipeline": pipeline,
        "schema": [c.to_dict() for c in schema],
        "model_name": model_name,
    }
    meta = {
        "name": model_name,
        "metrics": report.to_dict() if report is not None else None,
        "schema": payload["schema"],
        "features": list(feature_names or []),
        "saved_at": datetime.now().isoformat(timespec="seconds"),
    }
    if extra:
        meta.update(extra)

    try:
        directory = os.path.dirname(str(model_path))
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(model_path, "wb") as f:
            pickle.dump(payload, f)
        with open(metadata_path_for(model_path), "w", encoding="utf-8") as f:
            json.dump(_json_safe(meta), f, indent=2, ensure_ascii=False, allow_nan=False)
    except (OSError, pickle.PicklingError, TypeError, ValueError) as exc:
        raise PersistError(f"No se pudo guardar el modelo en {model_path}: {exc}") from exc

    logger.info("Modelo '%s' guardado en %s", model_name, model_path)
    return str(model_path)


def load_model(model_path) -> ModelArtifact:
    """Carga un artefacto guardado con save_model()."""
    if not os.path.exists(model_path):
        raise PersistError(
            f"Modelo no encontrado en {model_path}. Ejecuta la etapa 'train' o actualiza MODEL_PATH."
        )
    try:
        with open(model_path, "rb") as f:
            payload = pickle.load(f)
        return ModelArtifact(
            pipeline=payload["pipeline"],
            schema=[ColumnSpec.from_dict(c) for c in payload["schema"]],
            model_name=payload["model_name"],
        )
    except (OSError, pickle.UnpicklingError, EOFError, KeyError, TypeError) as exc:
        raise PersistError(f"Artefacto inválido en {model_path}: {exc}") from exc


def load_metadata(model_path) -> Optional[dict]:
    path = metadata_path_for(model_path)
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
