"""
Configuración del pipeline: valores por defecto + variables de entorno (.env).
"""
import os
from dataclasses import dataclass, fields
from typing import Optional

from bike_rental.errors import ConfigError


@dataclass
class PipelineConfig:
    """Parámetros de ejecución del pipeline de tipo de renta."""

    data_path: str = "data/raw/bike_sharing.csv"
    model_path: str = "models/BikeModel.pkl"
    reports_dir: str = "reports"
    test_size: float = 0.2
    random_state: int = 0
    cv: int = 3
    tracking_uri: str = "sqlite:///mlflow.db"
    experiment_name: str = "bike_rental_type"

    @classmethod
    def from_env(cls, prefix: str = "BIKE_RENTAL_") -> "PipelineConfig":
        """
        Construye la configuración leyendo variables de entorno.

        Cada campo se busca como <prefix><CAMPO> (p.ej. BIKE_RENTAL_TEST_SIZE).
        El tracking URI también acepta MLFLOW_TRACKING_URI.

        Raises:
            ConfigError: si un campo numérico no se puede convertir.
        """
        values = {}
        for f in fields(cls):
            raw = os.getenv(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            if f.type in (int, float):
                try:
                    values[f.name] = f.type(raw)
                except ValueError as exc:
                    raise ConfigError(f"{prefix}{f.name.upper()}='{raw}' no es un {f.type.__name__} válido.") from exc
            else:
                values[f.name] = raw

        tracking_uri = os.getenv("MLFLOW_TRACKING_URI")
        if tracking_uri and "tracking_uri" not in values:
            values["tracking_uri"] = tracking_uri
        return cls(**values)

    def override(self, **kwargs: Optional[object]) -> "PipelineConfig":
        """Retorna una copia con los valores no nulos de kwargs (flags del CLI)."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update({k: v for k, v in kwargs.items() if v is not None and k in current})
        return PipelineConfig(**current)
