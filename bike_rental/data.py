"""
Carga, partición y preprocesamiento del dataset de renta de bicicletas.
Clases incluidas: ColumnSpec, DataLoader, MinMaxClipScaler, DataProcessor.
"""
import logging
import math
import os
from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.compose import ColumnTransformer
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import OneHotEncoder
from sklearn.utils.validation import check_is_fitted

from bike_rental.errors import LoadError, SchemaError, SplitError

logger = logging.getLogger(__name__)

SUPPORTED_DTYPES = ("float", "bool")


@dataclass(frozen=True)
class ColumnSpec:
    """Una columna del CSV de entrada: nombre, posición y tipo declarado."""

    name: str
    position: int
    dtype: str = "float"

    def to_dict(self):
        return {"name": self.name, "position": self.position, "dtype": self.dtype}

    @classmethod
    def from_dict(cls, payload):
        return cls(name=payload["name"], position=int(payload["position"]), dtype=payload["dtype"])


BIKE_RENTAL_SCHEMA: List[ColumnSpec] = [
    ColumnSpec("season", 0),
    ColumnSpec("mnth", 1),
    ColumnSpec("hr", 2),
    ColumnSpec("holiday", 3),
    ColumnSpec("weekday", 4),
    ColumnSpec("workingday", 5),
    ColumnSpec("weathersit", 6),
    ColumnSpec("temp", 7),
    ColumnSpec("hum", 8),
    ColumnSpec("windspeed", 9),
    ColumnSpec("rental_type", 10, "bool"),
]

TARGET_COL = "rental_type"
CAT_COLS = ["season", "weathersit"]
NUM_COLS = ["mnth", "hr", "workingday", "weekday", "holiday", "temp", "hum", "windspeed"]

DEFAULT_TRUE_VALUES = ("true", "1")
DEFAULT_FALSE_VALUES = ("false", "0")


def validate_schema(schema: Iterable[ColumnSpec]) -> List[ColumnSpec]:
    """
    Verifica que el esquema sea utilizable y lo retorna ordenado por posición.

    Raises:
        SchemaError: nombres duplicados, posiciones que no sean 0..n-1 o tipo desconocido.
    """
    columns = sorted(schema, key=lambda c: c.position)
    if not columns:
        raise SchemaError("El esquema no tiene columnas.")

    names = [c.name for c in columns]
    if len(set(names)) != len(names):
        raise SchemaError(f"Nombres de columna duplicados en el esquema: {names}")

    positions = [c.position for c in columns]
    if positions != list(range(len(columns))):
        raise SchemaError(f"Las posiciones deben ser 0..{len(columns) - 1}, se obtuvo {positions}")

    for col in columns:
        if col.dtype not in SUPPORTED_DTYPES:
            raise SchemaError(f"Tipo '{col.dtype}' no soportado para '{col.name}'. Usa {SUPPORTED_DTYPES}.")
    return columns


class DataLoader:
    """Carga y particiona datos desde CSV.

    Atributos:
        data_path: Ruta al archivo CSV (con encabezado).
        schema: Lista de ColumnSpec que define nombre, posición y tipo de cada columna.
        target_col: Nombre de la variable objetivo.
        true_values / false_values: Lexemas aceptados para columnas booleanas.
    """
    def __init__(
        self,
        data_path,
        schema: Optional[List[ColumnSpec]] = None,
        target_col: str = TARGET_COL,
        true_values: Iterable[str] = DEFAULT_TRUE_VALUES,
        false_values: Iterable[str] = DEFAULT_FALSE_VALUES,
    ):
        self.data_path = data_path
        self.schema = validate_schema(schema or BIKE_RENTAL_SCHEMA)
        self.target_col = target_col
        self.true_values = {v.lower() for v in true_values}
        self.false_values = {v.lower() for v in false_values}

        if self.target_col not in [c.name for c in self.schema]:
            raise SchemaError(f"Target '{self.target_col}' no existe en el esquema.")

    def load(self) -> pd.DataFrame:
        """Lee el CSV y retorna un DataFrame tipado, una fila por línea de datos y en orden.

        Returns:
            pd.DataFrame: columnas nombradas según el esquema.

        Raises:
            LoadError: archivo inexistente, filas con columnas de más/de menos o valores no parseables.
            SchemaError: el encabezado no tiene el número de columnas del esquema.
        """
        if not os.path.exists(self.data_path):
            raise LoadError(f"Archivo no encontrado: {self.data_path}")

        bad_rows = []
        try:
            raw = pd.read_csv(
                self.data_path,
                dtype=str,
                na_filter=False,
                skipinitialspace=True,
                engine="python",
                on_bad_lines=lambda fields: bad_rows.append(fields),
            )
        except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
            raise LoadError(f"No se pudo leer {self.data_path}: {exc}") from exc

        if bad_rows:
            raise LoadError(
                f"{len(bad_rows)} fila(s) con número de columnas incorrecto "
                f"(se esperaban {len(self.schema)}): {bad_rows[0]}"
            )
        if raw.shape[1] != len(self.schema):
            raise SchemaError(
                f"El encabezado tiene {raw.shape[1]} columnas y el esquema {len(self.schema)}: {list(raw.columns)}"
            )

        # Filas cortas quedan con NaN al final (na_filter=False conserva "" para campos vacíos)
        short = raw.isna().any(axis=1)
        if short.any():
            line = int(short.idxmax()) + 2
            raise LoadError(f"Línea {line}: número de columnas incorrecto (se esperaban {len(self.schema)}).")

        df = pd.DataFrame(index=raw.index)
        for col in self.schema:
            values = raw.iloc[:, col.position].str.strip()
            if col.dtype == "bool":
                df[col.name] = self._parse_bool(values, col.name)
            else:
                df[col.name] = self._parse_float(values, col.name)

        logger.info("Cargadas %d filas desde %s", len(df), self.data_path)
        return df.reset_index(drop=True)

    def _parse_float(self, values: pd.Series, name: str) -> pd.Series:
        parsed = pd.to_numeric(values, errors="coerce").astype("float64")
        # inf/-inf también se rechazan: rompen el escalado min-max
        invalid = ~np.isfinite(parsed)
        if invalid.any():
            idx = int(invalid.idxmax())
            raise LoadError(f"Línea {idx + 2}: valor '{values[idx]}' no es numérico finito en columna '{name}'.")
        return parsed.astype("float64")

    def _parse_bool(self, values: pd.Series, name: str) -> pd.Series:
        lowered = values.str.lower()
        invalid = ~lowered.isin(self.true_values | self.false_values)
        if invalid.any():
            idx = int(invalid.idxmax())
            raise LoadError(f"Línea {idx + 2}: valor '{values[idx]}' no es booleano en columna '{name}'.")
        return lowered.isin(self.true_values)

    def split(
        self,
        df: pd.DataFrame,
        test_size: float = 0.2,
        random_state: int = 0,
    ):
        """Divide en conjuntos de entrenamiento y prueba.

        La asignación es un barajado con semilla de las posiciones de fila, así que para
        la misma semilla y el mismo orden de entrada la partición es idéntica.
        El conjunto de prueba tiene ceil(test_size * n) filas.

        Args:
            df: DataFrame completo.
            test_size: Proporción para el conjunto de prueba, en (0, 1).
            random_state: Semilla de aleatoriedad.

        Returns:
            X_train, X_test, y_train, y_test
        """
        if not 0.0 < test_size < 1.0:
            raise SplitError(f"test_size debe estar en (0, 1), se obtuvo {test_size}")

        n_test = math.ceil(test_size * len(df))
        if n_test == 0 or n_test >= len(df):
            raise SplitError(
                f"No se puede particionar {len(df)} filas con test_size={test_size}: un conjunto quedaría vacío."
            )

        X = df.drop(columns=[self.target_col])
        y = df[self.target_col]

        X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=test_size, random_state=random_state)
        logger.info("Split (test_size=%s): train=%d, test=%d", test_size, len(X_train), len(X_test))

        return X_train, X_test, y_train, y_test


class MinMaxClipScaler(TransformerMixin, BaseEstimator):
    """Escalado min-max aprendido en train y recortado a [0, 1].

    Si una columna es constante en train (max == min) su valor escalado es 0 para cualquier entrada.
    """

    def fit(self, X, y=None):
        if hasattr(X, "columns"):
            self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        values = np.asarray(X, dtype=float)
        self.n_features_in_ = values.shape[1]
        self.data_min_ = values.min(axis=0)
        self.data_max_ = values.max(axis=0)
        return self

    def transform(self, X):
        check_is_fitted(self, ["data_min_", "data_max_"])
        values = np.asarray(X, dtype=float)
        data_range = self.data_max_ - self.data_min_
        constant = data_range == 0
        safe_range = np.where(constant, 1.0, data_range)
        scaled = (values - self.data_min_) / safe_range
        scaled[:, constant] = 0.0
        return np.clip(scaled, 0.0, 1.0)

    def get_feature_names_out(self, input_features=None):
        if input_features is None:
            input_features = getattr(
                self, "feature_names_in_", [f"x{i}" for i in range(self.n_features_in_)]
            )
        return np.asarray(input_features, dtype=object)


class DataProcessor:
    """Crea y aplica transformaciones (one-hot de categóricas + min-max de numéricas).

    Atributos:
    categorical_var_cols: Columnas categóricas (bloques one-hot, en este orden).
    numerical_var_cols: Columnas numéricas (escaladas, en este orden, después de las categóricas).
    column_transformer: Transformador de columnas (se construye con build()).
    """

    def __init__(self, categorical_var_cols=None, numerical_var_cols=None):
        self.categorical_var_cols = list(categorical_var_cols or CAT_COLS)
        self.numerical_var_cols = list(numerical_var_cols or NUM_COLS)
        self.column_transformer = None
        self.is_fitted = False

    def build(self):
        """
        Construir el preprocesamiento usando ColumnTransformer.

        Returns:
            ColumnTransformer: sin ajustar. Orden de salida: one-hot categóricas, numéricas escaladas.
        """
        # Categorías no vistas en train producen un bloque de ceros
        categorical_encoder = OneHotEncoder(sparse_output=False, handle_unknown="ignore")

        self.column_transformer = ColumnTransformer(
            transformers=[
                ("cat", categorical_encoder, self.categorical_var_cols),
                ("num", MinMaxClipScaler(), self.numerical_var_cols),
            ],
            remainder="drop",
        )
        self.is_fitted = False
        return self.column_transformer

    def fit(self, X_train):
        """Aprende categorías y min/max sólo del conjunto de entrenamiento."""
        if self.column_transformer is None:
            self.build()
        missing = [c for c in self.categorical_var_cols + self.numerical_var_cols if c not in X_train.columns]
        if missing:
            raise SchemaError(f"Faltan columnas para el preprocesamiento: {missing}")

        self.column_transformer.fit(X_train)
        self.is_fitted = True
        return self.column_transformer

    def transform(self, df):
        """Aplica el transformador ya ajustado a df y retorna la matriz transformada."""
        if not self.is_fitted:
            raise RuntimeError("El preprocesador no ha sido ajustado. Llama a fit() primero.")
        return self.column_transformer.transform(df)

    def feature_names(self) -> List[str]:
        if not self.is_fitted:
            raise RuntimeError("El preprocesador no ha sido ajustado. Llama a fit() primero.")
        return [str(name) for name in self.column_transformer.get_feature_names_out()]
