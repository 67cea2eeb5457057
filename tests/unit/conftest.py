import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pandas as pd
import pytest
from unittest.mock import MagicMock, patch

from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.linear_model import LogisticRegression

from bike_rental.config import PipelineConfig
from bike_rental.data import CAT_COLS, NUM_COLS, DataLoader, DataProcessor
from bike_rental.train_predict import MetricReport

HEADER = "Season,Month,Hour,Holiday,Weekday,WorkingDay,WeatherCondition,Temperature,Humidity,Windspeed,RentalType"


class FixedProbabilityClassifier(ClassifierMixin, BaseEstimator):
    """Clasificador determinista: misma probabilidad positiva para cualquier entrada."""

    def __init__(self, probability=0.5):
        self.probability = probability

    def fit(self, X, y):
        self.classes_ = np.array([0, 1])
        return self

    def predict_proba(self, X):
        n = len(X)
        return np.column_stack([np.full(n, 1 - self.probability), np.full(n, self.probability)])

    def predict(self, X):
        return (self.predict_proba(X)[:, 1] >= 0.5).astype(int)


class FailingClassifier(ClassifierMixin, BaseEstimator):
    def fit(self, X, y):
        raise ValueError("This solver needs samples of at least 2 classes in the data")


class FakeCandidate:
    """Candidato con .name y .fit que retorna el propio objeto; opcionalmente falla."""

    def __init__(self, name, fail=False):
        self.name = name
        self.fail = fail
        self.fit_calls = 0

    def fit(self, X, y):
        self.fit_calls += 1
        if self.fail:
            raise ValueError(f"{self.name} no pudo entrenar")
        return self


class FakeEvaluator:
    """Retorna un F1 prefijado por nombre de candidato."""

    def __init__(self, f1_by_name):
        self.f1_by_name = f1_by_name

    def evaluate(self, model, X_test, y_test):
        f1 = self.f1_by_name[model.name]
        return MetricReport(auc=0.5, f1=f1, accuracy=f1, precision=f1, recall=f1)


def make_rows():
    """10 filas con separación clara por estación: estaciones 3 y 4 son Long-Term."""
    return [
        [1, 1, 8, 0, 1, 1, 1, 5.0, 80, 10, "False"],
        [1, 2, 9, 0, 2, 1, 2, 6.5, 75, 12, "False"],
        [2, 4, 10, 0, 3, 1, 1, 12.0, 60, 8, "False"],
        [2, 5, 17, 1, 0, 0, 2, 15.0, 55, 20, "False"],
        [1, 3, 7, 0, 4, 1, 3, 8.0, 90, 25, "False"],
        [3, 7, 12, 0, 6, 0, 1, 28.0, 40, 5, "True"],
        [3, 8, 14, 0, 5, 1, 1, 30.5, 35, 7, "True"],
        [4, 10, 11, 0, 6, 0, 2, 18.0, 65, 15, "True"],
        [4, 11, 13, 1, 0, 0, 1, 14.0, 70, 18, "True"],
        [3, 6, 15, 0, 2, 1, 1, 25.0, 45, 9, "True"],
    ]


def write_csv(path, rows, header=HEADER):
    lines = [header] + [",".join(str(v) for v in row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def sample_rows():
    return make_rows()


@pytest.fixture
def sample_csv(tmp_path, sample_rows):
    """Escribe las filas de ejemplo en un CSV temporal y retorna la ruta."""
    return write_csv(tmp_path / "bike_sharing.csv", sample_rows)


@pytest.fixture
def large_csv(tmp_path):
    """40 filas (el ejemplo repetido con ruido leve) para entrenar modelos reales."""
    rows = []
    for i in range(4):
        for row in make_rows():
            row = list(row)
            row[7] = round(row[7] + i * 0.5, 2)
            row[8] = row[8] + i
            rows.append(row)
    return write_csv(tmp_path / "bike_sharing_large.csv", rows)


@pytest.fixture
def feature_frame():
    return pd.DataFrame(
        {
            "season": [1.0, 2.0, 3.0, 4.0],
            "mnth": [1.0, 4.0, 7.0, 10.0],
            "hr": [0.0, 6.0, 12.0, 23.0],
            "holiday": [0.0, 0.0, 1.0, 0.0],
            "weekday": [0.0, 2.0, 4.0, 6.0],
            "workingday": [0.0, 1.0, 1.0, 0.0],
            "weathersit": [1.0, 2.0, 1.0, 3.0],
            "temp": [5.0, 12.0, 30.0, 18.0],
            "hum": [80.0, 60.0, 40.0, 65.0],
            "windspeed": [10.0, 8.0, 5.0, 15.0],
        }
    )


@pytest.fixture
def data_processor():
    return DataProcessor(categorical_var_cols=CAT_COLS, numerical_var_cols=NUM_COLS)


@pytest.fixture
def linear_model():
    return LogisticRegression(max_iter=1000)


@pytest.fixture
def fake_model_configs():
    """El primero siempre predice Long-Term y nunca puede perder (a lo sumo empata)."""
    return {
        "AlwaysLong": {"estimator": FixedProbabilityClassifier(probability=0.8123456), "params": {}},
        "Broken": {"estimator": FailingClassifier(), "params": {}},
        "AlwaysShort": {"estimator": FixedProbabilityClassifier(probability=0.2), "params": {}},
    }


@pytest.fixture
def light_model_configs():
    return {
        "LogisticRegression": {
            "estimator": LogisticRegression(max_iter=1000),
            "params": {},
            "description": "Ligero para tests",
        }
    }


@pytest.fixture
def pipeline_config(tmp_path):
    return PipelineConfig(
        model_path=str(tmp_path / "models" / "BikeModel.pkl"),
        reports_dir=str(tmp_path / "reports"),
        test_size=0.2,
        random_state=0,
        cv=2,
    )


@pytest.fixture
def mock_mlflow():
    with patch("bike_rental.main.mlflow.start_run") as start_run, patch(
        "bike_rental.main.mlflow.log_params"
    ) as log_params, patch(
        "bike_rental.main.mlflow.log_metrics"
    ) as log_metrics, patch(
        "bike_rental.main.mlflow.log_artifact"
    ) as log_artifact:
        start_run.return_value.__enter__.return_value = MagicMock()
        yield {
            "start_run": start_run,
            "log_params": log_params,
            "log_metrics": log_metrics,
            "log_artifact": log_artifact,
        }


@pytest.fixture
def engineered_split(large_csv):
    """Features ya transformadas (train/test) a partir de large_csv, más el preprocesador ajustado."""
    dl = DataLoader(large_csv)
    X_train, X_test, y_train, y_test = dl.split(dl.load(), test_size=0.25, random_state=0)
    processor = DataProcessor(categorical_var_cols=CAT_COLS, numerical_var_cols=NUM_COLS)
    preprocessor = processor.fit(X_train)
    return {
        "X_train": X_train,
        "X_test": X_test,
        "Xt_train": processor.transform(X_train),
        "Xt_test": processor.transform(X_test),
        "y_train": y_train.astype(int),
        "y_test": y_test.astype(int),
        "preprocessor": preprocessor,
    }
