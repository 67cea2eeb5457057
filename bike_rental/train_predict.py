"""
Entrenamiento, evaluación, selección del mejor candidato e inferencia.
Clases incluidas: Model, MetricReport, Evaluator, ModelSelector, Prediction, Predictor.
"""
import logging
import time
from dataclasses import asdict, dataclass, field
from functools import reduce
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from sklearn.base import clone
from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score, roc_auc_score
from sklearn.model_selection import GridSearchCV
from sklearn.pipeline import Pipeline

from bike_rental.errors import FitError, SchemaError, SelectionError

logger = logging.getLogger(__name__)


class Model:
    """
    Un candidato: estimador de la librería + grilla de hiperparámetros opcional.
    Se entrena sobre features ya transformadas; el preprocesador se agrega con to_pipeline().
    """

    def __init__(self, name, estimator, param_grid=None, description="", cv=3, scoring="f1"):
        self.name = name
        self.estimator = estimator
        self.param_grid = param_grid or {}
        self.description = description
        self.cv = cv
        self.scoring = scoring

        self.grid_search_ = None
        self.best_estimator_ = None
        self.best_params_ = None
        self.cv_best_score_ = None
        self.train_time_seconds_ = None

    def fit(self, X_train, y_train, cv=None, n_jobs=None, verbose=0):
        """Entrena el estimador. Con grilla usa GridSearchCV; sin grilla ajusta directamente."""
        t0 = time.time()
        if self.param_grid:
            self.grid_search_ = GridSearchCV(
                clone(self.estimator),
                self.param_grid,
                cv=cv or self.cv,
                scoring=self.scoring,
                n_jobs=n_jobs,
                verbose=verbose,
                error_score="raise",
            )
            self.grid_search_.fit(X_train, y_train)
            self.best_estimator_ = self.grid_search_.best_estimator_
            self.best_params_ = self.grid_search_.best_params_
            self.cv_best_score_ = float(self.grid_search_.best_score_)
        else:
            self.best_estimator_ = clone(self.estimator).fit(X_train, y_train)
            self.best_params_ = {}
        self.train_time_seconds_ = time.time() - t0
        logger.debug("%s entrenado en %.2fs (params=%s)", self.name, self.train_time_seconds_, self.best_params_)
        return self

    def predict(self, X):
        """Predice con el mejor estimador."""
        if self.best_estimator_ is None:
            raise RuntimeError("El modelo no ha sido entrenado. Llama a fit() primero.")
        return self.best_estimator_.predict(X)

    def predict_proba(self, X):
        if self.best_estimator_ is None:
            raise RuntimeError("El modelo no ha sido entrenado. Llama a fit() primero.")
        return self.best_estimator_.predict_proba(X)

    def get_best_params(self):
        """
        Retorna los mejores hiperparámetros encontrados tras el entrenamiento.
        Returns:
            dict: Diccionario con los mejores hiperparámetros.
        """
        if self.best_params_ is None:
            raise RuntimeError("El modelo aún no ha sido entrenado o no se encontraron mejores parámetros.")
        return self.best_params_

    def to_pipeline(self, preprocessor):
        """Crea: preprocessor (ya ajustado) -> mejor estimador."""
        return build_inference_pipeline(preprocessor, self)


def build_inference_pipeline(preprocessor, fitted_model) -> Pipeline:
    """Une el preprocesador ajustado con el modelo ajustado en un único Pipeline de sklearn."""
    estimator = getattr(fitted_model, "best_estimator_", None)
    if estimator is None:
        estimator = fitted_model
    return Pipeline([
        ("preprocessor", preprocessor),
        ("model", estimator),
    ])


def positive_class_index(estimator) -> int:
    """Índice de la clase positiva (True/1) en predict_proba."""
    classes = list(getattr(estimator, "classes_", [False, True]))
    if 1 not in classes:
        raise ValueError(f"El modelo no conoce la clase positiva: classes_={classes}")
    return classes.index(1)


@dataclass(frozen=True)
class MetricReport:
    """Métricas de un candidato sobre el conjunto de prueba."""

    auc: float
    f1: float
    accuracy: float
    precision: float
    recall: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    def format_line(self, name: str) -> str:
        return f"{name}: AUC = {self.auc:.2%}, F1 = {self.f1:.2%}"


class Evaluator:
    """
    Evalúa métricas de clasificación binaria sobre el conjunto de prueba.
    Soporta:
      - La clase Model (con atributo .best_estimator_)
      - Estimadores/pipelines de sklearn ya entrenados (con .predict y .predict_proba)
    """

    def evaluate(self, model_or_pipeline, X_test, y_test) -> MetricReport:
        """
        Calcula AUC, F1, accuracy, precision y recall.
        Args:
            model_or_pipeline: Model o estimador sklearn ya entrenado.
            X_test (pd.DataFrame or np.ndarray)
            y_test (pd.Series or np.ndarray), booleano o 0/1
        Returns:
            MetricReport
        """
        predictor = getattr(model_or_pipeline, "best_estimator_", None)
        if predictor is None:
            predictor = model_or_pipeline

        y_true = np.asarray(y_test).astype(int)
        y_pred = np.asarray(predictor.predict(X_test)).astype(int)
        y_score = predictor.predict_proba(X_test)[:, positive_class_index(predictor)]

        if len(np.unique(y_true)) < 2:
            # AUC no está definida con una sola clase en test; no interviene en la selección
            logger.warning("Conjunto de prueba con una sola clase; AUC no definida.")
            auc = float("nan")
        else:
            auc = float(roc_auc_score(y_true, y_score))

        return MetricReport(
            auc=auc,
            f1=float(f1_score(y_true, y_pred, zero_division=0)),
            accuracy=float(accuracy_score(y_true, y_pred)),
            precision=float(precision_score(y_true, y_pred, zero_division=0)),
            recall=float(recall_score(y_true, y_pred, zero_division=0)),
        )

    def create_comparison(self, reports: Dict[str, MetricReport]) -> pd.DataFrame:
        """Tabla comparativa de candidatos ordenada por F1 (descendente, estable)."""
        rows = [
            {
                "Model": name,
                "AUC": report.auc,
                "F1": report.f1,
                "Accuracy": report.accuracy,
                "Precision": report.precision,
                "Recall": report.recall,
            }
            for name, report in reports.items()
        ]
        df = pd.DataFrame(rows, columns=["Model", "AUC", "F1", "Accuracy", "Precision", "Recall"])
        return df.sort_values("F1", ascending=False, kind="stable").reset_index(drop=True)

    def save_comparison_table(self, df_comparison: pd.DataFrame, output_path: str):
        """Save comparison table to CSV."""
        df_comparison.to_csv(output_path, index=False)

    def generate_performance_report(self, df_comparison: pd.DataFrame, report_path: str):
        """Generate markdown performance report."""
        lines = ["# Model Performance Report\n"]
        lines.append(f"Generated on: {pd.Timestamp.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

        best_model = df_comparison.iloc[0]
        lines.append("## Best Model Summary")
        lines.append(f"- **Model**: {best_model['Model']}")
        lines.append(f"- **F1**: {best_model['F1']:.2%}")
        lines.append(f"- **AUC**: {best_model['AUC']:.2%}\n")

        lines.append("## All Models Comparison")
        lines.append("| Model | AUC | F1 | Accuracy | Precision | Recall |")
        lines.append("|-------|-----|----|----------|-----------|--------|")

        for _, row in df_comparison.iterrows():
            lines.append(
                f"| {row['Model']} | {row['AUC']:.4f} | {row['F1']:.4f} | {row['Accuracy']:.4f} "
                f"| {row['Precision']:.4f} | {row['Recall']:.4f} |"
            )

        with open(report_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))


Candidate = Tuple[str, Any, MetricReport]


def select_best(results: Sequence[Candidate]) -> Candidate:
    """
    Retorna la tupla (name, model, report) con mayor F1.
    En empate gana el candidato listado primero.
    """
    if not results:
        raise SelectionError("Ningún candidato se entrenó correctamente.")
    return reduce(lambda best, current: current if current[2].f1 > best[2].f1 else best, results)


@dataclass
class SelectionResult:
    name: str
    model: Any
    report: MetricReport
    reports: Dict[str, MetricReport] = field(default_factory=dict)
    failures: List[FitError] = field(default_factory=list)


class ModelSelector:
    """Entrena cada candidato, lo evalúa en test y conserva el de mejor F1."""

    def __init__(self, evaluator=None):
        self.evaluator = evaluator or Evaluator()

    def train_and_select(self, candidates, X_train, y_train, X_test, y_test) -> SelectionResult:
        """
        Args:
            candidates: objetos con .name y .fit(X, y) que retorna el modelo ajustado.
        Returns:
            SelectionResult con el mejor candidato y las métricas de todos los que entrenaron.
        Raises:
            SelectionError: si todos los candidatos fallan.
        """
        results: List[Candidate] = []
        failures: List[FitError] = []

        for candidate in candidates:
            name = candidate.name
            print(f"Training {name} ...")
            try:
                fitted = candidate.fit(X_train, y_train)
                report = self.evaluator.evaluate(fitted, X_test, y_test)
            except Exception as exc:
                error = FitError(name, exc)
                logger.warning("%s. Se descarta.", error)
                failures.append(error)
                continue

            print(report.format_line(name))
            results.append((name, fitted, report))

        if not results:
            raise SelectionError(
                f"Ningún candidato se entrenó correctamente: {[str(f) for f in failures]}"
            )

        name, model, report = select_best(results)
        return SelectionResult(
            name=name,
            model=model,
            report=report,
            reports={n: r for n, _, r in results},
            failures=failures,
        )


@dataclass(frozen=True)
class Prediction:
    label: bool
    probability: float
    score: float

    @property
    def rental_type(self) -> str:
        return "Long-Term" if self.label else "Short-term"

    def format_line(self) -> str:
        return f"Sample prediction -> {self.rental_type} (probability {self.probability:.1%})"


class Predictor:
    """Aplica el pipeline seleccionado (preprocesador + modelo) a registros crudos."""

    def __init__(self, pipeline, target_col="rental_type"):
        self.pipeline = pipeline
        self.target_col = target_col

    @property
    def feature_columns(self):
        names = getattr(self.pipeline, "feature_names_in_", None)
        return None if names is None else [str(n) for n in names]

    def predict(self, record) -> Prediction:
        """Predice un único registro (dict, modelo pydantic o DataFrame de una fila)."""
        frame = self._to_frame(record)
        if len(frame) != 1:
            raise ValueError(f"Se esperaba un registro, se recibieron {len(frame)}")
        return self.predict_frame(frame)[0]

    def predict_frame(self, df: pd.DataFrame) -> List[Prediction]:
        frame = self._to_frame(df)
        estimator = self.pipeline[-1] if isinstance(self.pipeline, Pipeline) else self.pipeline
        probabilities = self.pipeline.predict_proba(frame)[:, positive_class_index(estimator)]
        labels = np.asarray(self.pipeline.predict(frame)).astype(bool)

        if hasattr(self.pipeline, "decision_function"):
            scores = np.ravel(self.pipeline.decision_function(frame))
        else:
            clipped = np.clip(probabilities, 1e-15, 1 - 1e-15)
            scores = np.log(clipped / (1 - clipped))

        return [
            Prediction(label=bool(l), probability=float(p), score=float(s))
            for l, p, s in zip(labels, probabilities, scores)
        ]

    def _to_frame(self, record) -> pd.DataFrame:
        if isinstance(record, pd.DataFrame):
            frame = record
        else:
            if hasattr(record, "model_dump"):
                record = record.model_dump()
            frame = pd.DataFrame([dict(record)])

        frame = frame.drop(columns=[self.target_col], errors="ignore")
        columns = self.feature_columns
        if columns is None:
            return frame.astype("float64")

        missing = [c for c in columns if c not in frame.columns]
        if missing:
            raise SchemaError(f"Faltan columnas en el registro: {missing}")
        return frame[columns].astype("float64")
