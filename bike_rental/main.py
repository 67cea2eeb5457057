import argparse
import json
import logging
import os
import sys
from typing import List, Optional

import mlflow
from dotenv import load_dotenv

from bike_rental import MODEL_CONFIGS
from bike_rental.config import PipelineConfig
from bike_rental.data import BIKE_RENTAL_SCHEMA, CAT_COLS, NUM_COLS, DataLoader, DataProcessor
from bike_rental.errors import ConfigError, PersistError, PipelineError
from bike_rental.persistence import load_metadata, load_model, metadata_path_for, save_model
from bike_rental.train_predict import Evaluator, MetricReport, Model, ModelSelector, Predictor, build_inference_pipeline
from bike_rental.visualize import Visualizer

logger = logging.getLogger(__name__)

# Registro de ejemplo para la predicción al final del entrenamiento
DEFAULT_SAMPLE = {
    "season": 2,
    "mnth": 11,
    "hr": 22,
    "holiday": 1,
    "weekday": 5,
    "workingday": 1,
    "weathersit": 1,
    "temp": 14,
    "hum": 60,
    "windspeed": 30,
}


def setup_logging(log_level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()],
    )


def build_candidates(model_configs, cv: int = 3) -> List[Model]:
    """Un Model por entrada de model_configs, en el mismo orden."""
    return [
        Model(
            name=cfg.get("name", key),
            estimator=cfg["estimator"],
            param_grid=cfg.get("params", {}),
            description=cfg.get("description", ""),
            cv=cv,
        )
        for key, cfg in model_configs.items()
    ]


class Orchestrator:
    """
    Etapas:
    - train: carga → split → preprocesador → candidatos → selección → predicción de ejemplo → guardado
    - predict: carga un artefacto guardado y predice un registro
    - visualize: regenera gráficas y reporte desde la metadata del último entrenamiento
    """

    def __init__(self, config: Optional[PipelineConfig] = None, schema=None, model_configs=None):
        self.config = config or PipelineConfig()
        self.schema = schema or BIKE_RENTAL_SCHEMA
        self.model_configs = model_configs if model_configs is not None else MODEL_CONFIGS
        self.cat_cols = list(CAT_COLS)
        self.num_cols = list(NUM_COLS)

    # -----------------------
    # Etapa: TRAIN
    # -----------------------
    def stage_train(self, csv_path: Optional[str] = None, sample: Optional[dict] = None, report: bool = False):
        """
        Entrena todos los candidatos sobre el mismo preprocesamiento, elige el de mejor F1,
        predice el registro de ejemplo y guarda el modelo.

        Returns:
            dict con nombre del mejor modelo, métricas, predicción de ejemplo y ruta del artefacto.
        """
        csv_path = csv_path or self.config.data_path

        dl = DataLoader(csv_path, schema=self.schema)
        df = dl.load()
        X_train, X_test, y_train, y_test = dl.split(
            df, test_size=self.config.test_size, random_state=self.config.random_state
        )
        print(f"[TRAIN] Train: {len(X_train)} filas | Test: {len(X_test)} filas")

        # El preprocesador se ajusta sólo con train y se aplica igual a ambos conjuntos
        dp = DataProcessor(categorical_var_cols=self.cat_cols, numerical_var_cols=self.num_cols)
        preprocessor = dp.fit(X_train)
        Xt_train = dp.transform(X_train)
        Xt_test = dp.transform(X_test)

        evaluator = Evaluator()
        selector = ModelSelector(evaluator)
        candidates = build_candidates(self.model_configs, cv=self.config.cv)
        result = selector.train_and_select(
            candidates, Xt_train, y_train.astype(int), Xt_test, y_test.astype(int)
        )

        print(
            f"Best model: {result.name} "
            f"(AUC = {result.report.auc:.2%}, F1 = {result.report.f1:.2%})"
        )

        pipeline = build_inference_pipeline(preprocessor, result.model)
        prediction = Predictor(pipeline, target_col=dl.target_col).predict(sample or DEFAULT_SAMPLE)
        print(prediction.format_line())

        model_path = save_model(
            pipeline,
            self.schema,
            self.config.model_path,
            model_name=result.name,
            report=result.report,
            feature_names=dp.feature_names(),
            extra={
                "target_column": dl.target_col,
                "source_csv": os.path.abspath(csv_path),
                "test_size": self.config.test_size,
                "random_state": self.config.random_state,
                "candidates": {n: r.to_dict() for n, r in result.reports.items()},
                "failed_candidates": [f.name for f in result.failures],
            },
        )
        print(f"Model saved to {model_path}")

        if report:
            self._write_reports(evaluator, result, pipeline, X_test, y_test)

        return {
            "best_model": result.name,
            "metrics": result.report.to_dict(),
            "candidates": {n: r.to_dict() for n, r in result.reports.items()},
            "prediction": prediction,
            "model_path": model_path,
        }

    def _write_reports(self, evaluator, result, pipeline, X_test, y_test):
        rdir = self.config.reports_dir
        visualizer = Visualizer(output_dir=rdir)
        comparison_df = evaluator.create_comparison(result.reports)

        metrics_plot_path = visualizer.plot_metrics(comparison_df)
        print(f"[VISUALIZE] Model comparison plot saved: {metrics_plot_path}")

        cm_path = visualizer.plot_confusion_matrix(
            y_test, pipeline.predict(X_test), f"Best Model ({result.name}) Confusion Matrix"
        )
        print(f"[VISUALIZE] Confusion matrix saved: {cm_path}")

        comparison_csv_path = os.path.join(rdir, "model_comparison_results.csv")
        evaluator.save_comparison_table(comparison_df, comparison_csv_path)

        report_path = os.path.join(rdir, "performance_report.md")
        evaluator.generate_performance_report(comparison_df, report_path)
        print(f"[VISUALIZE] Performance report saved: {report_path}")

    # -----------------------
    # Etapa: PREDICT
    # -----------------------
    def stage_predict(self, model_path: Optional[str] = None, sample: Optional[dict] = None):
        """Carga el artefacto guardado y predice un registro."""
        artifact = load_model(model_path or self.config.model_path)
        target = next((c.name for c in artifact.schema if c.dtype == "bool"), "rental_type")
        prediction = Predictor(artifact.pipeline, target_col=target).predict(sample or DEFAULT_SAMPLE)
        print(f"[PREDICT] Modelo: {artifact.model_name}")
        print(prediction.format_line())
        return prediction

    # -----------------------
    # Etapa: VISUALIZE
    # -----------------------
    def stage_visualize(self, model_path: Optional[str] = None, reports_dir: Optional[str] = None):
        """
        Regenera la gráfica comparativa, la tabla CSV y el reporte markdown a partir de la
        metadata del último entrenamiento, sin volver a entrenar.

        Returns:
            dict con las rutas generadas.
        Raises:
            PersistError: si no existe la metadata del modelo o no trae métricas de candidatos.
        """
        model_path = model_path or self.config.model_path
        rdir = reports_dir or self.config.reports_dir

        meta = load_metadata(model_path)
        if not meta or not meta.get("candidates"):
            raise PersistError(
                f"Sin métricas de candidatos en {metadata_path_for(model_path)}. Ejecuta la etapa 'train' primero."
            )

        # La metadata guarda null para métricas no finitas (p.ej. AUC con una sola clase en test)
        reports = {
            name: MetricReport(**{k: float("nan") if v is None else float(v) for k, v in metrics.items()})
            for name, metrics in meta["candidates"].items()
        }

        evaluator = Evaluator()
        visualizer = Visualizer(output_dir=rdir)
        comparison_df = evaluator.create_comparison(reports)

        metrics_plot_path = visualizer.plot_metrics(comparison_df)
        print(f"[VISUALIZE] Model comparison plot saved: {metrics_plot_path}")

        comparison_csv_path = os.path.join(rdir, "model_comparison_results.csv")
        evaluator.save_comparison_table(comparison_df, comparison_csv_path)
        print(f"[VISUALIZE] Comparison table saved: {comparison_csv_path}")

        report_path = os.path.join(rdir, "performance_report.md")
        evaluator.generate_performance_report(comparison_df, report_path)
        print(f"[VISUALIZE] Performance report saved: {report_path}")

        return {
            "metrics_plot": str(metrics_plot_path),
            "comparison_table": comparison_csv_path,
            "performance_report": report_path,
        }

    # -----------------------
    # Ejecutar por etapa
    # -----------------------
    def run(self, stage: str, **kwargs):
        stage = stage.lower()

        if stage == "train":
            with mlflow.start_run(run_name="train_stage"):
                mlflow.log_params({
                    "test_size": self.config.test_size,
                    "random_state": self.config.random_state,
                    "cv": self.config.cv,
                })
                summary = self.stage_train(
                    csv_path=kwargs.get("csv"),
                    sample=kwargs.get("sample"),
                    report=kwargs.get("report", False),
                )

                for name, metrics in summary["candidates"].items():
                    with mlflow.start_run(run_name=f"train_{name}", nested=True):
                        mlflow.log_metrics(metrics)

                mlflow.log_artifact(summary["model_path"], artifact_path="model")
                meta_path = metadata_path_for(summary["model_path"])
                if os.path.exists(meta_path):
                    mlflow.log_artifact(meta_path, artifact_path="model")
                print("[TRAIN] Completed.")
            return summary

        elif stage == "predict":
            return self.stage_predict(model_path=kwargs.get("model_path"), sample=kwargs.get("sample"))

        elif stage == "visualize":
            return self.stage_visualize(model_path=kwargs.get("model_path"), reports_dir=kwargs.get("reports_dir"))

        else:
            raise ValueError(f"Etapa desconocida: {stage}")


def build_argparser():
    p = argparse.ArgumentParser(description="Bike rental type classifier")
    p.add_argument("--stage", required=True, choices=["train", "predict", "visualize"], help="Etapa a ejecutar")
    p.add_argument("--csv", help="Ruta al CSV de entrada (stage=train)")
    p.add_argument("--model_path", help="Ruta del artefacto del modelo")
    p.add_argument("--reports_dir", help="Directorio de reportes (con --report o stage=visualize)")
    p.add_argument("--report", action="store_true", help="Genera gráficas y reporte markdown")
    p.add_argument("--sample", help="Registro JSON a predecir (por defecto un ejemplo fijo)")
    p.add_argument("--test_size", type=float, help="Proporción de test split")
    p.add_argument("--random_state", type=int, help="Semilla aleatoria")
    p.add_argument("--cv", type=int, help="Folds de validación cruzada para la búsqueda de hiperparámetros")
    p.add_argument("--log_level", default="INFO", help="Nivel de logging")
    return p


def parse_sample(raw: Optional[str]) -> Optional[dict]:
    """Interpreta --sample como un objeto JSON; None si no se pasó."""
    if not raw:
        return None
    try:
        sample = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"--sample no es JSON válido: {exc}") from exc
    if not isinstance(sample, dict):
        raise ConfigError(f"--sample debe ser un objeto JSON, se obtuvo {type(sample).__name__}.")
    return sample


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    setup_logging(args.log_level)
    load_dotenv()

    try:
        config = PipelineConfig.from_env().override(
            data_path=args.csv,
            model_path=args.model_path,
            reports_dir=args.reports_dir,
            test_size=args.test_size,
            random_state=args.random_state,
            cv=args.cv,
        )
        sample = parse_sample(args.sample)

        if args.stage == "train":
            mlflow.set_tracking_uri(config.tracking_uri)
            mlflow.set_experiment(config.experiment_name)
        Orchestrator(config).run(
            stage=args.stage,
            csv=args.csv,
            sample=sample,
            report=args.report,
            model_path=config.model_path,
            reports_dir=config.reports_dir,
        )
    except PipelineError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
