"""
Gráficas comparativas de los candidatos entrenados.
"""
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # backend no interactivo (CI / headless)
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from sklearn.metrics import confusion_matrix


class Visualizer:
    """Generates visualizations from model results and metrics."""

    def __init__(self, output_dir):
        """Initialize Visualizer with configurable output directory.

        Args:
            output_dir: Directory to save generated plots
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        plt.style.use('default')
        sns.set_palette("husl")

    def plot_metrics(self, df_results: pd.DataFrame) -> Path:
        """Bar chart of AUC and F1 per candidate.

        Args:
            df_results: DataFrame with columns: Model, AUC, F1

        Returns:
            Path to saved comparison plot

        Raises:
            ValueError: If required columns are missing or the DataFrame is empty
        """
        self._validate_metrics_dataframe(df_results)

        long_df = df_results.melt(
            id_vars="Model", value_vars=["AUC", "F1"], var_name="Metric", value_name="Score"
        )

        fig, ax = plt.subplots(figsize=(10, 6))
        sns.barplot(data=long_df, x="Model", y="Score", hue="Metric", ax=ax)
        ax.set_ylim(0, 1)
        ax.set_title('Model Performance Comparison (Higher is Better)', fontsize=14, fontweight='bold')
        ax.grid(axis='y', alpha=0.3)

        plt.tight_layout()
        output_path = self.output_dir / 'model_comparison.png'
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        return output_path

    def plot_confusion_matrix(self, y_true, y_pred, title=None) -> Path:
        """Heatmap of the confusion matrix on the test set."""
        y_true_arr = np.asarray(y_true).astype(int)
        y_pred_arr = np.asarray(y_pred).astype(int)
        if len(y_true_arr) == 0 or len(y_true_arr) != len(y_pred_arr):
            raise ValueError(f"Array length mismatch: y_true={len(y_true_arr)}, y_pred={len(y_pred_arr)}")

        labels = ["Short-term", "Long-Term"]
        cm = confusion_matrix(y_true_arr, y_pred_arr, labels=[0, 1])

        fig, ax = plt.subplots(figsize=(6, 5))
        sns.heatmap(cm, annot=True, fmt="d", cmap="Blues", xticklabels=labels, yticklabels=labels, ax=ax)
        ax.set_xlabel('Predicted', fontsize=12)
        ax.set_ylabel('Actual', fontsize=12)
        ax.set_title(title or 'Confusion Matrix', fontsize=14, fontweight='bold')

        plt.tight_layout()
        output_path = self.output_dir / 'confusion_matrix.png'
        plt.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)

        return output_path

    def _validate_metrics_dataframe(self, df: pd.DataFrame) -> None:
        required_columns = ['Model', 'AUC', 'F1']
        missing_columns = [col for col in required_columns if col not in df.columns]

        if missing_columns:
            raise ValueError(f"Missing required columns: {missing_columns}")

        if df.empty:
            raise ValueError("DataFrame cannot be empty")
