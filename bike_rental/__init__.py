from lightgbm import LGBMClassifier
from sklearn.ensemble import GradientBoostingClassifier
from sklearn.linear_model import LogisticRegression

# Orden de listado = orden de desempate en la selección
MODEL_CONFIGS = {
    "FastTree": {
        "estimator": GradientBoostingClassifier(random_state=0),
        "params": {
            "n_estimators": [100, 200],
            "learning_rate": [0.05, 0.1],
            "max_depth": [3, 5],
        },
        "description": "Boosted decision trees; strong on tabular data",
    },
    "LightGBM": {
        "estimator": LGBMClassifier(random_state=0, verbose=-1),
        "params": {
            "n_estimators": [100, 200],
            "num_leaves": [15, 31],
            "learning_rate": [0.05, 0.1],
        },
        "description": "Histogram-based gradient boosting; fast on large data",
    },
    "LogisticRegression": {
        "estimator": LogisticRegression(solver="lbfgs", max_iter=1000),
        "params": {
            "C": [0.1, 1.0, 10.0],
        },
        "description": "Linear with L2; fast & interpretable",
    },
}
