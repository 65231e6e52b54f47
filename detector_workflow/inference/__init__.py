"""
Prediction against the published Custom Vision model.
"""

from .predict import PredictionRunner, format_prediction, rank_predictions

__all__ = [
    "PredictionRunner",
    "format_prediction",
    "rank_predictions"
]
