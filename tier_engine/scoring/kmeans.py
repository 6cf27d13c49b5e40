"""
K-Means segmentation score (alternative score model).

Each feature is standardized with the segmentation scaler (z-score), then
multiplied by the model's data-driven weights and summed. Higher = better.
Unlike the curve model the result is unbounded (roughly -1 .. +5), which is
fine for tiering because boundaries are calibrated per cohort anyway.

Weights / scaler from the MVP1 segmentation artifacts (k=7, silhouette 0.912).
"""
from __future__ import annotations

KMEANS_WEIGHTS: dict[str, float] = {
    "DA": 0.2979662565631615,
    "GGR": 0.04327770914922594,
    "DC": 0.0,                      # redundant with PF
    "PF": 0.32071892742845315,
    "ATV": 0.14451388569617504,
    "WIN_RATE": 0.19352322116298434,
}

SCALER_CENTER: dict[str, float] = {
    "DA": 23.0,
    "GGR": 10.0,
    "DC": 4.0,
    "PF": 0.07612326394634364,
    "ATV": 5.0,
    "WIN_RATE": 0.0909090909090909,
}

SCALER_SCALE: dict[str, float] = {
    "DA": 124.0,
    "GGR": 40.0,
    "DC": 18.0,
    "PF": 0.25519832687977145,
    "ATV": 3.7350503261358527,
    "WIN_RATE": 0.1339884393063584,
}


def kmeans_score(
    deposit_amount: float,
    ggr: float,
    deposit_cases: float,
    purchase_frequency: float,
    avg_transaction_value: float,
    win_rate: float,
) -> float:
    """win_rate is a percentage (0-100); the scaler works on a 0-1 fraction."""
    features = {
        "DA": deposit_amount,
        "GGR": ggr,
        "DC": deposit_cases,
        "PF": purchase_frequency,
        "ATV": avg_transaction_value,
        "WIN_RATE": win_rate / 100,
    }
    score = sum(
        (features[name] - SCALER_CENTER[name]) / SCALER_SCALE[name] * weight
        for name, weight in KMEANS_WEIGHTS.items()
    )
    return round(score, 4)
