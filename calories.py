"""
Calorie estimation from MET (Metabolic Equivalent of Task) values.

    kcal/min = MET * 3.5 * weight_kg / 200
"""

import math

MET_VALUES = {
    "Run": 9.8,  # average running, ~8 km/h
    "Cardio": 8.0,
    "Strength": 5.0,
    "Pilates": 3.0,
    "Powerlifting": 6.0,
    "CrossFit": 8.0,
    "Calisthenics": 5.0,
    "Yoga": 2.5,
    "HIIT": 8.0,
    "Boxing": 7.0,
}

DEFAULT_MET = 5.0
DEFAULT_WEIGHT_KG = 70

# Categories a protocol may be filed under
CATEGORIES = [
    "Strength",
    "Cardio",
    "Functional",
    "Yoga",
    "Mobility",
    "Sports",
    "Recovery",
    "Pilates",
    "Powerlifting",
    "CrossFit",
    "Calisthenics",
    "HIIT",
    "Boxing",
    "Run",
]


def met_for(category):
    """MET value for a workout category, DEFAULT_MET when unknown."""
    return MET_VALUES.get(category, DEFAULT_MET)


def estimate_calories(category, active_seconds, weight_kg=None) -> int:
    """Estimated kilocalories for ``active_seconds`` of work in ``category``.

    Pure and deterministic. Rounds half up.
    """
    if not weight_kg or weight_kg <= 0:
        weight_kg = DEFAULT_WEIGHT_KG
    minutes = max(0.0, float(active_seconds)) / 60
    per_minute = (met_for(category) * 3.5 * weight_kg) / 200
    return math.floor(per_minute * minutes + 0.5)
