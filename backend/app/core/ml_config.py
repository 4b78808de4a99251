"""
ML configuration for duration/fuel prediction.

Feature layout, training thresholds and the heuristic fallback.
"""

# ML Feature Flags
ML_ENABLED = True  # Master switch for model inference

# Feature vector layout (order matters: it is the column order of the model)
FEATURE_NAMES = [
    "total_distance_km",
    "traffic_level",
    "weather_severity",
    "hour_of_day",
    "day_of_week",
    "vehicle_type_flag",
    "driver_experience",
    "stop_count",
]

# Model outputs, in column order
TARGET_NAMES = ["duration_min", "fuel_liters", "confidence"]

# Training Thresholds
MIN_TRAINING_SAMPLES = 100  # Below this training reports insufficient data
VALIDATION_SPLIT = 0.2
RANDOM_STATE = 42

# Fixed driver experience signal (no driver data reaches the optimizer)
DRIVER_EXPERIENCE_CONSTANT = 1.0

# Heuristic fallback when no model is loaded
FALLBACK_PREDICTION = {
    "duration_min": 120.0,
    "fuel_liters": 25.0,
    "confidence": 0.5,
}
