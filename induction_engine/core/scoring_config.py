# induction_engine/core/scoring_config.py

# Centralized scoring constants for the five induction objectives.
# Used by the scorers and the explainability rules so thresholds stay consistent.
# Policy knobs an operator is expected to tune (weights, induction threshold,
# warning window) live in EngineConfig instead.

SCORE_CEILING = 100.0
SCORE_FLOOR = 0.0

OBJECTIVES = (
    "service_readiness",
    "cost_efficiency",
    "branding_compliance",
    "maintenance_optimization",
    "stabling_efficiency",
)

SCORING_WEIGHTS = {
    # Service readiness
    "INVALID_CERTIFICATE_PENALTY": 30.0,   # per invalid or expired certificate
    "OPEN_JOB_CARD_PENALTY": 10.0,         # per open job card

    # Cost efficiency
    "MAX_SHUNTING_MINUTES": 60.0,          # shunting at or beyond this scores 0 on the shunting term

    # Branding compliance: deficit ratio multiplier per priority
    "BRANDING_PRIORITY_WEIGHT": {
        "high": 1.0,
        "medium": 0.6,
        "low": 0.3,
    },

    # Maintenance optimization
    "CLEANING_OVERDUE_PENALTY": 40.0,
    "RISING_BACKLOG_PENALTY_PER_CARD": 15.0,
    "FALLING_BACKLOG_BONUS_PER_CARD": 5.0,
    "OPEN_RATIO_PENALTY": 20.0,

    # Stabling efficiency: 100 * K / (K + shunting minutes)
    "SHUNTING_HALF_SCORE_MINUTES": 15.0,
}

# Sub-score level at or above which a positive reason is reported
REASON_THRESHOLDS = {
    "cost_efficiency": 80.0,
    "maintenance_optimization": 90.0,
}

# Mileage within this fraction of the tolerance counts as "optimal balance"
MILEAGE_BALANCE_BAND = 0.1
