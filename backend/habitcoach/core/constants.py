"""
Domain constants shared across services
"""

# Habits
DEFAULT_REPETITION_GOAL = 66
DEFAULT_CONSISTENCY_THRESHOLD = 80
DEFAULT_SUCCESS_THRESHOLD = 7
DEFAULT_INCREASE_FACTOR = 1.2

# Completions are scored 1-10, success rates are percentages
QUALITY_SCALE_FACTOR = 10

# Rolling window for the success rate, counted in frequency periods
SUCCESS_RATE_WINDOW_PERIODS = 30

# Days per frequency period
FREQUENCY_PERIOD_DAYS = {
    "daily": 1,
    "weekly": 7,
    "biweekly": 14,
    "monthly": 30,
}

# Ordered difficulty scale, lowest first
DIFFICULTY_ORDER = ["micro", "small", "medium", "large", "challenging"]

HABIT_XP_BASE = {
    "micro": 10,
    "small": 15,
    "medium": 25,
    "large": 40,
    "challenging": 60,
}
HABIT_XP_MAX_STREAK_MULTIPLIER = 3.0

# (lower bound of progress %, phase, description); evaluated top down
NEUROPLASTICITY_PHASES = [
    (90, "Neuroplasticitet uppnådd", "Permanent neural förändring"),
    (66, "Automatisering", "Stark neural pathway"),
    (40, "Stabilisering", "Myelinisering påbörjas"),
    (20, "Etablering", "Förstärkning av kopplingar"),
    (0, "Initiering", "Nya neurala vägar bildas"),
]

# Challenge recommendation bands (success rate %)
CHALLENGE_INCREASE_ABOVE = 85
CHALLENGE_DECREASE_BELOW = 70

# Setback detection
MISSED_STREAK_MEDIUM_FACTOR = 2
MISSED_STREAK_HIGH_FACTOR = 4
DECLINING_QUALITY_RECENT_COUNT = 3
DECLINING_QUALITY_DROP = 2.0
LOW_CONSISTENCY_HIGH_RATIO = 0.5

# Schedule
DUE_SOON_WINDOW_HOURS = 48
