"""Centralized constants for the Retune application.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- AnkiConnect / HTTP ----------
REQUEST_TIMEOUT = 30.0
RESPONSIVENESS_TIMEOUT = 2.0
CHUNK_SIZE = 500

# ---------- Parameter estimation ----------
# Seed values for the recall-cost slots (Again, Hard, Good, Easy), in seconds.
DEFAULT_RECALL_COSTS = (14.0, 14.0, 10.0, 6.0)
MS_PER_SECOND = 1000.0

# ---------- Optimal retention ----------
MIN_RETENTION = 0.75
MAX_RETENTION = 0.95

# Search grid used by the built-in simulator.
SEARCH_RETENTION_LOW = 0.70
SEARCH_RETENTION_HIGH = 0.99
SEARCH_RETENTION_STEP = 0.01

# ---------- Simulation defaults (Anki deck options) ----------
DEFAULT_DECK_SIZE = 10000
DEFAULT_DAYS_TO_SIMULATE = 365
DEFAULT_MAX_MINUTES_PER_DAY = 30
DEFAULT_MAX_INTERVAL = 36500
DEFAULT_LOSS_AVERSION = 2.5

# FSRS-4.5 default parameters (w0-w16).
FSRS_DEFAULT_WEIGHTS = [
    0.4872,
    1.4003,
    3.7145,
    13.8206,
    5.1618,
    1.2298,
    0.8975,
    0.031,
    1.6474,
    0.1367,
    1.0461,
    2.1072,
    0.0793,
    0.3246,
    1.587,
    0.2272,
    2.8755,
]
FSRS_WEIGHT_COUNT = 17
FSRS_DECAY = -0.5
FSRS_FACTOR = 19.0 / 81.0
FSRS_MIN_DIFFICULTY = 1.0
FSRS_MAX_DIFFICULTY = 10.0
FSRS_MIN_STABILITY = 0.01
