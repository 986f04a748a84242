"""Centralized constants for flashlite.

Scheduling multipliers, store layout names and CLI polling defaults live here
so every layer imports from a single source of truth.
"""

# ---------- Scheduler ----------
MIN_INTERVAL_DAYS = 1
EASY_MIN_INTERVAL_DAYS = 2
HARD_MULTIPLIER = 1.2
GOOD_MULTIPLIER = 2.0
EASY_MULTIPLIER = 2.5

# ---------- Store layout ----------
USERS_COLLECTION = "users"
DECKS_COLLECTION = "decks"
CARDS_COLLECTION = "cards"
DECK_ORDER_FIELD = "createdAt"

# ---------- HTTP store ----------
REQUEST_TIMEOUT = 30.0
POLL_INTERVAL = 2.0  # seconds

# ---------- CLI loading wait ----------
LOAD_POLL_ATTEMPTS = 100
LOAD_POLL_INTERVAL = 0.05  # seconds
