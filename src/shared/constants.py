"""Shared constants across the application."""

# Default popularity weights per behavioral counter
DEFAULT_SCORE_WEIGHTS = {
    "view": 1.0,
    "cart_add": 3.0,
    "purchase": 10.0,
}

# Recency boost for new products and trending scores
RECENCY_BOOST = 1.5
TRENDING_DAYS = 7

# Personalization
PERSONALIZATION_OVERSAMPLE = 4
AFFINITY_SCALE = 100.0

# Similarity band (fraction of the anchor price)
SIMILARITY_BAND_LOW = 0.7
SIMILARITY_BAND_HIGH = 1.3

# Recommendation reasons, highest dedup priority first
REASON_PRIORITY = ["similar", "personalized", "trending", "popular"]

# Mixed feed ranking weight per source
MIXED_SOURCE_WEIGHTS = {
    "similar": 1.0,
    "personalized": 0.9,
    "trending": 0.8,
    "popular": 0.7,
}

# Anonymous actor id
GUEST_ACTOR_ID = "guest"

# Default limits
DEFAULT_RECOMMENDATION_LIMIT = 12
MAX_RECOMMENDATION_LIMIT = 50
DEFAULT_MIXED_LIMIT = 4
DEFAULT_FEED_WINDOW = 200

# Batch sizes
SCORE_RECOMPUTE_BATCH_SIZE = 100
PENDING_SCORE_BATCH_SIZE = 10
MAX_PENDING_SCORE_UPDATES = 100

# Client delivery
DEFAULT_CLIENT_TIMEOUT_SECONDS = 15.0
MIN_CLIENT_TIMEOUT_SECONDS = 10.0
MAX_CLIENT_TIMEOUT_SECONDS = 20.0
DEFAULT_CACHE_CAPACITY = 32
MAX_CLIENT_RETRIES = 3
