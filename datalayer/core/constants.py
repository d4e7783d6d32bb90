"""Core constants: cache and retry defaults, cache key structure.

Single source of truth for literal defaults (DRY). Settings, MemoryCache
and RetryPolicy all read their defaults from here.
"""

# Delimiter for composite cache keys
CACHE_KEY_SEP = ":"
# Segment separating operation from parameters in query keys
CACHE_QUERY_SEGMENT = "query"

# Cache engine
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_CACHE_TTL_SECONDS = 300.0  # 5 minutes
DEFAULT_CACHE_CLEANUP_INTERVAL_SECONDS = 60.0  # 1 minute
# Share of capacity removed per eviction pass (at least one entry)
DEFAULT_CACHE_EVICTION_FRACTION = 0.1

# Retry policy
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_INITIAL_DELAY_SECONDS = 0.5
DEFAULT_RETRY_MAX_DELAY_SECONDS = 30.0
DEFAULT_RETRY_BACKOFF_MULTIPLIER = 2.0

# Datasource backends
DATASOURCE_TYPE_FIRESTORE = "firestore"
DATASOURCE_TYPE_REST = "rest"
DEFAULT_USERS_COLLECTION = "users"
DEFAULT_USERS_ENDPOINT = "users"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
