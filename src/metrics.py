from prometheus_client import Counter, Histogram

# Encoder
model_load_seconds = Histogram(
    'member_matcher_model_load_seconds',
    'Embedding model load time',
    buckets=(1, 2, 5, 10, 30, 60, 120)
)

embedding_latency = Histogram(
    'member_matcher_embedding_latency_seconds',
    'Single text embedding latency',
    ['side'],  # profile, query
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2)
)

embedding_errors = Counter(
    'member_matcher_embedding_errors_total',
    'Embedding failures',
    ['side']
)

# Indexer
indexer_profiles = Counter(
    'member_matcher_indexer_profiles_total',
    'Profiles handled by the embedding refresh',
    ['outcome']  # updated, skipped, failed
)

indexer_duration = Histogram(
    'member_matcher_indexer_duration_seconds',
    'Full embedding refresh duration',
    buckets=(1, 5, 10, 30, 60, 300, 900)
)

# Search
search_latency = Histogram(
    'member_matcher_search_latency_seconds',
    'Task search latency (encode + match_members)',
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10)
)

search_results = Histogram(
    'member_matcher_search_results',
    'Number of members returned per search',
    buckets=(0, 1, 3, 5, 10, 25, 50)
)

search_errors = Counter(
    'member_matcher_search_errors_total',
    'Search failures',
    ['error_type']  # timeout, procedure, malformed
)
