"""Infrastructure layer — caching and observability for rhythm timelines.

Modules:
    cache       In-memory timeline cache with TTL and LRU eviction.
    metrics     Prometheus metrics registry.
"""
