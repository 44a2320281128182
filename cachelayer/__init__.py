"""
In-memory key/value cache with TTL expiration, pluggable eviction and an HTTP API.
"""
__version__ = "1.0.0"
