"""
Shared utilities.

- http.py - requests session factory (timeout, User-Agent, optional retries)
  and query-string canonicalisation used for cache keys.
"""
