"""
Cache package for Experiments Service.

Provides a Redis-backed exposure store that remembers which variant an
identity was shown and keeps per-variant exposure counters.
"""
