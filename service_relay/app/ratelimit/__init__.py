"""
Rate limiting package for the relay.

Holds the Redis-backed sliding window limiter that admits a fixed number of
calls per identity per window.
"""
