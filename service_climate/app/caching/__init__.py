"""
Climate service caching package.

An in-process response cache with path-tiered TTLs and ETags, the HTTP
middleware that fronts GET routes with it, and the warmer that fills it
before the service accepts traffic.
"""
