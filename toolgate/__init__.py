# Tool gateway core
#
# This package holds the shared plumbing behind the assistant's tool endpoints:
# upload credentials (fetch, expiry tracking, caching in memory/disk/database)
# and the cache-aside IP geolocation lookup.
#
# Key principle: tool handlers stay thin. Anything that touches a scarce or
# slow external resource goes through one of the modules here.

__version__ = "1.0.0"
