"""
Page caching package.

A volatile in-process tier in front of a durable document store, populated
read-through on lookups and write-through after renders. Staleness is
controlled only through explicit invalidation; nothing expires by time.
"""
