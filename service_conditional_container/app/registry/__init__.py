"""
Registry package.

Tracks every rendered copy of a conditional container, caches the
visibility decision per logical id and lets external callers find
instances that may not have mounted yet.

Modules of interest:
- instance_registry: Entries, ownership, decision cache and replay.
- lookup: Backoff lookups by id, property mapping or predicate.
"""
