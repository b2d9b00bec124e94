"""
Profile package.

Wraps the user profile fetched from the host session store and exposes
attribute lookups to the rules engine.
"""
