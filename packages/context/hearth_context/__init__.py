"""
Hearth active-group context.

Tracks which of a user's household/community memberships is active, persists
the choice, and signals dependent views when group-scoped data must be refetched.
"""

__version__ = "0.1.0"
