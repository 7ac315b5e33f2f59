"""Domain logic on top of the data access client.

- progress: quiz completion -> progress document aggregation
- auth_context: session-lifetime current-user state
"""

__all__ = [
    "progress",
    "auth_context",
]
