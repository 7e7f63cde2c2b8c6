"""
Session Module - Manages in-memory match sessions.

A session represents one match:
- Created when a client starts a match
- Holds the match engine
- Routes match-server events for REMOTE matches
- Dropped when the match is ended or goes stale
"""

from .manager import SessionManager, Session, MatchMode, create_policy, POLICY_NAMES
from .bridge import RemoteEventBridge

__all__ = [
    "SessionManager",
    "Session",
    "MatchMode",
    "create_policy",
    "POLICY_NAMES",
    "RemoteEventBridge",
]
