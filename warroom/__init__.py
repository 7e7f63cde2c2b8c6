"""
War Room - Stratego-style Match Engine

An authoritative, rules-driven engine for a Stratego-like board game.
The engine owns one match per instance and provides:
- Inventory-backed deployment with a readiness handshake
- Turn-based battle with combat resolution
- A planning/action/resolution meta-game
- Reconciliation entry points for a remote match server
"""

__version__ = "0.1.0"
