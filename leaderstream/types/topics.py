"""
Centralized topic constants for the event store.

Kept separate so the gateway, the service and the CLI can share topic names
without importing each other.
"""

# Participant series topics
T_PERFORMANCE = "team_pnl"
T_ASSETS = "asset_pnl"

# System topics
T_GATEWAY_ERROR = "gateway.error"
T_RANKING = "ranking.snapshot"
