"""
auth: local user identification.

Provides:
  • signed session token creation & verification
  • ``get_current_user_id`` FastAPI dependency
"""
