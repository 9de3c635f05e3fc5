"""
auth — dashboard user accounts.

Provides:
  • signed Bearer tokens (``auth.jwt``)
  • bcrypt password hashes (``auth.password``)
  • register / login routes
  • ``get_current_user_id`` FastAPI dependency used by every integration route
"""
