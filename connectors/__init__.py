"""
connectors — OAuth integration module for third-party providers.

Provides:
  • the immutable provider registry (Google, GitHub, Slack, Stripe, ...)
  • OAuth2 auth-URL generation with a ``user_id:provider`` state
  • callback handling (code → token exchange → upsert)
  • lazy token refresh before provider API calls
  • Fernet encryption of tokens at rest
  • soft disconnect with best-effort revocation
"""
