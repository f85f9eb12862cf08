"""
credgate.db.repositories

Repository package.

Responsibilities:
- Credential store (`users`) and refresh token ledger (`refresh_tokens`).
"""

# Package marker; repositories are imported directly from submodules.


# --- Module Notes -----------------------------------------------------------
# Repositories flush but never commit; transaction boundaries belong to services.
