"""
credgate.services

Service-layer package.

Responsibilities:
- Own transaction boundaries and persistence decisions.
- Compose the credential store, token codec and refresh token ledger into the
  register/authenticate/refresh/logout use cases.
"""

# Package marker.
