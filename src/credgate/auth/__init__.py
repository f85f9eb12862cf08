"""
credgate.auth

Authentication package.

Responsibilities:
- Token codec (JWT issue/verify) and password hashing.
- Error taxonomy shared by the service and API layers.
- Per-request bearer authentication middleware and FastAPI dependencies.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Nothing in this package touches the database directly except the middleware,
# which loads principals through `db.repositories.users`.
