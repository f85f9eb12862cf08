"""
credgate.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories for users and
  refresh tokens.
"""

# Package marker.
