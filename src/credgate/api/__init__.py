"""
credgate.api

HTTP API package (FastAPI).

Responsibilities:
- App factory, routers, dependency wiring and error rendering.
"""

# Package marker.
