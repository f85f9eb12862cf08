"""
credgate.observability

Observability package.

Responsibilities:
- Structured logging configuration.
- Request context propagation (request id, client ip, authenticated subject).
"""

# Package marker.
