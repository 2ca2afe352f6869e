"""Request collection plumbing for ASGI apps.

Per-request event buses + structlog, plus an in-memory record store that the
records API reads from.
"""
