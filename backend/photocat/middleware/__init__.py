# Middleware package init
"""
Photocat Backend — Middleware Package
=======================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so every log line of the request, including the
    access log written by the logging middleware, carries the same ID.
"""
