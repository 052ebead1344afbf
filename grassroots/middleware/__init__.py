# Middleware package init
"""
Grassroots Hub Backend — Middleware Package
=============================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

Rate limiting rejects before any other work. The request ID is set before the
access log line is written, so every log entry of a request shares it.
"""
