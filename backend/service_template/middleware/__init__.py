# Middleware package init
"""
Service Template — Middleware Package
=======================================

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request Logging] → [Error Funnel] → Route Handler

    1. Rate Limit FIRST: reject abusive requests before any processing
    2. Request Logging: RequestContext, start record, finish record on the way out
    3. Error Funnel: unexpected exceptions become JSON 500s inside the logger's view

    The order is reversed for responses, so the finish record always sees
    the final status code (including 500s produced by the funnel).
"""
