# Routes package init
"""
Service Template — API Routes Package
=======================================

What:  Illustrative route handlers used to exercise the middleware stack.

Route Inventory:
    - root.py:     GET  /                 (greeting)
                   GET  /error            (raises, exercises the error responder)
                   GET  /slow             (delayed response, exercises slow warnings)
    - limiter.py:  GET  /limiter/strict   (strict rate limit tier)
                   POST /limiter/auth     (auth rate limit tier)
    - health.py:   GET  /health           (liveness probe, never rate-limited)

Design Principle:
    Routes are THIN. Everything interesting happens in middleware and in
    the exception handlers; routes only trigger it.
"""
