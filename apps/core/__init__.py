"""
Core application: the bootstrap layer of the service.

This app provides:
- Fallback bootstrap log and fatal-error exit hook
- WSGI failure boundary and maintenance mode
- Declarative application assembly (routes, API middleware, exception callbacks)
- JSON exception rendering for views, error handlers and DRF
"""
