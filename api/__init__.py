"""api/ -- JSON API layer: app assembly, middleware, and /api/v1 routes.

Layer rule: api/ imports from auth/ and core/, never from web/.
"""
