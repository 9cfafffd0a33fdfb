"""web/ -- Browser routes and templates.

Layer rule: web/ imports from auth/, core/ and api.limiter, never from api.main.
"""
