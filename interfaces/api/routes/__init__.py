"""API route modules. Routers are included by ``interfaces.api.main``."""
