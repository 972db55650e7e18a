"""ASGI middleware binding the current subsite to each request."""

from fastapi_subsites.middleware.subsites import SubsitesMiddleware

__all__ = ["SubsitesMiddleware"]
