"""
API routers package.
Each router handles a specific domain of endpoints.
"""

from routers import auth, generate, model_catalog

__all__ = [
    "auth",
    "generate",
    "model_catalog",
]
