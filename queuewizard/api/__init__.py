"""
API module.
Contains the FastAPI application and its routes.
"""

from queuewizard.api.main import create_app, run

__all__ = ["create_app", "run"]
