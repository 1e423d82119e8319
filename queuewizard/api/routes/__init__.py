"""
API routes module.
"""

from queuewizard.api.routes.auth import router as auth_router
from queuewizard.api.routes.health import router as health_router
from queuewizard.api.routes.jobs import router as jobs_router
from queuewizard.api.routes.queue import router as queue_router

__all__ = ["auth_router", "health_router", "jobs_router", "queue_router"]
