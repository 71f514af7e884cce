"""HTTP server for Lesson Media Queue.

Module organization:
- app.py: Application factory, health check, dispatcher startup/shutdown
- api/: JSON job endpoints and error helpers
- auth.py: Shared-token authentication middleware
- middleware.py: Request guards (shutdown, id validation, lock errors)
- lifecycle.py: Startup/shutdown state
- signals.py: SIGTERM/SIGINT handling for `lmq serve`
"""

from lmq.server.app import HealthStatus, create_app
from lmq.server.lifecycle import ServerLifecycle

__all__ = ["HealthStatus", "ServerLifecycle", "create_app"]
