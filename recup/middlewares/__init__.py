from recup.middlewares.services_middleware import ServicesMiddleware
from recup.middlewares.access_middleware import OrganizerMiddleware, OrganizerOnly

__all__ = ["ServicesMiddleware", "OrganizerMiddleware", "OrganizerOnly"]
