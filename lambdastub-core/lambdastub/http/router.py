from rolo.routing import Router
from rolo.routing.handler import handler_dispatcher

__all__ = [
    "handler_dispatcher",
    "Router",
]
