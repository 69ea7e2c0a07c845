from rolo.request import Request

__all__ = [
    "Request",
]
