from .request import Request
from .response import Response
from .router import Router

__all__ = ["Router", "Response", "Request"]
