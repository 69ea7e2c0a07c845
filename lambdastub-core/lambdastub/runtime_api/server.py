import logging

from werkzeug import Request
from werkzeug.serving import BaseWSGIServer, make_server

from lambdastub.http import Router
from lambdastub.utils.serving import Server

LOG = logging.getLogger(__name__)


class RuntimeApiServer(Server):
    """
    Serves a router through werkzeug's threaded WSGI server, every request is handled in its own thread. The socket
    is bound when the object is created, so a port of 0 picks a free port which is then reported by ``port``.
    """

    server: BaseWSGIServer

    def __init__(self, router: Router, port: int, host: str = "localhost") -> None:
        @Request.application
        def app(request: Request):
            response = router.dispatch(request)
            # werkzeug closes every connection and sends its own Connection header
            response.headers.pop("Connection", None)
            return response

        try:
            self.server = make_server(host, port, app=app, threaded=True)
        except SystemExit as e:
            # werkzeug prints the bind error and exits if the address is not available
            raise OSError(f"could not bind runtime API server to {host}:{port}") from e
        super().__init__(self.server.server_address[1], host)

    def do_run(self):
        try:
            LOG.debug("starting runtime API server on %s", self.url)
            return self.server.serve_forever()
        finally:
            LOG.debug("runtime API server on %s returning", self.url)

    def do_shutdown(self):
        self.server.shutdown()
        self.server.server_close()
