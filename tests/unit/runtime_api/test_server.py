import pytest
import requests

from lambdastub.http import Response, Router
from lambdastub.http.router import handler_dispatcher
from lambdastub.runtime_api.server import RuntimeApiServer


@pytest.fixture
def serve_router(cleanups):
    def _serve(router: Router) -> RuntimeApiServer:
        server = RuntimeApiServer(router, port=0, host="127.0.0.1")
        server.start()
        cleanups.append(server.shutdown)
        assert server.wait_is_up(timeout=10)
        return server

    return _serve


def test_connection_header_is_sent_once(serve_router):
    router = Router(dispatcher=handler_dispatcher())
    router.add("/closing", endpoint=lambda request: Response(status=503).close_connection())
    router.add("/plain", endpoint=lambda request: Response("ok"))
    server = serve_router(router)

    response = requests.get(f"{server.url}/closing")
    assert response.status_code == 503
    assert response.headers["Connection"] == "close"

    response = requests.get(f"{server.url}/plain")
    assert response.status_code == 200
    assert response.headers["Connection"] == "close"


def test_bound_port_is_reported(serve_router):
    server = serve_router(Router(dispatcher=handler_dispatcher()))

    assert server.port > 0
    assert server.is_running()
    assert requests.get(f"{server.url}/unknown").status_code == 404


def test_shutdown_stops_server(serve_router):
    server = serve_router(Router(dispatcher=handler_dispatcher()))

    server.shutdown()

    assert not server.is_running()
    assert not server.is_up()
