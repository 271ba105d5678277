from __future__ import annotations

import socket
import sys
import time
import traceback
import typing

from twisted.internet import defer, error
from twisted.internet import reactor as _reactor
from twisted.internet.defer import CancelledError, Deferred, ensureDeferred
from twisted.internet.endpoints import TCP4ServerEndpoint, TCP6ServerEndpoint
from twisted.internet.tcp import Port
from twisted.python.failure import Failure
from twisted.web.resource import Resource
from twisted.web.server import NOT_DONE_YET, Request, Site

from .__version__ import __version__
from .client import GeminiClient
from .config import GatewayConfig
from .errors import GatewayError, TransportError
from .gateway import GatewayResponse, proxy_resource
from .url import ResourceIdentifier, is_foreign_path, to_resource_identifier

if sys.stderr.isatty():
    CYAN = "\033[36m\033[1m"
    RESET = "\033[0m"
else:
    CYAN = ""
    RESET = ""


ABOUT = rf"""
{CYAN}Now boarding...
   _      _
  (_) ___| |___      ____ _ _   _
  | |/ _ \ __\ \ /\ / / _` | | | |
  | |  __/ |_ \ V  V / (_| | |_| |
 _/ |\___|\__| \_/\_/ \__,_|\__, |
|__/                        |___/{RESET}

An HTTP to Gemini Gateway, v{__version__}
"""


class GatewayResource(Resource):
    """
    Handle every HTTP request made to the gateway.

    GET requests are translated into a gemini request for the matching
    resource. POST requests carry the answer to an input prompt and are
    redirected back to the same page with the answer as the query string.
    """

    isLeaf = True

    TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

    def __init__(self, server: GatewayServer):
        super().__init__()
        self.server = server

    @property
    def config(self) -> GatewayConfig:
        return self.server.config

    def render(self, request: Request) -> typing.Union[bytes, int]:
        if request.method == b"GET":
            return self.render_GET(request)
        elif request.method == b"POST":
            return self.render_POST(request)

        request.setHeader(b"allow", b"GET, POST")
        return self.render_error(request, 405, "405 Method not allowed")

    def render_GET(self, request: Request) -> typing.Union[bytes, int]:
        uri = request.uri.decode("utf-8", errors="replace")
        path = uri.partition("?")[0]
        if path == "/favicon.ico":
            return self.render_error(request, 404, "404 Not found")

        try:
            identifier = to_resource_identifier(uri, self.config.root)
        except ValueError:
            return self.render_error(request, 404, "404 Not found")

        d = ensureDeferred(self.proxy(request, identifier, is_foreign_path(path)))
        request.notifyFinish().addErrback(self.on_disconnect, d)
        d.addErrback(self.on_failure, request)
        return NOT_DONE_YET

    def render_POST(self, request: Request) -> bytes:
        values = request.args.get(b"q")
        if not values:
            return self.render_error(request, 400, "Missing form field: q")

        query = values[0].decode("utf-8", errors="replace")
        if "\r" in query or "\n" in query:
            return self.render_error(request, 400, "Invalid form field: q")

        path = request.path.decode("utf-8", errors="replace")
        request.redirect(f"{path}?{query}".encode())
        self.log_request(request)
        return b""

    def render_error(self, request: Request, status: int, message: str) -> bytes:
        request.setResponseCode(status)
        request.setHeader(b"content-type", b"text/plain; charset=utf-8")
        self.log_request(request)
        return message.encode()

    def fetch(self, identifier: ResourceIdentifier, foreign: bool) -> Deferred:
        """
        Fetch and translate the resource, giving up after the timeout.
        """
        d = ensureDeferred(
            proxy_resource(self.server.client, identifier, self.config, foreign)
        )
        d.addTimeout(self.config.timeout, self.server.reactor)
        return d

    async def proxy(
        self, request: Request, identifier: ResourceIdentifier, foreign: bool
    ) -> None:
        """
        Handle a GET request from start to end.

        Any error raised while talking to the upstream server becomes an
        error page. The browser going away cancels the whole thing.
        """
        try:
            response = await self.fetch(identifier, foreign)
        except CancelledError:
            raise
        except (defer.TimeoutError, error.TimeoutError):
            err = TransportError(f"Timed out after {self.config.timeout:g} seconds")
            response = GatewayResponse.from_error(err)
        except GatewayError as e:
            response = GatewayResponse.from_error(e)
        except Exception:
            self.server.log_message(traceback.format_exc())
            response = GatewayResponse.text("An unexpected error occurred", 500)

        await self.send_response(request, response, identifier)

    async def send_response(
        self,
        request: Request,
        response: GatewayResponse,
        identifier: ResourceIdentifier,
    ) -> None:
        request.setResponseCode(response.status)
        request.setHeader(b"content-type", response.content_type.encode())
        if response.location:
            request.setHeader(b"location", response.location.encode())
        if response.body:
            request.write(response.body)

        if response.stream is not None:
            # Upstream reads are paused while the browser is slower than it
            request.registerProducer(response.stream, True)
            try:
                while True:
                    data = await response.stream.read_chunk()
                    if not data:
                        break
                    request.write(data)
            except BaseException:
                response.stream.close()
                raise
            finally:
                request.unregisterProducer()

        request.finish()
        self.log_request(request, identifier)

    def on_disconnect(self, failure: Failure, d: Deferred) -> None:
        """
        The connection to the browser was lost before the response finished.
        """
        d.cancel()

    def on_failure(self, failure: Failure, request: Request) -> None:
        if failure.check(CancelledError):
            # Nobody is left to send a response to
            return

        self.server.log_message(failure.getTraceback())
        if not request.startedWriting and not request.finished:
            request.setResponseCode(500)
            request.setHeader(b"content-type", b"text/plain; charset=utf-8")
            request.write(b"An unexpected error occurred")
            request.finish()

    def log_request(
        self,
        request: Request,
        identifier: typing.Optional[ResourceIdentifier] = None,
    ) -> None:
        """
        Log a request using a format derived from the Common Log Format.
        """
        message = '{} [{}] "{} {}" {} {}'.format(
            request.getClientAddress().host,
            time.strftime(self.TIMESTAMP_FORMAT, time.localtime()),
            request.method.decode(errors="replace"),
            request.uri.decode(errors="replace"),
            request.code,
            identifier.url if identifier else "-",
        )
        self.server.log_access(message)


class GatewayServer:
    """
    Wrapper around twisted's HTTP server that handles most of the setup and
    plumbing for you.
    """

    resource_class = GatewayResource

    def __init__(
        self,
        config: GatewayConfig,
        reactor: typing.Any = _reactor,
        host: str = "127.0.0.1",
        port: int = 8080,
        client: typing.Optional[GeminiClient] = None,
    ):
        if client is None:
            client = GeminiClient(reactor, connect_timeout=config.timeout)

        self.config = config
        self.reactor = reactor
        self.host = host
        self.port = port
        self.client = client
        self.site = Site(self.resource_class(self))

    def log_access(self, message: str) -> None:
        """
        Log standard "access log"-type information.
        """
        print(message, file=sys.stdout)

    def log_message(self, message: str) -> None:
        """
        Log special messages like startup info or a traceback error.
        """
        print(message, file=sys.stderr)

    def on_bind_interface(self, port: Port) -> None:
        """
        Log when the server binds to an interface.
        """
        sock_ip, sock_port, *_ = port.socket.getsockname()
        if port.addressFamily == socket.AF_INET:
            self.log_message(f"Listening on http://{sock_ip}:{sock_port}")
        else:
            self.log_message(f"Listening on http://[{sock_ip}]:{sock_port}")

    def bind_interface(self, interface: str) -> None:
        """
        Binds the server to a twisted interface.
        """
        if ":" in interface:
            endpoint = TCP6ServerEndpoint(self.reactor, self.port, interface=interface)
        else:
            endpoint = TCP4ServerEndpoint(self.reactor, self.port, interface=interface)

        endpoint.listen(self.site).addCallback(self.on_bind_interface)

    def initialize(self) -> None:
        """
        Install the server into the twisted reactor.
        """
        interfaces = [self.host] if self.host else ["0.0.0.0", "::"]
        for interface in interfaces:
            self.bind_interface(interface)

    def run(self) -> None:
        """
        This is the main server loop.
        """
        self.log_message(ABOUT)
        self.log_message(f"Root capsule is {self.config.root.url}")
        if self.config.stylesheet_url:
            self.log_message(f"Stylesheet URL: {self.config.stylesheet_url}")
        elif self.config.stylesheet:
            self.log_message("Using a custom inline stylesheet")
        else:
            self.log_message("Using the default stylesheet")
        self.log_message(f"Upstream timeout is {self.config.timeout:g} seconds")
        self.initialize()
        self.reactor.run()
