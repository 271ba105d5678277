from __future__ import annotations

import dataclasses
import re
import typing

from twisted.internet import error
from twisted.internet import reactor as _reactor
from twisted.internet.defer import CancelledError, Deferred, DeferredQueue
from twisted.internet.endpoints import HostnameEndpoint, connectProtocol, wrapClientTLS
from twisted.internet.interfaces import IPushProducer, IStreamClientEndpoint
from twisted.internet.protocol import connectionDone
from twisted.protocols.basic import LineReceiver
from twisted.python.failure import Failure
from zope.interface import implementer

from .errors import ProtocolError, TransportError
from .tls import GeminiClientCertificateOptions, inspect_certificate
from .url import ResourceIdentifier


class Status:
    """
    Gemini response status codes.
    """

    INPUT = 10
    SENSITIVE_INPUT = 11

    SUCCESS = 20

    REDIRECT_TEMPORARY = 30
    REDIRECT_PERMANENT = 31

    TEMPORARY_FAILURE = 40
    SERVER_UNAVAILABLE = 41
    CGI_ERROR = 42
    PROXY_ERROR = 43
    SLOW_DOWN = 44

    PERMANENT_FAILURE = 50
    NOT_FOUND = 51
    GONE = 52
    PROXY_REQUEST_REFUSED = 53
    BAD_REQUEST = 59

    CLIENT_CERTIFICATE_REQUIRED = 60
    CERTIFICATE_NOT_AUTHORISED = 61
    CERTIFICATE_NOT_VALID = 62


# Maximum size in bytes of the meta field of a response header
MAX_META_LENGTH = 1024

HEADER_RE = re.compile(r"(?P<status>[0-9]{2})(?:[ \t]+(?P<meta>.*))?")


def parse_header(line: bytes) -> typing.Tuple[int, str]:
    """
    Parse the gemini response header line.

    The header is a single UTF-8 line formatted as: <STATUS><SPACE><META>
    """
    try:
        text = line.decode("utf-8").rstrip("\r")
    except UnicodeDecodeError as e:
        raise ProtocolError("Response header is not valid UTF-8") from e

    match = HEADER_RE.fullmatch(text)
    if not match:
        raise ProtocolError(f"Malformed response header {text!r}")

    meta = (match.group("meta") or "").strip()
    if len(meta.encode()) > MAX_META_LENGTH:
        raise ProtocolError(f"Meta exceeds max length of {MAX_META_LENGTH} bytes")

    return int(match.group("status")), meta


@implementer(IPushProducer)
class GeminiBody:
    """
    The body of a successful gemini response, delivered in chunks as they
    arrive from the network.

    Gemini has no content-length, the end of the body is signaled by the
    server closing the connection. Chunks are queued so nothing is lost
    when the consumer is slower than the network.

    The body is also a push producer: registered with the consumer it's
    written to, it stops reading from the upstream connection whenever that
    consumer can't keep up, so the queue stays short.
    """

    def __init__(self, protocol: typing.Optional[GeminiClientProtocol] = None):
        self.protocol = protocol
        self.chunks: DeferredQueue = DeferredQueue()
        self.complete = False
        self.exhausted = False

    @classmethod
    def from_bytes(cls, data: bytes) -> GeminiBody:
        """
        Build a body that has already been received in full.
        """
        body = cls()
        body.feed(data)
        body.finish()
        return body

    def feed(self, data: bytes) -> None:
        if data and not self.complete:
            self.chunks.put(data)

    def finish(self) -> None:
        if not self.complete:
            self.complete = True
            self.chunks.put(b"")

    async def read_chunk(self) -> bytes:
        """
        Wait for the next chunk of data, an empty string marks the end.
        """
        if self.exhausted:
            return b""

        data = await self.chunks.get()
        if not data:
            self.exhausted = True
        return data

    async def read(self) -> bytes:
        """
        Wait for the rest of the body.
        """
        buffer = []
        while True:
            data = await self.read_chunk()
            if not data:
                break
            buffer.append(data)
        return b"".join(buffer)

    def close(self) -> None:
        """
        Drop the connection without waiting for the rest of the body.
        """
        if self.protocol is not None and not self.complete:
            self.protocol.abort()

    def pauseProducing(self) -> None:
        if self.protocol is not None and not self.complete:
            self.protocol.transport.pauseProducing()

    def resumeProducing(self) -> None:
        if self.protocol is not None and not self.complete:
            self.protocol.transport.resumeProducing()

    def stopProducing(self) -> None:
        self.close()


@dataclasses.dataclass
class GeminiResponse:
    """
    Object that encapsulates information about a single gemini response.
    """

    status: int
    meta: str
    body: typing.Optional[GeminiBody] = None
    certificate: typing.Optional[dict] = None

    def close(self) -> None:
        if self.body is not None:
            self.body.close()


class GeminiClientProtocol(LineReceiver):
    """
    Handle a single outgoing Gemini request.

    The request URL is written as soon as the connection (and the TLS
    handshake) is established. The first line received is the response
    header, everything after it is passed through to the response body
    without looking at it.
    """

    delimiter = b"\n"

    # Two digit status, whitespace, meta and the trailing CR
    MAX_LENGTH = MAX_META_LENGTH + 4

    def __init__(self, url: str):
        self.url = url
        self.response: Deferred[GeminiResponse] = Deferred(canceller=self.cancel)
        self.body = GeminiBody(self)
        self.aborted = False

    def connectionMade(self) -> None:
        """
        This is invoked by twisted after the connection is first established.
        """
        self.transport.write(f"{self.url}\r\n".encode())

    def lineReceived(self, line: bytes) -> None:
        """
        This method is invoked by LineReceiver for the response header.
        """
        try:
            status, meta = parse_header(line)
        except ProtocolError as e:
            self.fail(e)
            return

        self.setRawMode()

        body = None
        if status // 10 == 2:
            body = self.body
        else:
            # Nothing else is expected on the connection
            self.transport.loseConnection()

        response = GeminiResponse(status, meta, body, self.get_certificate())
        self.response.callback(response)

    def rawDataReceived(self, data: bytes) -> None:
        self.body.feed(data)

    def lineLengthExceeded(self, line: bytes) -> None:
        self.fail(ProtocolError("Response header exceeds max length"))

    def connectionLost(self, reason: Failure = connectionDone) -> None:
        if not self.response.called:
            message = reason.getErrorMessage()
            self.response.errback(
                TransportError(f"Connection closed without a response: {message}")
            )
        self.body.finish()

    def get_certificate(self) -> typing.Optional[dict]:
        """
        Summarize the server's TLS certificate, if there is one.
        """
        get_peer_certificate = getattr(self.transport, "getPeerCertificate", None)
        if get_peer_certificate is None:
            return None

        cert = get_peer_certificate()
        if cert is None:
            return None
        return inspect_certificate(cert.to_cryptography())

    def fail(self, err: Exception) -> None:
        if not self.response.called:
            self.response.errback(err)
        self.transport.loseConnection()

    def abort(self) -> None:
        if self.transport is not None and not self.aborted:
            self.aborted = True
            self.transport.abortConnection()

    def cancel(self, _: Deferred) -> None:
        self.abort()


class GeminiClient:
    """
    Fetch gemini resources, opening a new TLS connection for every request.

    The server's certificate is not verified.
    """

    def __init__(self, reactor: typing.Any = _reactor, connect_timeout: float = 30):
        self.reactor = reactor
        self.connect_timeout = connect_timeout

    def build_endpoint(self, identifier: ResourceIdentifier) -> IStreamClientEndpoint:
        host, port = identifier.address
        endpoint = HostnameEndpoint(
            self.reactor, host, port, timeout=self.connect_timeout
        )
        return wrapClientTLS(GeminiClientCertificateOptions(host), endpoint)

    async def request(self, identifier: ResourceIdentifier) -> GeminiResponse:
        """
        Send a request and wait for the response header.

        The body, if any, keeps streaming in the background and must be
        read from (or closed) by the caller.
        """
        protocol = GeminiClientProtocol(identifier.url)
        endpoint = self.build_endpoint(identifier)
        try:
            await connectProtocol(endpoint, protocol)
        except error.ConnectingCancelledError as e:
            raise CancelledError() from e
        except (error.ConnectError, OSError) as e:
            raise TransportError(str(e)) from e

        return await protocol.response
