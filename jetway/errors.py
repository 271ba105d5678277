class GatewayError(Exception):
    """
    Base class for errors that are reported back to the web browser.

    Each subclass carries the HTTP status code that the error maps to, so the
    HTTP resource can turn any of them into a response without inspecting
    the exception type.
    """

    http_status = 500


class TransportError(GatewayError):
    """
    The upstream server could not be reached or the connection failed.
    """

    http_status = 502


class ProtocolError(GatewayError):
    """
    The upstream server sent something that does not follow the protocol.
    """

    http_status = 502


class UnsupportedContent(GatewayError):
    """
    The upstream response is well-formed but can not be translated.
    """

    http_status = 501


class RenderError(GatewayError):
    """
    Building the HTML page failed.
    """

    http_status = 500
