# ruff: noqa: F401
from .__version__ import __version__
from .client import GeminiBody, GeminiClient, GeminiResponse, Status
from .config import GatewayConfig
from .errors import (
    GatewayError,
    ProtocolError,
    RenderError,
    TransportError,
    UnsupportedContent,
)
from .gateway import GatewayResponse, proxy_resource, translate_response
from .render import InputPrompt, RenderState, render_gemtext, render_input_prompt
from .server import GatewayResource, GatewayServer
from .url import ResourceIdentifier, to_gateway_path, to_resource_identifier

__title__ = "Jetway HTTP to Gemini Gateway"
