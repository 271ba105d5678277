from __future__ import annotations

import dataclasses
import typing

from .url import GEMINI_SCHEME, ResourceIdentifier

# Upper bound in seconds for fetching and translating a single resource
DEFAULT_TIMEOUT = 30.0


@dataclasses.dataclass(frozen=True)
class GatewayConfig:
    """
    Server-wide settings, fixed at startup and shared by every request.

    ``stylesheet`` is CSS text inlined into every page (the built-in
    stylesheet is used when it's empty). ``stylesheet_url`` points to an
    external stylesheet and takes precedence over the inlined one.
    """

    root: ResourceIdentifier
    stylesheet: typing.Optional[str] = None
    stylesheet_url: typing.Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_root_url(cls, url: str, **kwargs: typing.Any) -> GatewayConfig:
        """
        Build the configuration from the URL of the root gemini capsule.
        """
        root = ResourceIdentifier.from_url(url)
        if root.scheme != GEMINI_SCHEME:
            raise ValueError(f"Root URL must use the {GEMINI_SCHEME} scheme")
        return cls(root=root, **kwargs)
