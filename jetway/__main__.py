"""
Main entry point for running ``jetway`` from the command line.

This will launch an HTTP server that proxies a gemini capsule to the web.
"""
# Black does not do a good job of formatting argparse code, IMHO.
# fmt: off
import argparse
import sys

from .__version__ import __version__
from .config import DEFAULT_TIMEOUT, GatewayConfig
from .server import GatewayServer

if sys.version_info < (3, 8):
    sys.exit("Fatal Error: jetway requires Python 3.8+")


# noinspection PyTypeChecker
parser = argparse.ArgumentParser(
    prog="jetway",
    description="An HTTP to Gemini Gateway",
    formatter_class=argparse.ArgumentDefaultsHelpFormatter,
)
parser.add_argument(
    "-V", "--version",
    action="version",
    version="jetway " + __version__
)
parser.add_argument(
    "root",
    help="Gemini URL of the capsule served at the root of the gateway",
    metavar="URL",
)
group = parser.add_argument_group("server configuration")
group.add_argument(
    "-b", "--host",
    help="Server address to bind to",
    default="127.0.0.1"
)
group.add_argument(
    "-p", "--port",
    help="Server port to bind to",
    type=int,
    default=8080
)
group.add_argument(
    "--timeout",
    help="Seconds to wait for the upstream server before giving up",
    type=float,
    default=DEFAULT_TIMEOUT,
)
group = parser.add_argument_group("page style")
group.add_argument(
    "-c", "--css-file",
    help="Stylesheet file to inline into every page, replacing the built-in style",
    metavar="FILE",
    dest="css_file",
)
group.add_argument(
    "-e", "--css-url",
    help="URL of an external stylesheet to link from every page",
    metavar="URL",
    dest="css_url",
)


def main():
    args = parser.parse_args()

    stylesheet = None
    if args.css_file:
        try:
            with open(args.css_file, encoding="utf-8") as fp:
                stylesheet = fp.read()
        except OSError as e:
            parser.error(f"Unable to read stylesheet: {e}")

    try:
        config = GatewayConfig.from_root_url(
            args.root,
            stylesheet=stylesheet,
            stylesheet_url=args.css_url,
            timeout=args.timeout,
        )
    except ValueError as e:
        parser.error(f"Invalid root URL {args.root!r}: {e}")

    server = GatewayServer(
        config=config,
        host=args.host,
        port=args.port,
    )
    server.run()


if __name__ == "__main__":
    main()
