#!/usr/bin/env python3
"""
A very basic gemini client to check what the gateway sees upstream.
"""
import argparse
import sys
import urllib.parse

from twisted.internet.defer import ensureDeferred
from twisted.internet.task import react

from jetway.client import GeminiClient
from jetway.url import ResourceIdentifier


async def fetch(reactor, url, show_certificate=False):
    parsed_url = urllib.parse.urlparse(url)
    if not parsed_url.scheme:
        url = f"gemini://{url}"

    client = GeminiClient(reactor)
    response = await client.request(ResourceIdentifier.from_url(url))
    sys.stdout.write(f"{response.status} {response.meta}\r\n")
    sys.stdout.flush()

    if show_certificate and response.certificate:
        for key, value in response.certificate.items():
            print(f"{key}: {value}", file=sys.stderr)

    if response.body is not None:
        data = await response.body.read_chunk()
        while data:
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
            data = await response.body.read_chunk()


def run_client():
    parser = argparse.ArgumentParser(description="A simple gemini client")
    parser.add_argument("url")
    parser.add_argument(
        "--show-certificate",
        action="store_true",
        help="Print the server's TLS certificate to stderr",
    )
    args = parser.parse_args()

    def main(reactor):
        return ensureDeferred(fetch(reactor, args.url, args.show_certificate))

    react(main)


if __name__ == "__main__":
    run_client()
