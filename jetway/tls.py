import base64
import typing

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from OpenSSL import SSL
from twisted.internet.abstract import isIPAddress, isIPv6Address
from twisted.internet.interfaces import IOpenSSLClientConnectionCreator
from twisted.internet.ssl import CertificateOptions, TLSVersion
from zope.interface import implementer

COMMON_NAME = x509.NameOID.COMMON_NAME


def inspect_certificate(cert: x509.Certificate) -> dict:
    """
    Extract useful fields from a x509 server certificate object.
    """
    name_attrs = cert.subject.get_attributes_for_oid(COMMON_NAME)
    common_name = name_attrs[0].value if name_attrs else ""

    fingerprint_bytes = cert.fingerprint(hashes.SHA256())
    fingerprint = base64.urlsafe_b64encode(fingerprint_bytes).decode()

    not_before = cert.not_valid_before_utc.strftime("%Y-%m-%dT%H:%M:%SZ")
    not_after = cert.not_valid_after_utc.strftime("%Y-%m-%dT%H:%M:%SZ")

    data = {
        "common_name": common_name,
        "fingerprint": fingerprint,
        "not_before": not_before,
        "not_after": not_after,
        "serial_number": cert.serial_number,
    }
    return data


@implementer(IOpenSSLClientConnectionCreator)
class GeminiClientCertificateOptions(CertificateOptions):
    """
    TLS options for outgoing connections to gemini servers.

    Gemini servers overwhelmingly use self-signed certificates, and the
    gateway has no place to pin them, so the server certificate is never
    verified. CertificateOptions already leaves verification off by default.
    What it can't do on its own is act as a client connection creator that
    sends the server name (SNI), which most virtual-hosted capsules need, so
    this class adds that part.

    References:
        https://twistedmatrix.com/documents/current/core/howto/ssl.html
        https://github.com/twisted/twisted/blob/trunk/src/twisted/internet/_sslverify.py
    """

    def __init__(self, hostname: str) -> None:
        self.hostname = hostname
        super().__init__(raiseMinimumTo=TLSVersion.TLSv1_2)

    @property
    def server_name(self) -> typing.Optional[bytes]:
        """
        The SNI value for the connection, IP literals are not allowed.
        """
        if isIPAddress(self.hostname) or isIPv6Address(self.hostname):
            return None
        try:
            return self.hostname.encode("idna")
        except UnicodeError:
            # Not a valid IDN, connect without SNI
            return None

    def clientConnectionForTLS(self, tlsProtocol: typing.Any) -> SSL.Connection:
        """
        Invoked by twisted to create the OpenSSL connection object for every
        new client connection.
        """
        connection = SSL.Connection(self.getContext(), None)
        server_name = self.server_name
        if server_name:
            connection.set_tlsext_host_name(server_name)
        connection.set_app_data(tlsProtocol)
        return connection
