# TLS setup for the listening socket. The server only ever sees the resulting SSLContext.

import ssl
import logging
import datetime

from cryptography import x509

logger = logging.getLogger(__name__)


class CertificateError(Exception):
	pass


# Refuses to start with a certificate that cannot be read or has already expired. Returns the
# expiry time.
def check_certificate(path: str) -> datetime.datetime:
	try:
		with open(path, "rb") as f:
			cert = x509.load_pem_x509_certificate(f.read())
	except (OSError, ValueError) as e:
		raise CertificateError(f"Cannot use certificate {path}: {e}") from e
	expires = cert.not_valid_after_utc
	if expires < datetime.datetime.now(datetime.timezone.utc):
		raise CertificateError(f"Certificate {path} has expired.")
	logger.debug("Certificate %s valid until %s", path, expires.isoformat())
	return expires

# path is a PEM file with the certificate followed by its private key. Clients are not asked
# for certificates.
def make_ssl_context(path: str) -> ssl.SSLContext:
	check_certificate(path)
	context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
	context.check_hostname = False
	context.verify_mode = ssl.CERT_NONE
	try:
		context.load_cert_chain(path)
	except (OSError, ssl.SSLError) as e:
		raise CertificateError(f"Cannot use certificate {path}: {e}") from e
	return context
