# Server configuration values, read from the environment.

import os


WS_HOST = os.getenv("WS_HOST", "0.0.0.0")
WS_PORT = int(os.getenv("WS_PORT", "23400"))
# PEM file holding both the certificate and its private key. Empty means plain TCP.
WS_CERT = os.getenv("WS_CERT") or None

# Bytes asked for per socket read.
WS_CHUNK_SIZE = int(os.getenv("WS_CHUNK_SIZE", "8192"))
# Seconds without any socket activity before the timeout hook fires.
WS_TIMEOUT = float(os.getenv("WS_TIMEOUT", "3600"))
# Seconds to wait for a transport to finish closing.
WS_CLOSE_TIMEOUT = float(os.getenv("WS_CLOSE_TIMEOUT", "3"))

WS_LOG_LEVEL = (os.getenv("WS_LOG_LEVEL", "INFO") or "INFO").upper()
WS_LOG_FORMAT = os.getenv(
	"WS_LOG_FORMAT",
	"%(levelname)s %(asctime)s [%(name)s] #%(connection_id)s %(message)s",
)


__all__ = [
	"WS_HOST",
	"WS_PORT",
	"WS_CERT",
	"WS_CHUNK_SIZE",
	"WS_TIMEOUT",
	"WS_CLOSE_TIMEOUT",
	"WS_LOG_LEVEL",
	"WS_LOG_FORMAT",
]
