# Logging setup and a per-connection logging context.
#
# Every record gets a connection_id attribute ("-" outside of any connection), so the format
# string can include it. The server sets it at the start of each connection's task; asyncio
# gives each task its own copy of the context, so ids never leak between connections.

import logging
from contextlib import contextmanager
from contextvars import ContextVar

from .config import WS_LOG_FORMAT, WS_LOG_LEVEL

_CONNECTION_ID = ContextVar("connection_id", default="-")


# Tags records logged from the current task with connection_id.
def set_connection_id(connection_id):
	_CONNECTION_ID.set(str(connection_id))

# Tags records logged inside the block with connection_id.
@contextmanager
def log_context(connection_id):
	token = _CONNECTION_ID.set(str(connection_id))
	try:
		yield
	finally:
		_CONNECTION_ID.reset(token)

# Installs a LogRecord factory that injects the connection id. Safe to call more than once.
def install_log_context():
	if getattr(install_log_context, "_installed", False):
		return

	old_factory = logging.getLogRecordFactory()

	def record_factory(*args, **kwargs):
		record = old_factory(*args, **kwargs)
		record.connection_id = _CONNECTION_ID.get()
		return record

	logging.setLogRecordFactory(record_factory)
	install_log_context._installed = True

def configure_logging(level = None):
	install_log_context()
	logging.basicConfig(level=(level or WS_LOG_LEVEL), format=WS_LOG_FORMAT)
