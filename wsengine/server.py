# https://developer.mozilla.org/en-US/docs/Web/API/WebSockets_API/Writing_WebSocket_servers
# https://docs.python.org/3/library/asyncio-stream.html

# The server accepts connections on one port, upgrades the ones that ask for it and then reads
# WebSocket frames from them, handing complete messages to the hooks. Each connection is read
# by its own task, one read at a time. The registry (self.connections) is only ever touched on
# the event loop, so a connection is either fully registered or fully gone.
#
# A connection goes accepted -> upgraded -> closed. Data that arrives before the upgrade and is
# not an upgrade request goes to onreceive, which is how plain TCP or HTTP clients can share
# the port.

import json
import asyncio
import logging
import datetime
from itertools import count
from typing import Optional

from .config import WS_CHUNK_SIZE, WS_CLOSE_TIMEOUT, WS_HOST, WS_TIMEOUT
from .connection import Connection
from .frames import BINARY, CLOSE, PING, PONG, TEXT, close_payload, encode_frame, parse_close
from .handshake import negotiate, parse_request
from .hooks import Hooks
from .log import log_context, set_connection_id
from .transport import make_ssl_context

logger = logging.getLogger(__name__)


def now():
	return datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class WebSocketServer:
	def __init__(self, hooks = None, host = WS_HOST, chunk_size = WS_CHUNK_SIZE, timeout = WS_TIMEOUT,
			close_timeout = WS_CLOSE_TIMEOUT):
		self.hooks = hooks if hooks is not None else Hooks()
		self.hooks.server = self
		self.host = host
		self.chunk_size = chunk_size
		self.timeout = timeout
		self.close_timeout = close_timeout
		self.connections = {}
		self.ids = count(1)
		self.listener = None
		self.port = None
		self.running = False
		# Set once the listener is bound and self.port is known.
		self.ready = asyncio.Event()
		self.activity = asyncio.Event()

	### CONTROL ###

	# Blocks until the server stops.
	def listen(self, port: int, cert: Optional[str] = None):
		asyncio.run(self.serve(port, cert))

	async def serve(self, port: int, cert: Optional[str] = None):
		ssl_context = make_ssl_context(cert) if cert else None
		self.listener = await asyncio.start_server(self.handle, host=self.host, port=port, ssl=ssl_context)
		self.running = True
		self.port = self.listener.sockets[0].getsockname()[1]
		scheme = "wss" if ssl_context else "ws"
		logger.info("Listening on %s://%s:%d at %s...", scheme, self.host, self.port, now())
		self.ready.set()
		try:
			while self.running:
				logger.debug("--- %d sockets ---", len(self.connections) + 1)
				self.activity.clear()
				try:
					await asyncio.wait_for(self.activity.wait(), self.timeout)
				except asyncio.TimeoutError:
					await self.hooks.ontimeout()
		except asyncio.CancelledError:
			await self.stop()
			raise
		except Exception:
			logger.exception("Server loop failed")
			await self.stop()
		finally:
			logger.info("Stopped at %s.", now())

	# Closes every connection, then the listener. Returns whether the listener shut down
	# cleanly; False if the server was not running.
	async def stop(self) -> bool:
		if not self.running:
			return False
		self.running = False
		clean = True
		try:
			for id in list(self.connections):
				try:
					await self.disconnect(id)
				except Exception:
					logger.exception("Error while closing connection #%d", id)
		finally:
			listener, self.listener = self.listener, None
			listener.close()
			try:
				await asyncio.wait_for(listener.wait_closed(), self.close_timeout)
			except asyncio.TimeoutError:
				logger.warning("Listener did not shut down within %s seconds", self.close_timeout)
				clean = False
			self.activity.set()
		return clean

	### OUTBOUND ###

	# Sends message as a single text frame. Anything that is not bytes or str is sent as JSON.
	# Sending to an unknown, closed or not yet upgraded connection does nothing.
	async def send(self, id: int, message):
		conn = self.connections.get(id)
		if conn is None or not conn.upgraded or conn.closing:
			logger.debug("Dropping message for connection #%s", id)
			return
		if not isinstance(message, (bytes, bytearray, str)):
			message = json.dumps(message)
		await self.send_frame(conn, encode_frame(message, TEXT))

	# Writes raw bytes with no framing, e.g. to answer plain HTTP from onreceive.
	async def write(self, id: int, data: bytes):
		conn = self.connections.get(id)
		if conn is None or conn.closing:
			return
		await self.send_frame(conn, data)

	# Sends a close frame (if upgraded) and disconnects.
	async def close(self, id: int, code: Optional[int] = 1000, reason: str = ""):
		conn = self.connections.get(id)
		if conn is None:
			return
		if conn.upgraded and not conn.closing:
			await self.send_frame(conn, encode_frame(close_payload(code, reason), CLOSE))
		await self.disconnect(id)

	async def disconnect(self, id: int):
		conn = self.connections.pop(id, None)
		if conn is None:
			return
		with log_context(id):
			await self.close_writer(conn)
			if conn.upgraded:
				logger.info("Closed")
				await self.hooks.onclose(id)
			else:
				logger.debug("Closed before upgrade")

	async def send_frame(self, conn, data) -> bool:
		try:
			conn.writer.write(data)
			await conn.writer.drain()
		except OSError as e:
			logger.warning("Write to connection #%d failed: %s", conn.id, e)
			await self.disconnect(conn.id)
			return False
		return True

	async def close_writer(self, conn):
		conn.writer.close()
		try:
			await asyncio.wait_for(conn.writer.wait_closed(), self.close_timeout)
		except (OSError, asyncio.TimeoutError) as e:
			logger.debug("Socket did not close cleanly: %r", e)

	### INBOUND ###

	# Called by asyncio for every accepted socket, in a task of its own.
	async def handle(self, reader, writer):
		if not self.running:
			writer.close()
			return
		id = next(self.ids)
		conn = Connection(id, reader, writer, writer.get_extra_info("peername"))
		self.connections[id] = conn
		set_connection_id(id)
		logger.debug("Accepted connection from %s", conn.peer)
		self.activity.set()
		try:
			await self.run(conn)
		except Exception:
			logger.exception("Unhandled error, stopping server")
			await self.stop()

	async def run(self, conn):
		while conn.id in self.connections:
			try:
				data = await conn.reader.read(self.chunk_size)
			except OSError as e:
				logger.debug("Read failed: %r", e)
				data = b""
			self.activity.set()
			if conn.id not in self.connections:
				break
			if not data:
				logger.debug("Disconnected")
				await self.disconnect(conn.id)
			elif conn.upgraded:
				await self.receive_upgraded(conn, data)
			else:
				await self.receive(conn, data)

	# Data on a connection that has not upgraded yet: either the upgrade request, or raw data
	# for onreceive.
	async def receive(self, conn, data: bytes):
		request = parse_request(data)
		answer = negotiate(request.protocol, request.headers) if request else None
		if answer is None:
			await self.hooks.onreceive(conn.id, bytes(data))
			return
		if not await self.send_frame(conn, answer):
			logger.warning("Failed to send upgrade response")
			return
		allowed = await self.hooks.onupgrade(
			conn.id, request.uri, dict(request.headers), dict(request.cookies), conn.peer)
		if conn.id not in self.connections:
			return
		if allowed is False:
			logger.info("Upgrade to %s rejected", request.uri)
			await self.disconnect(conn.id)
			return
		conn.upgraded = True
		logger.info("Opened %s from %s", request.uri, conn.peer)
		await self.hooks.onopen(conn.id)
		# Frames the client sent right behind its request.
		if request.body and conn.id in self.connections:
			await self.receive_upgraded(conn, request.body)

	async def receive_upgraded(self, conn, data: bytes):
		conn.feed(data)
		for frame in conn.frames():
			logger.debug("RECEIVED %r", frame)
			await self.dispatch(conn, frame)
			if conn.id not in self.connections:
				break

	async def dispatch(self, conn, frame):
		if frame.opcode == CLOSE:
			code, reason = parse_close(frame.payload)
			logger.debug("Close frame, code %s %s", code, reason)
			await self.close(conn.id, code)
		elif frame.opcode == PING:
			await self.send_frame(conn, encode_frame(frame.payload, PONG))
		elif frame.opcode == PONG:
			pass
		else:
			complete = conn.assemble(frame)
			if complete is None:
				return
			opcode, message = complete
			if opcode in (TEXT, BINARY):
				logger.debug("Message, opcode %d, %d bytes", opcode, len(message))
				await self.hooks.onmessage(conn.id, message)
			else:
				logger.warning("Unknown opcode %d, dropped %d bytes", opcode, len(message))
