# Client-side helpers for driving a server over loopback sockets.

import asyncio
import os
from contextlib import asynccontextmanager

from wsengine.frames import TEXT, decode_frame, encode_frame, frame_size
from wsengine.hooks import Hooks
from wsengine.server import WebSocketServer

KEY = "dGhlIHNhbXBsZSBub25jZQ=="
ACCEPT = "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


def upgrade_request(uri="/chat", extra=()):
	lines = [
		f"GET {uri} HTTP/1.1",
		"Host: localhost",
		"Upgrade: websocket",
		"Connection: Upgrade",
		f"Sec-WebSocket-Key: {KEY}",
		"Sec-WebSocket-Version: 13",
		*extra,
		"",
	]
	return "".join(line + "\r\n" for line in lines).encode("utf-8")


def client_frame(payload, opcode=TEXT, FIN=1):
	return encode_frame(payload, opcode, FIN, mask=os.urandom(4))


class RecordingHooks(Hooks):
	def __init__(self, allow=True):
		self.allow = allow
		self.events = []

	async def onreceive(self, id, data):
		self.events.append(("receive", id, data))

	async def onupgrade(self, id, uri, headers, cookies, peer):
		self.events.append(("upgrade", id, uri, headers, cookies))
		return self.allow

	async def onopen(self, id):
		self.events.append(("open", id))

	async def onmessage(self, id, message):
		self.events.append(("message", id, message))

	async def onclose(self, id):
		self.events.append(("close", id))

	async def ontimeout(self):
		self.events.append(("timeout",))

	def named(self, name):
		return [event for event in self.events if event[0] == name]

	def kinds(self, id):
		return [event[0] for event in self.events if len(event) > 1 and event[1] == id]


async def eventually(predicate, timeout=2.0):
	loop = asyncio.get_running_loop()
	deadline = loop.time() + timeout
	while not predicate():
		if loop.time() > deadline:
			raise AssertionError("condition not reached in time")
		await asyncio.sleep(0.01)


class Client:
	def __init__(self, reader, writer):
		self.reader = reader
		self.writer = writer
		self.buffer = b""

	@classmethod
	async def connect(cls, server, **kwargs):
		reader, writer = await asyncio.open_connection("127.0.0.1", server.port, **kwargs)
		return cls(reader, writer)

	async def send(self, data):
		self.writer.write(data)
		await self.writer.drain()

	async def handshake(self, request=None):
		await self.send(request or upgrade_request())
		return await asyncio.wait_for(self.reader.readuntil(b"\r\n\r\n"), 2)

	async def recv_frame(self):
		while True:
			size = frame_size(self.buffer)
			if size is not None and len(self.buffer) >= size:
				frame = decode_frame(self.buffer[:size])
				self.buffer = self.buffer[size:]
				return frame
			chunk = await asyncio.wait_for(self.reader.read(4096), 2)
			if not chunk:
				raise EOFError("connection closed")
			self.buffer += chunk

	# Everything the server sends until it closes the connection.
	async def read_to_eof(self):
		return await asyncio.wait_for(self.reader.read(), 2)

	def close(self):
		self.writer.close()


@asynccontextmanager
async def running(hooks, cert=None, **kwargs):
	server = WebSocketServer(hooks, host="127.0.0.1", **kwargs)
	task = asyncio.create_task(server.serve(0, cert))
	await asyncio.wait_for(server.ready.wait(), 2)
	try:
		yield server
	finally:
		await server.stop()
		await asyncio.wait_for(task, 5)
