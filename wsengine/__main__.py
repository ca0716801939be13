# Runs a demonstration server. When it receives a message, it responds with a message
# identifying the client and repeating the message back. If it receives the special message
# "CLOSE", or after receiving five messages from the same client, it sends a close frame and
# closes the connection. Plain HTTP requests get a 400.

import argparse
import logging
from collections import Counter

from .config import WS_CERT, WS_HOST, WS_LOG_LEVEL, WS_PORT, WS_TIMEOUT
from .frames import trunc
from .hooks import Hooks
from .log import configure_logging
from .server import WebSocketServer

logger = logging.getLogger(__name__)


class EchoHooks(Hooks):
	max_messages = 5

	def __init__(self):
		self.nmessage = Counter()

	async def onreceive(self, id, data):
		body = b"Expected a WebSocket upgrade request.\r\n"
		lines = [
			b"HTTP/1.1 400 Bad Request",
			b"Content-Type: text/plain; charset=utf-8",
			b"Content-Length: " + str(len(body)).encode("ascii"),
			b"Connection: close",
			b"",
		]
		await self.server.write(id, b"".join(line + b"\r\n" for line in lines) + body)
		await self.server.disconnect(id)

	async def onopen(self, id):
		logger.info("Client #%d connected", id)

	async def onmessage(self, id, message):
		text = message.decode("utf-8", "replace")
		response = f"Client #{id} payload #{self.nmessage[id]}: {text}"
		self.nmessage[id] += 1
		logger.info("Sending response: %s", trunc(response))
		await self.server.send(id, response)
		if text == "CLOSE" or self.nmessage[id] == self.max_messages:
			await self.server.close(id)

	async def onclose(self, id):
		del self.nmessage[id]

	async def ontimeout(self):
		logger.info("No activity, %d clients connected", len(self.server.connections))


def _parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Run the WebSocket echo server")
	parser.add_argument("--host", default=WS_HOST)
	parser.add_argument("--port", type=int, default=WS_PORT)
	parser.add_argument("--cert", default=WS_CERT, help="PEM file with certificate and private key")
	parser.add_argument("--timeout", type=float, default=WS_TIMEOUT)
	parser.add_argument("--log-level", default=WS_LOG_LEVEL)
	return parser.parse_args()


def main() -> None:
	args = _parse_args()
	configure_logging(args.log_level.upper())
	server = WebSocketServer(EchoHooks(), host=args.host, timeout=args.timeout)
	try:
		server.listen(args.port, args.cert)
	except KeyboardInterrupt:
		pass


if __name__ == "__main__":
	main()
