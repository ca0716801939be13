# Lifecycle callbacks. The server holds one hooks object and awaits these at fixed points in a
# connection's life; override the ones you need. Any object with the same coroutine methods
# will do, the server does not require this base class.
#
# Hooks are handed copies of the request data and message bytes, never the registry. Use
# self.server (set by the server) to send, write or close.

class Hooks:
	server = None

	# Data arrived on a connection that has not upgraded and was not an upgrade request.
	async def onreceive(self, id: int, data: bytes):
		pass

	# Called after the 101 response has been written. Return False to reject the client, which
	# closes the connection before onopen.
	async def onupgrade(self, id: int, uri: str, headers: dict, cookies: dict, peer) -> bool:
		return True

	async def onopen(self, id: int):
		pass

	# One complete text or binary message, reassembled from all its fragments.
	async def onmessage(self, id: int, message: bytes):
		pass

	async def onclose(self, id: int):
		pass

	# No socket activity for the whole timeout window.
	async def ontimeout(self):
		pass
