# https://developer.mozilla.org/en-US/docs/Web/API/WebSockets_API/Writing_WebSocket_servers#the_websocket_handshake
# https://datatracker.ietf.org/doc/html/rfc6455#section-4.2

# Recognizes the client's upgrade request and produces the 101 response. Anything that does not
# parse as a GET request is left for the caller to treat as raw data.

import re
import base64
import hashlib
from typing import Optional

REQUEST_LINE = re.compile(r"^GET (\S+) (\S+)")
HEADER_LINE = re.compile(r"^([^\s:]+):[ \t]*(.*?)\s*$")
HEAD_END = re.compile(r"\r?\n\r?\n")


# Produces the Sec-WebSocket-Accept string for the Server handshake response.
# https://developer.mozilla.org/en-US/docs/Web/API/WebSockets_API/Writing_WebSocket_servers#server_handshake_response
# key: the Sec-Websocket-Key provided by the client.
def get_accept(key: str) -> str:
	SALT = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
	digest = hashlib.sha1(key.encode("utf-8") + SALT).digest()
	return base64.b64encode(digest).decode("utf-8")
assert get_accept("dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="


class Request:
	def __init__(self, uri, protocol, headers, cookies, body = b""):
		self.uri = uri
		self.protocol = protocol
		self.headers = headers
		self.cookies = cookies
		self.body = body

	def header(self, name):
		return find_header(self.headers, name)

	def __repr__(self):
		return f"REQUEST<GET {self.uri} {self.protocol}, {len(self.headers)} headers, {len(self.cookies)} cookies>"


# Header names are case-insensitive on the wire; headers keeps them as the client sent them.
def find_header(headers, name):
	name = name.lower()
	for key, value in headers.items():
		if key.lower() == name:
			return value
	return None

def parse_cookies(value):
	cookies = {}
	for cookie in value.split("; "):
		key, sep, val = cookie.partition("=")
		if sep:
			cookies[key] = val
	return cookies

# Parses the request line and headers of a GET request. The head ends at the first blank line
# and whatever follows it is the body; lines in the head that are not headers are skipped.
# Returns None if raw does not start with a GET request line.
def parse_request(raw: bytes) -> Optional[Request]:
	text = raw.decode("latin-1")
	end = HEAD_END.search(text)
	if end:
		head, body = text[:end.start()], text[end.end():]
	else:
		head, body = text, ""
	lines = head.split("\n")
	match = REQUEST_LINE.match(lines[0])
	if not match:
		return None
	uri, protocol = match.groups()
	headers, cookies = {}, {}
	for line in lines[1:]:
		match = HEADER_LINE.match(line)
		if not match:
			continue
		name, value = match.groups()
		if name == "Cookie":
			cookies.update(parse_cookies(value))
		else:
			headers[name] = value
	return Request(uri, protocol, headers, cookies, body.encode("latin-1"))

# Returns the 101 Switching Protocols response, or None if the headers carry no
# Sec-WebSocket-Key, i.e. this is not an upgrade attempt.
def negotiate(protocol: str, headers) -> Optional[bytes]:
	key = find_header(headers, "Sec-WebSocket-Key")
	if not key:
		return None
	lines = [
		f"{protocol} 101 Switching Protocols",
		"Upgrade: websocket",
		"Connection: Upgrade",
		f"Sec-WebSocket-Accept: {get_accept(key)}",
		"",
	]
	return "".join(line + "\r\n" for line in lines).encode("utf-8")
