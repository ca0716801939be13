# https://developer.mozilla.org/en-US/docs/Web/API/WebSockets_API/Writing_WebSocket_servers#format
# https://datatracker.ietf.org/doc/html/rfc6455#section-5.2

# Pure frame encoding and decoding. Nothing here touches a socket: the server feeds bytes in
# and writes bytes out.

from typing import NamedTuple, Optional, Union

CONTINUATION = 0
TEXT = 1
BINARY = 2
CLOSE = 8
PING = 9
PONG = 10

CONTROL_OPCODES = (CLOSE, PING, PONG)


### BIT UTILITY FUNCTIONS ###

# Treats the number b as binary and splits it into separate binary numbers, each of which
# is n bits long, specified by ns.
# e.g. if b = 42 and ns = [2, 4, 2], then:
# 42 => 00101010b => 00,1010,10 => [00b, 1010b, 10b] => [0, 10, 2]
def splitbits(b, *ns):
	for j, n in enumerate(ns):
		yield (b >> sum(ns[j+1:])) & ((1 << n) - 1)
assert list(splitbits(42, 2, 4, 2)) == [0, 10, 2]

def joinbits(*ans):
	r = 0
	for a, n in ans:
		r <<= n
		r += a
	return r
assert joinbits((0, 2), (10, 4), (2, 2)) == 42

def trunc(message, max_len = 50):
	if len(message) <= max_len:
		return message
	return f"{message[:max_len-6]}... [{len(message)}]"

# XORs data with the 4-byte mask repeated over its whole length, as a single big-integer xor.
# See tests/xor-speed.py for how this compares to the byte-by-byte loop.
def unmask(data: bytes, mask: bytes) -> bytes:
	n = len(data)
	nreps, extra = n // 4, n % 4
	mask = mask * nreps + mask[:extra]
	data_int = int.from_bytes(data, "little")
	mask_int = int.from_bytes(mask, "little")
	return (data_int ^ mask_int).to_bytes(n, "little")
assert unmask(unmask(b"hello", b"\x01\x02\x03\x04"), b"\x01\x02\x03\x04") == b"hello"


### FRAMES ###

class Frame(NamedTuple):
	fin: bool
	opcode: int
	payload: bytes

	@property
	def is_control(self):
		return self.opcode in CONTROL_OPCODES

	def __repr__(self):
		return f"FRAME<FIN={int(self.fin)}, opcode={self.opcode}, payload={trunc(self.payload, 20)!r}>"


# Builds one frame. The server only ever sends single, unmasked frames (FIN = 1, no mask);
# FIN = 0 and a mask are there for producing client-side frames.
def encode_frame(payload: Union[bytes, str], opcode: int = TEXT, FIN: int = 1, mask: Optional[bytes] = None) -> bytes:
	if isinstance(payload, str):
		payload = payload.encode("utf-8")
	frame = []
	RSV, MASK, length = 0, int(mask is not None), len(payload)
	frame.append(joinbits((FIN, 1), (RSV, 3), (opcode & 0x0f, 4)).to_bytes(1, "big"))
	if length < 126:
		frame.append(joinbits((MASK, 1), (length, 7)).to_bytes(1, "big"))
	elif length < 2 ** 16:
		frame.append(joinbits((MASK, 1), (126, 7)).to_bytes(1, "big"))
		frame.append(length.to_bytes(2, "big"))
	else:
		frame.append(joinbits((MASK, 1), (127, 7)).to_bytes(1, "big"))
		frame.append(length.to_bytes(8, "big"))
	if mask is not None:
		assert len(mask) == 4
		frame.append(mask)
		payload = unmask(payload, mask)
	frame.append(payload)
	return b"".join(frame)

# Returns (header length, mask length, payload length) if enough of the header is buffered to
# know them, otherwise None.
def _header(blob):
	if len(blob) < 2:
		return None
	MASK, length = splitbits(blob[1], 1, 7)
	mask_len = 4 * MASK
	if length == 126:
		if len(blob) < 4:
			return None
		return 4, mask_len, int.from_bytes(blob[2:4], "big")
	if length == 127:
		if len(blob) < 10:
			return None
		return 10, mask_len, int.from_bytes(blob[2:10], "big")
	return 2, mask_len, length

# Total size of the frame at the start of blob (header, mask and payload), or None while the
# header itself has not fully arrived. Never consumes anything, so call it again whenever more
# bytes come in.
def frame_size(blob: bytes) -> Optional[int]:
	header = _header(blob)
	if header is None:
		return None
	return sum(header)

# Decodes one complete frame, as cut out of the buffer using frame_size.
def decode_frame(blob: bytes) -> Frame:
	FIN, RSV, opcode = splitbits(blob[0], 1, 3, 4)
	header_len, mask_len, length = _header(blob)
	data_pos = header_len + mask_len
	payload = bytes(blob[data_pos:data_pos + length])
	if mask_len:
		payload = unmask(payload, bytes(blob[header_len:data_pos]))
	return Frame(bool(FIN), opcode, payload)


### CLOSE FRAME PAYLOADS ###

# https://datatracker.ietf.org/doc/html/rfc6455#section-5.5.1
def close_payload(code: Optional[int] = None, reason: str = "") -> bytes:
	if code is None:
		return b""
	return code.to_bytes(2, "big") + reason.encode("utf-8")

def parse_close(payload: bytes):
	if len(payload) < 2:
		return None, ""
	return int.from_bytes(payload[:2], "big"), payload[2:].decode("utf-8", "replace")
assert parse_close(close_payload(1001, "bye")) == (1001, "bye")
