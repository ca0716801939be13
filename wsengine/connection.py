# Per-connection state: the stream pair, whether the handshake is done, the bytes read but not
# yet consumed as frames, and the payload of a fragmented message that is still arriving.

from typing import Iterator, Optional, Tuple

from .frames import CONTINUATION, TEXT, Frame, decode_frame, frame_size


class Connection:
	def __init__(self, id: int, reader, writer, peer = None):
		self.id = id
		self.reader = reader
		self.writer = writer
		self.peer = peer
		self.upgraded = False
		self.buffer = bytearray()
		self.message = bytearray()
		# Opcode of the first frame of the message in self.message, None between messages.
		self.opcode = None

	def __repr__(self):
		state = "upgraded" if self.upgraded else "accepted"
		return f"CONNECTION<#{self.id} {state}, buffer={len(self.buffer)}, message={len(self.message)}>"

	@property
	def closing(self):
		return self.writer.is_closing()

	def feed(self, data: bytes):
		self.buffer += data

	# Cuts complete frames off the front of the buffer. Stops as soon as the next frame has not
	# fully arrived; the rest stays buffered for the next read.
	def frames(self) -> Iterator[Frame]:
		while True:
			size = frame_size(self.buffer)
			if size is None or len(self.buffer) < size:
				return
			blob = bytes(self.buffer[:size])
			del self.buffer[:size]
			yield decode_frame(blob)

	# Adds a non-control frame to the message being assembled. Returns (opcode, message) once the
	# final frame is in, None otherwise. The opcode is that of the last frame that was not a
	# continuation, so a final frame with an opcode of its own decides how the message is handled.
	def assemble(self, frame: Frame) -> Optional[Tuple[int, bytes]]:
		if frame.opcode != CONTINUATION or self.opcode is None:
			self.opcode = frame.opcode
		self.message += frame.payload
		if not frame.fin:
			return None
		opcode = self.opcode
		if opcode == CONTINUATION:
			# Continuation with no message in progress, handled like text.
			opcode = TEXT
		message = bytes(self.message)
		self.reset()
		return opcode, message

	def reset(self):
		self.message.clear()
		self.opcode = None
