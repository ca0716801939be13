# Buffering and message reassembly on a single connection record.

from wsengine.connection import Connection
from wsengine.frames import BINARY, CONTINUATION, PING, TEXT, Frame

from helpers import client_frame


class FakeWriter:
	def __init__(self):
		self.closed = False

	def is_closing(self):
		return self.closed


def make_connection():
	return Connection(1, None, FakeWriter(), ("127.0.0.1", 5000))


def test_new_connection_state():
	conn = make_connection()
	assert conn.upgraded is False
	assert conn.buffer == b""
	assert conn.message == b""
	assert not conn.closing


def test_frames_wait_for_complete_frame():
	conn = make_connection()
	data = client_frame(b"hello")
	conn.feed(data[:1])
	assert list(conn.frames()) == []
	conn.feed(data[1:7])
	assert list(conn.frames()) == []
	conn.feed(data[7:])
	assert list(conn.frames()) == [(True, TEXT, b"hello")]
	assert conn.buffer == b""


def test_frames_splits_several_frames_and_keeps_remainder():
	conn = make_connection()
	third = client_frame(b"three")
	conn.feed(client_frame(b"one") + client_frame(b"two") + third[:4])
	assert [frame.payload for frame in conn.frames()] == [b"one", b"two"]
	assert conn.buffer == third[:4]
	conn.feed(third[4:])
	assert [frame.payload for frame in conn.frames()] == [b"three"]


def test_frames_byte_at_a_time():
	conn = make_connection()
	data = client_frame(b"x" * 300, BINARY)
	frames = []
	for j in range(len(data)):
		conn.feed(data[j:j+1])
		frames.extend(conn.frames())
	assert frames == [(True, BINARY, b"x" * 300)]


def test_assemble_single_frame():
	conn = make_connection()
	assert conn.assemble(Frame(True, TEXT, b"hi")) == (TEXT, b"hi")
	assert conn.message == b""
	assert conn.opcode is None


def test_assemble_fragments():
	conn = make_connection()
	assert conn.assemble(Frame(False, BINARY, b"ab")) is None
	assert conn.assemble(Frame(False, CONTINUATION, b"cd")) is None
	assert conn.message == b"abcd"
	assert conn.assemble(Frame(True, CONTINUATION, b"ef")) == (BINARY, b"abcdef")
	assert conn.message == b""


def test_stray_continuation_treated_as_text():
	conn = make_connection()
	assert conn.assemble(Frame(True, CONTINUATION, b"x")) == (TEXT, b"x")


def test_reset_drops_partial_message():
	conn = make_connection()
	conn.assemble(Frame(False, TEXT, b"partial"))
	conn.reset()
	assert conn.assemble(Frame(True, TEXT, b"new")) == (TEXT, b"new")


def test_frames_yield_control_frames():
	conn = make_connection()
	conn.feed(client_frame(b"abc", PING))
	(frame,) = conn.frames()
	assert frame.is_control
	assert frame.payload == b"abc"


def test_closing_follows_writer():
	conn = make_connection()
	conn.writer.closed = True
	assert conn.closing


def test_final_frame_opcode_decides():
	conn = make_connection()
	assert conn.assemble(Frame(False, TEXT, b"part")) is None
	assert conn.assemble(Frame(True, 3, b"???")) == (3, b"part???")
	assert conn.message == b""


def test_unknown_opcode_fragments_kept_until_final():
	conn = make_connection()
	assert conn.assemble(Frame(False, 3, b"a")) is None
	assert conn.message == b"a"
	assert conn.assemble(Frame(True, CONTINUATION, b"b")) == (3, b"ab")
