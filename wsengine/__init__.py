from .connection import Connection
from .frames import Frame, decode_frame, encode_frame, frame_size
from .handshake import Request, get_accept, negotiate, parse_request
from .hooks import Hooks
from .server import WebSocketServer
from .transport import CertificateError

__version__ = "0.1.0"
