"""Protocol layer: frame encoding, command builders, response parsing, retries."""

from .framing import encode_frame, encode_frame_into, parse_frame_trailer
from .commands import Command, Response, build_command
from .parser import decode_response
from .exchange import CommandProtocol
from .retry import RetryPolicy
