from __future__ import annotations

DATA_TAG = "RBTP"
ACK_TAG = "RB"

DATA_PATTERN = DATA_TAG + "<index:num>/<total:num>:<checksum:text-8>$"
ACK_PATTERN = ACK_TAG + "<ranges:numPairs>"

PAYLOAD_DELIMITER = "$"
FIXED_HEADER_MARKER = "!"
LIST_DELIMITER = ","
PAIRS_DELIMITER = ";"

# bytes <-> str mapping for frames; latin-1 is a bijection over 0..255
WIRE_ENCODING = "latin-1"
TEXT_ENCODING = "utf-8"

CHECKSUM_LEN = 8
MAX_UINT_BITS = 8

DEFAULT_CHUNK_SIZE = 500
DEFAULT_FRAME_RATE = 15.0  # frames per second on the primary channel
DEFAULT_ACK_INTERVAL = 2.0  # seconds between backchannel acks
