from .bits import BitReader, BitWriter
from .huffman import (
    MAX_CODE_LENGTH,
    HuffmanTable,
    build_code_lengths,
    canonical_codes,
    compress,
    decompress,
)
from .streams import stitches_to_streams, streams_to_pattern
from .ternary import (
    TAJIMA_X,
    TAJIMA_Y,
    TernaryLayout,
    decode_delta,
    decode_pair,
    encode_delta,
    encode_pair,
    pack_delta,
    ternary_limit,
)

__all__ = [
    # Positional delta encoding
    "TernaryLayout",
    "TAJIMA_X",
    "TAJIMA_Y",
    "ternary_limit",
    "encode_delta",
    "decode_delta",
    "pack_delta",
    "encode_pair",
    "decode_pair",
    # Entropy compression
    "MAX_CODE_LENGTH",
    "HuffmanTable",
    "build_code_lengths",
    "canonical_codes",
    "compress",
    "decompress",
    # Stitch streams
    "stitches_to_streams",
    "streams_to_pattern",
    # Bit I/O
    "BitReader",
    "BitWriter",
]
