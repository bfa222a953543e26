from .color_group import ColorGroup, ThreadGrouping, auto_group_by_similarity
from .commands import (
    COMMAND_MASK,
    NEEDLE_MASK,
    ORDER_MASK,
    THREAD_MASK,
    Action,
    DecodedCommand,
    command_action,
    command_name,
    decode_command,
    encode_command,
)
from .errors import (
    CorruptDataError,
    InvalidColorError,
    InvalidPatternError,
    RangeExceededError,
    SingularMatrixError,
    StitchkitError,
    TruncatedDataError,
    UnsupportedFormatError,
)
from .matrix import AffineTransform
from .palette import BUILTIN_PALETTES, ThreadPalette, all_palettes, get_palette
from .pattern import MAX_SEGMENTS, Pattern
from .statistics import PatternStatistics, ThreadUsage, calculate_statistics, fix_color_count, normalize
from .stitch import Stitch
from .thread import MAX_COLOR_DISTANCE, NAMED_COLORS, Thread, color_distance, find_nearest_color_index, parse_color

__all__ = [
    # Command words
    "Action",
    "COMMAND_MASK",
    "THREAD_MASK",
    "NEEDLE_MASK",
    "ORDER_MASK",
    "DecodedCommand",
    "encode_command",
    "decode_command",
    "command_action",
    "command_name",
    # Model
    "Stitch",
    "Thread",
    "Pattern",
    "MAX_SEGMENTS",
    "ColorGroup",
    "ThreadGrouping",
    "AffineTransform",
    # Color matching
    "NAMED_COLORS",
    "MAX_COLOR_DISTANCE",
    "parse_color",
    "color_distance",
    "find_nearest_color_index",
    "auto_group_by_similarity",
    # Palettes
    "ThreadPalette",
    "BUILTIN_PALETTES",
    "all_palettes",
    "get_palette",
    # Statistics and processing
    "PatternStatistics",
    "ThreadUsage",
    "calculate_statistics",
    "normalize",
    "fix_color_count",
    # Errors
    "StitchkitError",
    "InvalidColorError",
    "InvalidPatternError",
    "RangeExceededError",
    "TruncatedDataError",
    "CorruptDataError",
    "SingularMatrixError",
    "UnsupportedFormatError",
]
