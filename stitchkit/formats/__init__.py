# Import format modules to trigger handler registration.
import stitchkit.formats.dst  # noqa: F401
from stitchkit.formats.registry import (
    FormatEntry,
    FormatRegistry,
    encoder_settings_for,
    get_format,
    get_format_by_extension,
    get_format_from_path,
    get_registry,
    read_file,
    read_pattern,
    readable_formats,
    register_handlers,
    split_to_format_limits,
    writable_formats,
    write_file,
    write_pattern,
)

__all__ = [
    # Registry
    "FormatEntry",
    "FormatRegistry",
    "get_registry",
    "register_handlers",
    # Lookup
    "get_format",
    "get_format_by_extension",
    "get_format_from_path",
    "readable_formats",
    "writable_formats",
    "encoder_settings_for",
    # I/O
    "read_pattern",
    "write_pattern",
    "read_file",
    "write_file",
    "split_to_format_limits",
]
