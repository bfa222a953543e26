"""
Format registry: format metadata from YAML plus reader/writer dispatch.

Two tables live here:

- FormatRegistry holds what each format *is*: names, extensions,
  capabilities and encoder defaults, loaded from data/formats.yaml and
  cross-validated once at import. It is read-only after construction.
- The handler table maps a format id to a (reader, writer) pair of plain
  functions. Format modules self-register at import time by calling
  register_handlers(); import stitchkit.formats to load the built-in ones.

──────────────────────────────────────────────────────────────────────────────
Handler contract
──────────────────────────────────────────────────────────────────────────────
    def read(stream: BinaryIO, pattern: Pattern, options: Mapping[str, Any]) -> None
    def write(pattern: Pattern, stream: BinaryIO, options: Mapping[str, Any]) -> None

Readers fill a caller-owned Pattern through its construction API only.
If a reader fails midway the pattern may already hold some of the design;
callers must discard it rather than reuse it. Writers receive a pattern
already transcoded with the format's EncoderSettings.
──────────────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, BinaryIO, NamedTuple, Optional, Union, cast

import yaml

from stitchkit.core.errors import UnsupportedFormatError
from stitchkit.core.pattern import Pattern
from stitchkit.transcode.settings import EncoderSettings
from stitchkit.transcode.transcoder import transcode

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent / "data"

_ENCODER_FIELDS = frozenset(f.name for f in fields(EncoderSettings))

Reader = Callable[[BinaryIO, Pattern, Mapping[str, Any]], None]
Writer = Callable[[Pattern, BinaryIO, Mapping[str, Any]], None]


@dataclass(frozen=True)
class FormatEntry:
    id: str
    name: str
    extensions: tuple[str, ...]
    description: str
    can_read: bool
    can_write: bool
    encoder: MappingProxyType[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.encoder, MappingProxyType):
            object.__setattr__(self, "encoder", MappingProxyType(dict(self.encoder)))


class FormatHandlers(NamedTuple):
    reader: Optional[Reader]
    writer: Optional[Writer]


class FormatRegistry:
    """
    Read-only table of format metadata.

    Instantiate directly to use a custom data directory (e.g. in tests);
    otherwise use get_registry() for the module singleton.
    """

    def __init__(self, data_dir: Path = _DATA_DIR) -> None:
        self._data_dir = data_dir
        self.formats: MappingProxyType[str, FormatEntry]
        self.extensions: MappingProxyType[str, str]
        self._load_formats()
        self._validate()

    # ── Loading ────────────────────────────────────────────────────────────────

    def _load_yaml(self, filename: str) -> dict[str, Any]:
        path = self._data_dir / filename
        try:
            with open(path) as f:
                return cast(dict[str, Any], yaml.safe_load(f))
        except FileNotFoundError:
            raise FileNotFoundError(f"Format data file not found: {path}") from None
        except yaml.YAMLError as exc:
            raise ValueError(f"Failed to parse format data file {path}: {exc}") from exc

    def _load_formats(self) -> None:
        data = self._load_yaml("formats.yaml")
        result: dict[str, FormatEntry] = {}
        for entry in data["entries"]:
            fid = str(entry["id"]).lower()
            result[fid] = FormatEntry(
                id=fid,
                name=entry.get("name", fid.upper()),
                extensions=tuple(str(e).lower() for e in entry.get("extensions", [])),
                description=entry.get("description", "").strip(),
                can_read=bool(entry["can_read"]),
                can_write=bool(entry["can_write"]),
                encoder=MappingProxyType(dict(entry.get("encoder", {}))),
            )
        self.formats = MappingProxyType(result)
        extensions: dict[str, str] = {}
        for fid, fmt in result.items():
            for ext in fmt.extensions:
                extensions.setdefault(ext, fid)
        self.extensions = MappingProxyType(extensions)

    # ── Validation ─────────────────────────────────────────────────────────────

    def _validate(self) -> None:
        """Raise ValueError listing every problem found in the format table."""
        errors: list[str] = []
        seen_ext: dict[str, str] = {}
        for fid, fmt in self.formats.items():
            if not fmt.extensions:
                errors.append(f"format {fid!r}: no extensions")
            for ext in fmt.extensions:
                if ext.startswith("."):
                    errors.append(f"format {fid!r}: extension {ext!r} must not start with '.'")
                if ext in seen_ext:
                    errors.append(f"format {fid!r}: extension {ext!r} already used by {seen_ext[ext]!r}")
                seen_ext[ext] = fid
            unknown = set(fmt.encoder) - _ENCODER_FIELDS
            if unknown:
                errors.append(f"format {fid!r}: unknown encoder keys {sorted(unknown)}")
                continue
            try:
                EncoderSettings(**fmt.encoder)
            except ValueError as exc:
                errors.append(f"format {fid!r}: invalid encoder defaults: {exc}")
        if errors:
            raise ValueError(
                "Format registry validation failed:\n" + "\n".join(f"  • {e}" for e in errors)
            )

    # ── Query API ──────────────────────────────────────────────────────────────

    def get(self, name: str) -> FormatEntry:
        try:
            return self.formats[name.lower()]
        except KeyError:
            raise UnsupportedFormatError(f"Unknown format: {name!r}") from None

    def get_by_extension(self, extension: str) -> FormatEntry:
        ext = extension.lower().lstrip(".")
        try:
            return self.formats[self.extensions[ext]]
        except KeyError:
            raise UnsupportedFormatError(f"No format for extension: {extension!r}") from None

    def get_from_path(self, path: Union[str, Path]) -> FormatEntry:
        suffix = Path(path).suffix
        if not suffix:
            raise UnsupportedFormatError(f"Path has no extension: {str(path)!r}")
        return self.get_by_extension(suffix)


# ── Module-level singleton ─────────────────────────────────────────────────────

_registry: FormatRegistry = FormatRegistry()

_HANDLERS: dict[str, FormatHandlers] = {}


def get_registry() -> FormatRegistry:
    """Return the module-level registry singleton."""
    return _registry


def register_handlers(name: str, reader: Optional[Reader] = None, writer: Optional[Writer] = None) -> None:
    """Register the reader and/or writer for a format listed in formats.yaml.

    Raises
    ------
    UnsupportedFormatError
        If the format is not in the registry.
    ValueError
        If a reader or writer is given for a format that cannot read or write.
    """
    fmt = _registry.get(name)
    if reader is not None and not fmt.can_read:
        raise ValueError(f"format {fmt.id!r} is not readable")
    if writer is not None and not fmt.can_write:
        raise ValueError(f"format {fmt.id!r} is not writable")
    current = _HANDLERS.get(fmt.id, FormatHandlers(None, None))
    _HANDLERS[fmt.id] = FormatHandlers(
        reader if reader is not None else current.reader,
        writer if writer is not None else current.writer,
    )


def get_format(name: str) -> FormatEntry:
    return _registry.get(name)


def get_format_by_extension(extension: str) -> FormatEntry:
    return _registry.get_by_extension(extension)


def get_format_from_path(path: Union[str, Path]) -> FormatEntry:
    return _registry.get_from_path(path)


def readable_formats() -> list[str]:
    """Sorted ids of formats that can be read and have a registered reader."""
    return sorted(
        fid
        for fid, fmt in _registry.formats.items()
        if fmt.can_read and _HANDLERS.get(fid, FormatHandlers(None, None)).reader is not None
    )


def writable_formats() -> list[str]:
    """Sorted ids of formats that can be written and have a registered writer."""
    return sorted(
        fid
        for fid, fmt in _registry.formats.items()
        if fmt.can_write and _HANDLERS.get(fid, FormatHandlers(None, None)).writer is not None
    )


def encoder_settings_for(name: str, **overrides: Any) -> EncoderSettings:
    """EncoderSettings built from the format's defaults, with overrides applied."""
    return EncoderSettings(**{**_registry.get(name).encoder, **overrides})


def _handlers(name: str) -> tuple[FormatEntry, FormatHandlers]:
    fmt = _registry.get(name)
    return fmt, _HANDLERS.get(fmt.id, FormatHandlers(None, None))


# ── Reading and writing ────────────────────────────────────────────────────────


def read_pattern(
    stream: BinaryIO,
    name: str,
    pattern: Pattern,
    options: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Read a design in format `name` from stream into pattern.

    The pattern is filled in place. On failure it may be partially filled and
    should be discarded.
    """
    fmt, handlers = _handlers(name)
    if handlers.reader is None:
        raise UnsupportedFormatError(f"No reader registered for format: {fmt.id!r}")
    handlers.reader(stream, pattern, options or {})
    logger.debug("read %s: %d entries, %d threads", fmt.id, len(pattern), len(pattern.threads))


def write_pattern(
    pattern: Pattern,
    stream: BinaryIO,
    name: str,
    options: Optional[Mapping[str, Any]] = None,
    settings: Optional[EncoderSettings] = None,
) -> Pattern:
    """
    Transcode pattern for format `name` and write it to stream.

    settings overrides the format's default EncoderSettings. Returns the
    transcoded pattern that was written; the input pattern is not modified.
    """
    fmt, handlers = _handlers(name)
    if handlers.writer is None:
        raise UnsupportedFormatError(f"No writer registered for format: {fmt.id!r}")
    encoded = transcode(pattern, settings if settings is not None else encoder_settings_for(fmt.id))
    handlers.writer(encoded, stream, options or {})
    logger.debug("wrote %s: %d entries", fmt.id, len(encoded))
    return encoded


def read_file(path: Union[str, Path], options: Optional[Mapping[str, Any]] = None) -> Pattern:
    """Read a file, choosing the format from its extension."""
    fmt = get_format_from_path(path)
    pattern = Pattern()
    with open(path, "rb") as f:
        read_pattern(f, fmt.id, pattern, options)
    return pattern


def write_file(
    pattern: Pattern,
    path: Union[str, Path],
    options: Optional[Mapping[str, Any]] = None,
    settings: Optional[EncoderSettings] = None,
) -> Pattern:
    """Write pattern to a file, choosing the format from its extension."""
    fmt = get_format_from_path(path)
    with open(path, "wb") as f:
        return write_pattern(pattern, f, fmt.id, options, settings)


def split_to_format_limits(pattern: Pattern, name: str) -> None:
    """Split long stitches in place to the format's max_stitch."""
    settings = encoder_settings_for(name)
    pattern.split_long_stitches(settings.max_stitch)
