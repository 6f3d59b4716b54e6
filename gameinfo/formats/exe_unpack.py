from __future__ import annotations

import logging
from typing import Optional

from gameinfo.formats import FormatRegistry
from gameinfo.formats.base import CompressionHandler, FormatUnavailableError

logger = logging.getLogger(__name__)

# (registry id, offset, signature) of DOS executable packers
PACKERS = (
    ("cmp-lzexe", 0x1C, b"LZ09"),
    ("cmp-lzexe", 0x1C, b"LZ91"),
    ("cmp-pklite", 0x1E, b"PKLITE"),
)


class PackedExecutableError(FormatUnavailableError):
    ...


def detect_packer(data: bytes) -> Optional[str]:
    """ Registry id of the packer that compressed this executable, if any """
    if not data.startswith((b"MZ", b"ZM")):
        return None
    for packerId, offset, signature in PACKERS:
        if data[offset:offset + len(signature)] == signature:
            return packerId
    return None


def decompress_exe(data: bytes, registry: FormatRegistry, filename: str = "executable") -> bytes:
    """
    Return the unpacked image of a DOS executable. Executables that aren't
    packed come back unchanged
    """
    packerId = detect_packer(data)
    if packerId is None:
        return data

    handler = registry.find(packerId)
    if not isinstance(handler, CompressionHandler):
        raise PackedExecutableError(
            f"{filename} is compressed with {packerId.split('-', 1)[1].upper()}, "
            f"install a handler for \"{packerId}\" or decompress it first")

    logger.debug("Unpacking %s with %s", filename, packerId)
    return handler.reveal(data)
