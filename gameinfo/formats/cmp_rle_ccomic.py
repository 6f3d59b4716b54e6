from __future__ import annotations

import struct
from typing import Optional

from gameinfo.formats.base import CompressionHandler, Identification


class RLEDecodeError(ValueError):
    ...


class RLECComic(CompressionHandler):
    """
    Captain Comic full screen RLE: a u16le plane size, then each of the four
    EGA planes run length coded on its own
    """
    ID = "cmp-rle-ccomic"
    TITLE = "Captain Comic RLE compression"

    PLANES = 4
    MAX_RUN = 0x7F

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        try:
            self.reveal(content)
        except RLEDecodeError as e:
            return Identification(False, str(e))
        return Identification(None, "Data decompresses cleanly, but that is not conclusive.")

    def reveal(self, data: bytes) -> bytes:
        if len(data) < 2:
            raise RLEDecodeError("Data too short for the plane size header")

        planeSize = struct.unpack_from("<H", data, 0)[0]
        out = bytearray()
        pos = 2
        for plane in range(self.PLANES):
            target = len(out) + planeSize
            while len(out) < target:
                if pos >= len(data):
                    raise RLEDecodeError(f"Data ended in the middle of plane {plane}")
                control = data[pos]
                pos += 1
                if control & 0x80:
                    if pos >= len(data):
                        raise RLEDecodeError(f"Data ended in the middle of a run in plane {plane}")
                    out.extend(data[pos:pos + 1] * (control & 0x7F))
                    pos += 1
                else:
                    out.extend(data[pos:pos + control])
                    pos += control
            if len(out) != target:
                raise RLEDecodeError(f"Plane {plane} overflows its size of {planeSize} bytes")

        return bytes(out)

    def obscure(self, data: bytes) -> bytes:
        if len(data) % self.PLANES:
            raise ValueError(f"Data length {len(data)} is not a multiple of {self.PLANES} planes")

        planeSize = len(data) // self.PLANES
        out = bytearray(struct.pack("<H", planeSize))
        for plane in range(self.PLANES):
            out += self._encode_plane(data[plane * planeSize:(plane + 1) * planeSize])
        return bytes(out)

    def _encode_plane(self, plane: bytes) -> bytearray:
        out = bytearray()
        literal = bytearray()

        def flush():
            if literal:
                out.append(len(literal))
                out.extend(literal)
                literal.clear()

        pos = 0
        while pos < len(plane):
            run = 1
            while pos + run < len(plane) and run < self.MAX_RUN and plane[pos + run] == plane[pos]:
                run += 1

            # A run of two costs as much as two literals
            if run >= 3:
                flush()
                out.append(0x80 | run)
                out.append(plane[pos])
                pos += run
            else:
                literal.append(plane[pos])
                pos += 1
                if len(literal) == self.MAX_RUN:
                    flush()
        flush()
        return out
