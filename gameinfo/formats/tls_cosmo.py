from __future__ import annotations

from typing import Optional

import numpy as np

from gameinfo.formats.base import DocumentHandler, GenerateResult, HandlerKind, Identification
from gameinfo.formats.image import TRANSPARENT, Frame, Image, Palette

TILE_WIDTH = 8
TILE_HEIGHT = 8


def decode_rowplanar(data: bytes, count: int, planes: int, masked: bool) -> np.ndarray:
    """
    Decode `count` 8x8 tiles stored row by row, one byte per plane per row.
    With `masked` the first plane of each row is a mask where a set bit
    marks a transparent pixel, which comes back as index 16

    Returns a count x 64 array of palette indices
    """
    rows = np.frombuffer(data, dtype=np.uint8, count=count * TILE_HEIGHT * planes)
    rows = rows.reshape(count * TILE_HEIGHT, planes)
    bits = np.unpackbits(rows[:, :, None], axis=2)  # tile-rows x planes x 8 pixels

    colourPlanes = bits[:, 1:, :] if masked else bits
    pixels = np.zeros((count * TILE_HEIGHT, TILE_WIDTH), dtype=np.uint8)
    for plane in range(colourPlanes.shape[1]):
        pixels |= colourPlanes[:, plane, :] << plane
    if masked:
        pixels[bits[:, 0, :] == 1] = 16

    return pixels.reshape(count, TILE_WIDTH * TILE_HEIGHT)


def encode_rowplanar(tiles: np.ndarray, planes: int, masked: bool) -> bytes:
    """ Inverse of `decode_rowplanar`, `tiles` being count x 64 """
    count = tiles.shape[0]
    rows = tiles.reshape(count * TILE_HEIGHT, TILE_WIDTH)
    out = np.zeros((count * TILE_HEIGHT, planes), dtype=np.uint8)

    first = 0
    if masked:
        hidden = rows == 16
        out[:, 0] = np.packbits(hidden, axis=1)[:, 0]
        rows = np.where(hidden, 0, rows)
        first = 1
    for plane in range(planes - first):
        out[:, first + plane] = np.packbits((rows >> plane) & 1, axis=1)[:, 0]

    return out.tobytes()


class CosmoTiles(DocumentHandler):
    """
    Cosmo solid tiles: 8x8 EGA tiles of 32 bytes, four planes per row
    """
    ID = "tls-cosmo"
    TITLE = "Cosmo's Cosmic Adventure solid tileset"
    KIND = HandlerKind.TILESET
    PLANES = 4
    MASKED = False

    @property
    def tileSize(self) -> int:
        return TILE_HEIGHT * self.PLANES

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if len(content) == 0 or len(content) % self.tileSize:
            return Identification(False, f"Size is not a multiple of {self.tileSize} bytes.")
        return Identification(None, "Size is a whole number of tiles.")

    def palette(self) -> Palette:
        return Palette.ega()

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Image:
        data = content["main"]
        count = len(data) // self.tileSize
        tiles = decode_rowplanar(data, count, self.PLANES, self.MASKED)
        return Image(TILE_WIDTH, TILE_HEIGHT, [Frame(t) for t in tiles], self.palette())

    def check_limits(self, document: Image, options: Optional[dict] = None) -> list[str]:
        problems = []
        if (document.width, document.height) != (TILE_WIDTH, TILE_HEIGHT):
            problems.append(f"Tiles must be {TILE_WIDTH}x{TILE_HEIGHT}, not {document.width}x{document.height}.")
        for index in range(len(document.frames)):
            if document.frame_size(index) != (TILE_WIDTH, TILE_HEIGHT):
                problems.append(f"Tile {index} is not {TILE_WIDTH}x{TILE_HEIGHT}.")
        return problems + document.check_pixels(17 if self.MASKED else 16)

    def write(self, document: Image, options: Optional[dict] = None) -> GenerateResult:
        if not document.frames:
            return GenerateResult({"main": b""})
        tiles = np.stack([f.pixels for f in document.frames])
        return GenerateResult({"main": encode_rowplanar(tiles, self.PLANES, self.MASKED)})


class CosmoMaskedTiles(CosmoTiles):
    """
    Cosmo masked tiles: 8x8 tiles of 40 bytes, a mask plane and four colour
    planes per row
    """
    ID = "tls-cosmo-masked"
    TITLE = "Cosmo's Cosmic Adventure masked tileset"
    PLANES = 5
    MASKED = True

    def palette(self) -> Palette:
        palette = Palette.ega()
        palette.append(TRANSPARENT)
        return palette


class CosmoBackdrop(DocumentHandler):
    """
    Cosmo backdrops: 40x18 solid tiles making up a 320x144 picture
    """
    ID = "img-cosmo-backdrop"
    TITLE = "Cosmo's Cosmic Adventure backdrop"
    KIND = HandlerKind.IMAGE
    PARAMS = {"tilesWide": 40, "tilesHigh": 18}

    def _geometry(self, options: Optional[dict]) -> tuple[int, int]:
        opts = dict(self.PARAMS)
        opts.update(options or {})
        return opts["tilesWide"], opts["tilesHigh"]

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        wide, high = self._geometry(None)
        expected = wide * high * TILE_HEIGHT * 4
        if len(content) == expected:
            return Identification(None, "Size matches a backdrop.")
        return Identification(False, f"Size {len(content)} is not {expected}.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Image:
        wide, high = self._geometry(options)
        tiles = decode_rowplanar(content["main"], wide * high, 4, False)
        picture = tiles.reshape(high, wide, TILE_HEIGHT, TILE_WIDTH).transpose(0, 2, 1, 3)
        width, height = wide * TILE_WIDTH, high * TILE_HEIGHT
        return Image(width, height, [Frame(picture.reshape(-1))], Palette.ega())

    def check_limits(self, document: Image, options: Optional[dict] = None) -> list[str]:
        wide, high = self._geometry(options)
        problems = []
        if (document.width, document.height) != (wide * TILE_WIDTH, high * TILE_HEIGHT):
            problems.append(f"Backdrop must be {wide * TILE_WIDTH}x{high * TILE_HEIGHT}, "
                            f"not {document.width}x{document.height}.")
        if len(document.frames) != 1:
            problems.append("Backdrop must have exactly one frame.")
        return problems + document.check_pixels(16)

    def write(self, document: Image, options: Optional[dict] = None) -> GenerateResult:
        wide, high = self._geometry(options)
        picture = document.frames[0].pixels.reshape(high, TILE_HEIGHT, wide, TILE_WIDTH)
        tiles = picture.transpose(0, 2, 1, 3).reshape(wide * high, TILE_WIDTH * TILE_HEIGHT)
        return GenerateResult({"main": encode_rowplanar(tiles, 4, False)})
