from __future__ import annotations

import math
from io import BytesIO
from typing import Optional, Union

import numpy as np
from PIL import Image as PILImage
from PIL.PngImagePlugin import PngInfo

from gameinfo.formats.base import DocumentHandler, GenerateResult, HandlerKind, Identification
from gameinfo.formats.image import Frame, Image, Palette

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
TILES_KEY = "gameinfo:tiles"
GROUPS_KEY = "gameinfo:groups"


def _flat_palette(palette: Optional[Palette]) -> tuple[list[int], Optional[int]]:
    """ RGB triples padded to 256 entries, and the first transparent index """
    if not palette:
        palette = Palette((v, v, v, 0xFF) for v in range(256))
    flat = []
    for colour in palette.padded(256)[:256]:
        flat.extend(colour[:3])

    transparent = next((index for index, colour in enumerate(palette[:256])
                        if colour is not None and len(colour) > 3 and colour[3] == 0), None)
    return flat, transparent


def _read_indexed(data: bytes) -> tuple[PILImage.Image, Palette]:
    img = PILImage.open(BytesIO(data))
    img.load()
    if img.mode != "P":
        raise ValueError(f"Only palette based PNG images can be used, this one is {img.mode}")

    rgb = img.getpalette() or []
    colours = [tuple(rgb[i:i + 3]) + (0xFF,) for i in range(0, len(rgb) - len(rgb) % 3, 3)]

    transparency = img.info.get("transparency")
    if isinstance(transparency, int) and transparency < len(colours):
        r, g, b, _ = colours[transparency]
        colours[transparency] = (r, g, b, 0)
    elif isinstance(transparency, (bytes, bytearray)):
        for index, alpha in enumerate(transparency[:len(colours)]):
            r, g, b, _ = colours[index]
            colours[index] = (r, g, b, alpha)

    return img, Palette(colours)


def _write_indexed(pixels: np.ndarray, width: int, height: int, palette: Optional[Palette],
                   info: Optional[PngInfo] = None) -> bytes:
    img = PILImage.frombytes("P", (width, height), pixels.astype(np.uint8).tobytes())
    flat, transparent = _flat_palette(palette)
    img.putpalette(flat)

    out = BytesIO()
    kwargs = {"pnginfo": info} if info is not None else {}
    if transparent is not None:
        kwargs["transparency"] = transparent
    img.save(out, format="PNG", **kwargs)
    return out.getvalue()


class PNGImage(DocumentHandler):
    """
    Single frame, palette based PNG
    """
    ID = "img-png"
    TITLE = "PNG image"
    KIND = HandlerKind.IMAGE

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if content.startswith(PNG_SIGNATURE):
            return Identification(True, "PNG signature present.")
        return Identification(False, "No PNG signature.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Image:
        img, palette = _read_indexed(content["main"])
        width, height = img.size
        pixels = np.asarray(img, dtype=np.uint8).reshape(-1)
        return Image(width, height, [Frame(pixels)], palette)

    def check_limits(self, document: Image, options: Optional[dict] = None) -> list[str]:
        if isinstance(document, list):
            return ["A PNG image holds one picture, use tls-png for sprite sets."]
        if len(document.frames) != 1:
            return [f"A PNG image holds one frame, this image has {len(document.frames)}; use tls-png."]
        if document.palette is not None and len(document.palette) > 256:
            return [f"PNG palettes hold 256 colours, this one has {len(document.palette)}."]
        return document.check_pixels(256)

    def write(self, document: Image, options: Optional[dict] = None) -> GenerateResult:
        width, height = document.frame_size(0)
        return GenerateResult({"main": _write_indexed(document.frames[0].pixels, width, height, document.palette)})


class PNGTileset(DocumentHandler):
    """
    Equal sized frames laid out in a grid. The tile size and count are kept
    in a PNG text chunk so the grid can be cut up again on import
    """
    ID = "tls-png"
    TITLE = "PNG tileset"
    KIND = HandlerKind.TILESET
    PARAMS = {"columns": 16}

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if not content.startswith(PNG_SIGNATURE):
            return Identification(False, "No PNG signature.")
        if TILES_KEY.encode() in content:
            return Identification(True, "PNG with tile layout chunk.")
        return Identification(False, "PNG without tile layout chunk.")

    @staticmethod
    def _images(document: Union[Image, list[Image]]) -> list[Image]:
        return document if isinstance(document, list) else [document]

    def check_limits(self, document: Union[Image, list[Image]], options: Optional[dict] = None) -> list[str]:
        images = self._images(document)
        sizes = {img.frame_size(i) for img in images for i in range(len(img.frames))}
        problems = []
        if not sizes:
            problems.append("There are no frames to write.")
        elif len(sizes) > 1:
            problems.append("Every frame must be the same size to be laid out as tiles.")
        for img in images:
            problems.extend(img.check_pixels(256))
        return problems

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Union[Image, list[Image]]:
        img, palette = _read_indexed(content["main"])
        layout = img.text.get(TILES_KEY) if hasattr(img, "text") else None
        if layout is None:
            raise ValueError("PNG has no tile layout, it was not written as a tileset")

        tileWidth, tileHeight, count, columns = (int(v) for v in layout.split(","))
        grid = np.asarray(img, dtype=np.uint8)
        frames = []
        for index in range(count):
            x = (index % columns) * tileWidth
            y = (index // columns) * tileHeight
            frames.append(Frame(grid[y:y + tileHeight, x:x + tileWidth]))

        groups = img.text.get(GROUPS_KEY)
        if groups is None:
            return Image(tileWidth, tileHeight, frames, palette)

        images = []
        pos = 0
        for size in (int(v) for v in groups.split(",")):
            images.append(Image(tileWidth, tileHeight, frames[pos:pos + size], palette.clone()))
            pos += size
        return images

    def write(self, document: Union[Image, list[Image]], options: Optional[dict] = None) -> GenerateResult:
        opts = dict(self.PARAMS)
        opts.update(options or {})

        images = self._images(document)
        frames = [(img, i) for img in images for i in range(len(img.frames))]
        tileWidth, tileHeight = frames[0][0].frame_size(frames[0][1])
        columns = max(1, min(opts["columns"], len(frames)))
        rows = math.ceil(len(frames) / columns)

        grid = np.zeros((rows * tileHeight, columns * tileWidth), dtype=np.uint8)
        for index, (img, frameIndex) in enumerate(frames):
            x = (index % columns) * tileWidth
            y = (index // columns) * tileHeight
            grid[y:y + tileHeight, x:x + tileWidth] = img.frame_array(frameIndex)

        info = PngInfo()
        info.add_text(TILES_KEY, f"{tileWidth},{tileHeight},{len(frames)},{columns}")
        if isinstance(document, list):
            info.add_text(GROUPS_KEY, ",".join(str(len(img.frames)) for img in images))

        content = _write_indexed(grid.reshape(-1), columns * tileWidth, rows * tileHeight,
                                 images[0].palette, info)
        return GenerateResult({"main": content})
