from __future__ import annotations

from typing import Optional

import numpy as np

from gameinfo.formats.base import DocumentHandler, GenerateResult, HandlerKind, Identification
from gameinfo.formats.image import Frame, Image, Palette


def _dimensions(options: Optional[dict], defaults: dict) -> dict:
    merged = dict(defaults)
    merged.update(options or {})
    return merged


class PlanarImage4bpp(DocumentHandler):
    """
    Raw EGA screen stored plane after plane: all of plane 0, then all of
    plane 1 and so on. Plane N holds bit N of each pixel, eight pixels per
    byte with the leftmost in the high bit
    """
    ID = "img-raw-planar-4bpp"
    TITLE = "Raw planar 4bpp EGA image"
    KIND = HandlerKind.IMAGE
    PARAMS = {"width": 320, "height": 200, "planeCount": 4}

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        planeSize = 320 * 200 // 8
        if len(content) == planeSize * 4:
            return Identification(None, "Size matches a 320x200 4-plane image.")
        return Identification(False, f"Size {len(content)} is not {planeSize * 4}.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Image:
        opts = _dimensions(options, self.PARAMS)
        width, height, planeCount = opts["width"], opts["height"], opts["planeCount"]
        planeSize = width * height // 8

        data = content["main"]
        if len(data) < planeSize * planeCount:
            raise ValueError(f"Image data is {len(data)} bytes, expected {planeSize * planeCount}")

        planes = np.frombuffer(data, dtype=np.uint8, count=planeSize * planeCount).reshape(planeCount, planeSize)
        bits = np.unpackbits(planes, axis=1)
        pixels = np.zeros(width * height, dtype=np.uint8)
        for plane in range(planeCount):
            pixels |= bits[plane] << plane

        palette = Palette.ega() if planeCount == 4 else None
        return Image(width, height, [Frame(pixels)], palette)

    def check_limits(self, document: Image, options: Optional[dict] = None) -> list[str]:
        opts = _dimensions(options, self.PARAMS)
        problems = []
        if (document.width, document.height) != (opts["width"], opts["height"]):
            problems.append(f"Image must be {opts['width']}x{opts['height']}, "
                            f"not {document.width}x{document.height}.")
        if len(document.frames) != 1:
            problems.append(f"Image must have exactly one frame, not {len(document.frames)}.")
        return problems + document.check_pixels(1 << opts["planeCount"])

    def write(self, document: Image, options: Optional[dict] = None) -> GenerateResult:
        opts = _dimensions(options, self.PARAMS)
        pixels = document.frames[0].pixels
        planes = [np.packbits((pixels >> plane) & 1) for plane in range(opts["planeCount"])]
        return GenerateResult({"main": b"".join(p.tobytes() for p in planes)})


class LinearImage8bpp(DocumentHandler):
    """
    Raw VGA image, one byte per pixel
    """
    ID = "img-raw-linear-8bpp"
    TITLE = "Raw linear 8bpp VGA image"
    KIND = HandlerKind.IMAGE
    PARAMS = {"width": 320, "height": 200}

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if len(content) == 320 * 200:
            return Identification(None, "Size matches a 320x200 image.")
        return Identification(False, f"Size {len(content)} is not {320 * 200}.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Image:
        opts = _dimensions(options, self.PARAMS)
        width, height = opts["width"], opts["height"]
        data = content["main"]
        if len(data) < width * height:
            raise ValueError(f"Image data is {len(data)} bytes, expected {width * height}")

        pixels = np.frombuffer(data, dtype=np.uint8, count=width * height)
        return Image(width, height, [Frame(pixels)], opts.get("palette"))

    def check_limits(self, document: Image, options: Optional[dict] = None) -> list[str]:
        opts = _dimensions(options, self.PARAMS)
        problems = []
        if (document.width, document.height) != (opts["width"], opts["height"]):
            problems.append(f"Image must be {opts['width']}x{opts['height']}, "
                            f"not {document.width}x{document.height}.")
        if len(document.frames) != 1:
            problems.append(f"Image must have exactly one frame, not {len(document.frames)}.")
        return problems + document.check_pixels(256)

    def write(self, document: Image, options: Optional[dict] = None) -> GenerateResult:
        return GenerateResult({"main": document.frames[0].pixels.tobytes()})
