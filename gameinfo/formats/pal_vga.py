from __future__ import annotations

from typing import Optional

from gameinfo.formats.base import DocumentHandler, GenerateResult, HandlerKind, Identification
from gameinfo.formats.image import Palette


def scale_6bit(value: int) -> int:
    """ Expand a 0..63 DAC value so 63 lands on 255 """
    return (value << 2) | (value >> 4)


class VGAPalette6bit(DocumentHandler):
    """
    VGA DAC palette: three bytes (red, green, blue) of 0..63 per colour
    """
    ID = "pal-vga-6bit"
    TITLE = "VGA 6-bit palette"
    KIND = HandlerKind.PALETTE

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if len(content) % 3:
            return Identification(False, "Size is not a multiple of 3.")
        if any(b > 0x3F for b in content):
            return Identification(False, "Contains values above 63.")
        if len(content) == 768:
            return Identification(None, "Size and values match a full 6-bit palette.")
        return Identification(None, "Values are all 6-bit.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Palette:
        data = content["main"]
        return Palette(
            (scale_6bit(data[i]), scale_6bit(data[i + 1]), scale_6bit(data[i + 2]), 0xFF)
            for i in range(0, len(data) - len(data) % 3, 3)
        )

    def check_limits(self, document: Palette, options: Optional[dict] = None) -> list[str]:
        if len(document) > 256:
            return [f"VGA palettes hold 256 colours, this one has {len(document)}."]
        return []

    def write(self, document: Palette, options: Optional[dict] = None) -> GenerateResult:
        out = bytearray()
        warnings = []
        for index, colour in enumerate(document):
            if colour is None:
                colour = (0, 0, 0, 0xFF)
            elif len(colour) > 3 and colour[3] != 0xFF:
                warnings.append(f"Colour {index} is translucent, VGA palettes can't store transparency.")
            out.extend(c >> 2 for c in colour[:3])
        return GenerateResult({"main": bytes(out)}, warnings)
