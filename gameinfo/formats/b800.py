from __future__ import annotations

from typing import Optional

from gameinfo.formats.base import DocumentHandler, GenerateResult, HandlerKind, Identification
from gameinfo.formats.documents import TextScreen


class B800Text(DocumentHandler):
    """
    Raw copy of 80x25 colour text mode memory
    """
    ID = "b800-text"
    TITLE = "B800 text screen"
    KIND = HandlerKind.TEXT
    PARAMS = {"width": 80, "height": 25}

    def _size(self, options: Optional[dict]) -> tuple[int, int]:
        opts = dict(self.PARAMS)
        opts.update(options or {})
        return opts["width"], opts["height"]

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        width, height = self._size(None)
        if len(content) == width * height * 2:
            return Identification(None, "Size matches a full text screen.")
        return Identification(False, f"Size {len(content)} is not {width * height * 2}.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> TextScreen:
        width, height = self._size(options)
        data = content["main"]
        cells = width * height * 2
        if len(data) < cells:
            # Short dumps only cover the top of the screen
            data = data + b" \x07" * ((cells - len(data)) // 2)
        return TextScreen(data[:cells], width, height)

    def check_limits(self, document: TextScreen, options: Optional[dict] = None) -> list[str]:
        width, height = self._size(options)
        if (document.width, document.height) != (width, height):
            return [f"Screen must be {width}x{height}, not {document.width}x{document.height}."]
        if len(document.data) != width * height * 2:
            return [f"Screen data must be {width * height * 2} bytes, not {len(document.data)}."]
        return []

    def write(self, document: TextScreen, options: Optional[dict] = None) -> GenerateResult:
        return GenerateResult({"main": bytes(document.data)})
