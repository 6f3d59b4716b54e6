from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class OPLEvent:
    """ One OPL register write, followed by a pause in ticks """
    reg: int
    val: int
    delay: int = 0


@dataclass
class Music:
    """
    A song as a flat stream of OPL register writes

        events: Register writes in playback order
        tempo:  Ticks per second
    """
    events: list[OPLEvent] = field(default_factory=list)
    tempo: int = 560

    @property
    def duration(self) -> float:
        """ Length in seconds """
        return sum(e.delay for e in self.events) / self.tempo

    def clone(self) -> Music:
        return Music([OPLEvent(e.reg, e.val, e.delay) for e in self.events], self.tempo)


class TextScreen():
    """
    A dump of text mode video memory (segment B800): one character byte and
    one attribute byte per cell
    """

    def __init__(self, data: bytes = b"", width: int = 80, height: int = 25):
        self.width = width
        self.height = height
        if not data:
            data = b" \x07" * (width * height)
        self.data = bytearray(data)

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.width}x{self.height}>"

    def _offset(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Cell {x},{y} is outside the {self.width}x{self.height} screen")
        return (y * self.width + x) * 2

    def get_cell(self, x: int, y: int) -> tuple[int, int]:
        offset = self._offset(x, y)
        return self.data[offset], self.data[offset + 1]

    def set_cell(self, x: int, y: int, char: int, attribute: Optional[int] = None):
        offset = self._offset(x, y)
        self.data[offset] = char
        if attribute is not None:
            self.data[offset + 1] = attribute

    def text(self) -> str:
        """ The characters only, one line per row """
        chars = bytes(self.data[0::2])
        return "\n".join(chars[y * self.width:(y + 1) * self.width].decode("cp437")
                         for y in range(len(chars) // self.width))


class MapDocument():
    """
    Base for decoded levels. Map codecs are plugins; they subclass this so
    title adapters can attach tilesets and animation data to whatever they read
    """

    def __init__(self, layers: Optional[list[Any]] = None, attributes: Optional[dict] = None):
        self.layers = layers or []
        self.attributes = attributes or {}
        self.tilesets: dict[str, Any] = {}
        self.animationDelay: Optional[int] = None

    def __repr__(self):
        return f"{self.__class__.__name__}<{len(self.layers)} layers>"


@dataclass
class Sound:
    """ A digitised or synthesised sound effect """
    samples: bytes = b""
    sampleRate: int = 0
    bitDepth: int = 8
    channels: int = 1
