from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

RGBA = tuple[int, int, int, int]

TRANSPARENT: RGBA = (0xFF, 0x01, 0xFF, 0x00)


def _rgb(value: int) -> RGBA:
    return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF, 0xFF)


class Palette(list):
    """
    List of RGBA colours. Sparse palettes (files that only redefine part of
    the colour table) hold None for the entries they leave alone
    """

    def clone(self) -> Palette:
        return Palette(self)

    def overlay(self, other: Iterable[Optional[RGBA]]) -> Palette:
        """ Copy every defined entry of `other` over this palette """
        for index, colour in enumerate(other):
            if colour is None:
                continue
            if index >= len(self):
                self.extend([None] * (index + 1 - len(self)))
            self[index] = colour
        return self

    def padded(self, size: int = 256) -> Palette:
        out = Palette(c if c is not None else (0, 0, 0, 0xFF) for c in self)
        out.extend([(0, 0, 0, 0xFF)] * max(0, size - len(out)))
        return out

    @classmethod
    def ega(cls) -> Palette:
        return cls(_rgb(c) for c in (
            0x000000, 0x0000AA, 0x00AA00, 0x00AAAA, 0xAA0000, 0xAA00AA, 0xAA5500, 0xAAAAAA,
            0x555555, 0x5555FF, 0x55FF55, 0x55FFFF, 0xFF5555, 0xFF55FF, 0xFFFF55, 0xFFFFFF
        ))

    @classmethod
    def cga(cls) -> Palette:
        return cls(_rgb(c) for c in (0x000000, 0x55FFFF, 0xFF55FF, 0xFFFFFF))


class Frame():

    def __init__(self, pixels=None, width: Optional[int] = None, height: Optional[int] = None,
                 offsetX: int = 0, offsetY: int = 0):
        """
        One frame of an image

            pixels:  Palette indices, one byte per pixel, row by row
            width:   Frame width, or None to use the image's
            height:  Frame height, or None to use the image's
            offsetX: Draw offset from the image hotspot
            offsetY: Draw offset from the image hotspot
        """
        if pixels is None:
            pixels = np.zeros(0, dtype=np.uint8)
        elif isinstance(pixels, (bytes, bytearray, memoryview)):
            pixels = np.frombuffer(pixels, dtype=np.uint8)
        self.pixels = np.asarray(pixels, dtype=np.uint8).reshape(-1).copy()
        self.width = width
        self.height = height
        self.offsetX = offsetX
        self.offsetY = offsetY

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.width}x{self.height}, {self.pixels.size} px>"

    def clone(self) -> Frame:
        return Frame(self.pixels, self.width, self.height, self.offsetX, self.offsetY)


@dataclass
class AnimationStep:
    index: int
    postDelay: int


class Image():
    """
    A picture, sprite or tileset: one or more frames sharing a palette
    """

    def __init__(
        self,
        width: int,
        height: int,
        frames: Optional[list[Frame]] = None,
        palette: Optional[Palette] = None,
        animation: Optional[list[AnimationStep]] = None,
        hotspotX: Optional[int] = None,
        hotspotY: Optional[int] = None,
        fixedWidth: Optional[int] = None,
    ):
        self.width = width
        self.height = height
        self.frames: list[Frame] = frames if frames is not None else []
        self.palette = palette
        self.animation: list[AnimationStep] = animation or []
        self.hotspotX = hotspotX
        self.hotspotY = hotspotY
        self.fixedWidth = fixedWidth

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.width}x{self.height}, {len(self.frames)} frames>"

    def frame_size(self, index: int) -> tuple[int, int]:
        frame = self.frames[index]
        width = frame.width if frame.width is not None else self.width
        height = frame.height if frame.height is not None else self.height
        return width, height

    def frame_array(self, index: int) -> np.ndarray:
        """ Frame pixels as a height x width array (a view, edits stick) """
        width, height = self.frame_size(index)
        return self.frames[index].pixels.reshape(height, width)

    def clone(self, frames: Optional[list[Frame]] = None) -> Image:
        """
        Copy of this image. Frames are copied too unless replacements are given
        """
        return Image(
            self.width,
            self.height,
            [f.clone() for f in self.frames] if frames is None else frames,
            self.palette.clone() if self.palette is not None else None,
            list(self.animation),
            self.hotspotX,
            self.hotspotY,
            self.fixedWidth,
        )

    def check_pixels(self, limit: int) -> list[str]:
        """ Problems with any pixel index not below `limit` """
        problems = []
        for index, frame in enumerate(self.frames):
            width, height = self.frame_size(index)
            if frame.pixels.size != width * height:
                problems.append(f"Frame {index} has {frame.pixels.size} pixels but should have {width * height}.")
            if frame.pixels.size and int(frame.pixels.max()) >= limit:
                problems.append(f"Frame {index} uses colour {int(frame.pixels.max())} but only {limit} are available.")
        return problems


def frame_from_mask(visible: Frame, mask: Frame, maskValue: int, transparentIndex: int) -> Frame:
    """
    Combine a colour frame with its mask frame into one frame where masked
    pixels become `transparentIndex`
    """
    out = visible.clone()
    out.pixels = np.where(mask.pixels == maskValue, transparentIndex, visible.pixels).astype(np.uint8)
    return out


def mask_from_frame(frame: Frame, transparentIndex: int, maskValue: int,
                    background: int = 0) -> tuple[Frame, Frame]:
    """
    Split a frame with transparent pixels back into a colour frame and a mask frame
    """
    hidden = frame.pixels == transparentIndex
    visible = frame.clone()
    visible.pixels = np.where(hidden, background, frame.pixels).astype(np.uint8)
    mask = frame.clone()
    mask.pixels = np.where(hidden, maskValue, 0).astype(np.uint8)
    return visible, mask
