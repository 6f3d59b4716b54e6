"""
Which tiles in the Dangerous Dave tilesets make up which sprites.

The tileset files are flat lists of tiles. Sprites are a set of colour
tiles, optionally a matching set of mask tiles, and an animation order. The
EGA and CGA tilesets hold every sprite several times over, pre-shifted by a
pixel or two (four copies in EGA, two in CGA); the copies of one animation
are interleaved, so frame F of shift S sits at `base + S + F * shifts`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SpriteSlice:
    colours: list[int]
    masks: list[int] = field(default_factory=list)
    order: list[int] = field(default_factory=list)
    delay: Optional[int] = None


MAP_TILES = [SpriteSlice(list(range(53)))]

# frames, animation order, delay in ms for each player animation:
# walking right, facing user, walking left, jumping right, jumping left,
# climbing, flying right, flying left
PLAYER_ANIMATIONS = (
    (3, [0, 1, 2, 1], 200),
    (1, [], None),
    (3, [0, 1, 2, 1], 200),
    (1, [], None),
    (1, [], None),
    (3, [0, 1, 2], 150),
    (3, [0, 1, 2], 50),
    (3, [0, 1, 2], 50),
)

MONSTER_COUNT = 8


@dataclass(frozen=True)
class _Layout:
    shifts: int
    player: tuple[tuple[int, int], ...]  # (first colour tile, first mask tile)
    monsters: int
    bulletRight: int
    bulletLeft: int
    playerBulletLeft: int
    playerBulletRight: int
    explosion: int
    ui: tuple[tuple[int, ...], ...]
    title: int
    font: int


LAYOUTS = {
    "vga": _Layout(
        shifts=1,
        player=((53, 60), (56, 63), (57, 64), (67, 69), (68, 70), (71, 74), (77, 83), (80, 86)),
        monsters=89, bulletRight=121, bulletLeft=124,
        playerBulletLeft=127, playerBulletRight=128, explosion=129,
        ui=tuple((i,) for i in range(133, 144)),
        title=144, font=148,
    ),
    "ega": _Layout(
        shifts=4,
        player=((53, 81), (65, 93), (69, 97), (109, 117), (113, 121), (125, 137), (149, 173), (161, 185)),
        monsters=197, bulletRight=325, bulletLeft=337,
        playerBulletLeft=349, playerBulletRight=353, explosion=357,
        ui=tuple((i,) for i in range(373, 382)) + ((382, 383, 384, 385), (386,)),
        title=387, font=391,
    ),
    "cga": _Layout(
        shifts=2,
        player=((53, 67), (59, 73), (61, 75), (81, 85), (83, 87), (89, 95), (101, 113), (107, 119)),
        monsters=125, bulletRight=189, bulletLeft=195,
        playerBulletLeft=201, playerBulletRight=203, explosion=205,
        ui=tuple((i,) for i in range(213, 222)) + ((222, 223), (224,)),
        title=225, font=229,
    ),
}


def _shifted(shifts: int, colour: int, frames: int, mask: Optional[int] = None,
             order: Optional[list[int]] = None, delay: Optional[int] = None) -> list[SpriteSlice]:
    """ One slice per pre-shifted copy of an animation """
    slices = []
    for shift in range(shifts):
        colours = [colour + shift + f * shifts for f in range(frames)]
        masks = [mask + shift + f * shifts for f in range(frames)] if mask is not None else []
        slices.append(SpriteSlice(colours, masks, list(order or []), delay))
    return slices


def _split(layout: _Layout) -> dict[str, list[SpriteSlice]]:
    k = layout.shifts

    player = []
    for (colour, mask), (frames, order, delay) in zip(layout.player, PLAYER_ANIMATIONS):
        player += _shifted(k, colour, frames, mask, order, delay)

    monsters = []
    for index in range(MONSTER_COUNT):
        monsters += _shifted(k, layout.monsters + index * 4 * k, 4, order=[0, 1, 2, 3], delay=120)
    monsters += _shifted(k, layout.bulletRight, 3, order=[0, 1, 2], delay=80)
    monsters += _shifted(k, layout.bulletLeft, 3, order=[0, 1, 2], delay=80)
    monsters += _shifted(k, layout.playerBulletLeft, 1)
    monsters += _shifted(k, layout.playerBulletRight, 1)
    monsters += _shifted(k, layout.explosion, 4, order=[0, 1, 2, 3], delay=150)

    return {
        "map": list(MAP_TILES),
        "player": player,
        "monsters": monsters,
        "ui": [SpriteSlice(list(tiles)) for tiles in layout.ui],
        "title": [SpriteSlice(list(range(layout.title, layout.title + 4)), order=[0, 1, 2, 3], delay=80)],
        "font": [SpriteSlice(list(range(layout.font, layout.font + 10)))],
    }


TILESET_SPLIT: dict[str, dict[str, list[SpriteSlice]]] = {xga: _split(layout) for xga, layout in LAYOUTS.items()}
