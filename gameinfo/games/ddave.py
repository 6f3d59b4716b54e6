from __future__ import annotations

import logging
from functools import partial
from typing import Optional

from gameinfo.archive import Archive, ArchiveSearch, MissingAssetError, generate_archive
from gameinfo.formats.base import ExeFields, FormatLimitError, Identification
from gameinfo.formats.exe_unpack import decompress_exe
from gameinfo.formats.image import (TRANSPARENT, AnimationStep, Frame, Image, Palette,
                                    frame_from_mask, mask_from_frame)
from gameinfo.game import Game, GameOpenError, PreflightWarning, SaveResult, Severity
from gameinfo.games.ddave_tileset import TILESET_SPLIT
from gameinfo.item import (ArchiveContent, AssetItem, CallbackDocument, FolderItem,
                           ItemType)

logger = logging.getLogger(__name__)

# Palette index used in mask tiles to mark a see-through pixel, and the index
# such pixels get once the mask is applied
TRANSPARENT_INDICES = {
    "cga": (3, 4),      # one more than the full palette
    "ega": (15, 16),    # one more than the full palette
    "vga": (255, 230),  # a colour the original game never uses
}

FRIENDLY_NAMES = {
    "map": "Map tiles",
    "player": "Player sprites",
    "monsters": "Monster sprites",
    "ui": "Interface",
    "title": "Title screen",
    "font": "Status bar font",
}

# Player start positions are edited through the maps instead
HIDDEN_ATTRIBUTES = ("map.startX.", "map.startY.")

# First tile of each animated map tile, and the tiles that follow it
ANIMATED_TILES = {
    6: range(7, 10),    # fire
    10: range(11, 15),  # trophy
    25: range(26, 29),  # weeds
    36: range(37, 41),  # water
}

LEVEL_COUNT = 11
MAP_TILE_COUNT = 53

UNIDENTIFIED_WARNING = (
    "{filename} could not be positively identified.  It may be an unsupported "
    "version, modified, or corrupted.  Proceeding, you may encounter "
    "corruption.  If this is an official, unmodified version of the game, "
    "please report it so we can add support for it."
)

SCORES_DETAIL = (
    "The filename used to save high scores to has not been changed.  This "
    "will cause your mod to share its high scores with the original "
    "unmodified game if it is run in the same folder as the original game.\n\n"
    "It is recommended to change the filename so that it is unique to your "
    "mod to avoid this conflict.\n\n"
    "The value is located in the \"Attributes\" item under the "
    "\"filename.scores\" entry."
)


def level_suffix(index: int) -> str:
    """ Level 0 is the title screen demo, stored as levelt.dav """
    return f"{index:02d}" if index else "t"


class DangerousDave(Game):
    """
    Dangerous Dave. Nearly everything lives inside dave.exe: the CGA and VGA
    tilesets, the palette, the levels. Only the EGA tileset is a separate file
    """
    ID = "game-ddave"
    TITLE = "Dangerous Dave"

    EXE_FILENAME = "dave.exe"
    EGA_FILENAME = "egadave.dav"

    def __init__(self, filesystem, registry=None):
        super().__init__(filesystem, registry)
        self.exeContent: Optional[bytes] = None
        self.exeArchive: Optional[Archive] = None
        self.exeFields: Optional[ExeFields] = None
        self.tilesets: dict[str, Image] = {}
        self.palette: Optional[Palette] = None
        self.egaContent: Optional[bytes] = None
        self._egaModified = False

    @classmethod
    def identify(cls, filesystem) -> Identification:
        if filesystem.exists(cls.EXE_FILENAME):
            return Identification(True, f"Found {cls.EXE_FILENAME}.")
        return Identification(False, f"Unable to find {cls.EXE_FILENAME}.")

    @property
    def search(self) -> ArchiveSearch:
        return ArchiveSearch([self.exeArchive], self.EXE_FILENAME)

    def open(self) -> list[str]:
        warnings = []
        filename = self.EXE_FILENAME
        try:
            self.exeContent = decompress_exe(self.filesystem.read(filename), self.registry, filename)

            arcHandler = self.registry.get("arc-exe-ddave")
            identified = arcHandler.identify(self.exeContent, filename)
            if identified.valid is not True:
                logger.debug("identify() failed for %s: %s", filename, identified.reason)
                warnings.append(UNIDENTIFIED_WARNING.format(filename=filename))
            self.exeArchive = arcHandler.parse({"main": self.exeContent})
            self.exeArchive.filename = filename
            logger.debug("Read %d files from %s", len(self.exeArchive), filename)

            exeHandler = self.registry.get("exe-ddave")
            identified = exeHandler.identify(self.exeContent, filename)
            if identified.valid is not True:
                logger.debug("identify() failed for %s: %s", filename, identified.reason)
                warnings.append(UNIDENTIFIED_WARNING.format(filename=filename))
            self.exeFields = exeHandler.extract({"main": self.exeContent})
        except (OSError, LookupError, ValueError) as e:
            raise GameOpenError(f"Unable to continue, error while reading {filename}: {e}") from e

        for xga in ("cga", "ega", "vga"):
            warnings.extend(self._read_tileset(xga))

        palEntry = self.exeArchive.find("vga.pal")
        if palEntry is None:
            raise GameOpenError(f"Unable to find \"vga.pal\" inside {filename}.")
        self.palette = self.registry.get("pal-vga-6bit").read({"main": palEntry.get_content()})

        return warnings

    def _read_tileset(self, xga: str) -> list[str]:
        XGA = xga.upper()
        tilesetFilename = f"{xga}dave.dav"
        handler = self.registry.find(f"tls-ddave-{xga}")
        if handler is None:
            return [f"No handler for \"tls-ddave-{xga}\" is installed, omitting {XGA} tiles."]

        if xga == "ega":
            # The EGA tiles are a file of their own
            try:
                content = self.filesystem.read(tilesetFilename)
            except OSError:
                return [f"Unable to find \"{tilesetFilename}\", omitting EGA tiles."]
            self.egaContent = content
        else:
            entry = self.exeArchive.find(tilesetFilename)
            if entry is None:
                return [f"Unable to find \"{tilesetFilename}\" inside {self.EXE_FILENAME}, omitting {XGA} tiles."]
            content = entry.get_content()

        try:
            self.tilesets[xga] = handler.read({"main": content})
        except ValueError as e:
            return [f"Unable to read {XGA} graphics: {e}"]
        return []

    def _palettes(self, xga: str) -> tuple[Palette, Palette]:
        """ The normal palette of a tileset, and a copy with a transparent entry """
        transIndex = TRANSPARENT_INDICES[xga][1]
        if xga == "vga":
            normal = self.palette
            transparent = normal.padded(256) if len(normal) <= transIndex else normal.clone()
            transparent[transIndex] = TRANSPARENT
        else:
            normal = self.tilesets[xga].palette
            if normal is None:
                normal = Palette.ega() if xga == "ega" else Palette.cga()
            transparent = normal.clone()
            transparent.append(TRANSPARENT)
        return normal, transparent

    def load_tileset(self, xga: str, spriteId: str) -> list[Image]:
        """
        Cut one group of sprites out of a tileset. Masked sprites come back
        with the mask applied as a transparent palette entry
        """
        tileset = self.tilesets[xga]
        maskIndex, transIndex = TRANSPARENT_INDICES[xga]
        normal, transparent = self._palettes(xga)

        sprites = []
        for piece in TILESET_SPLIT[xga][spriteId]:
            sprite = tileset.clone(frames=[])
            # Map tiles never have masks but leftover grid space shows up as
            # transparent rather than as extra black tiles
            sprite.palette = transparent if piece.masks or spriteId == "map" else normal

            for i, colour in enumerate(piece.colours):
                if piece.masks:
                    sprite.frames.append(frame_from_mask(
                        tileset.frames[colour], tileset.frames[piece.masks[i]], maskIndex, transIndex))
                else:
                    sprite.frames.append(tileset.frames[colour].clone())

            sprite.animation = [AnimationStep(index, piece.delay) for index in piece.order]
            if spriteId == "font":
                sprite.fixedWidth = 10
            sprites.append(sprite)
        return sprites

    def save_tileset(self, xga: str, spriteId: str, images: list[Image]) -> list[str]:
        """
        Put edited sprites back into their tileset, splitting transparent
        pixels back out into mask tiles
        """
        frames = self.tilesets[xga].frames
        maskIndex, transIndex = TRANSPARENT_INDICES[xga]

        for imageIndex, piece in enumerate(TILESET_SPLIT[xga][spriteId]):
            if imageIndex >= len(images):
                raise FormatLimitError([f"Image {imageIndex} is required but was not supplied."], "Sprite set")
            incoming = images[imageIndex]

            for i, colour in enumerate(piece.colours):
                if i >= len(incoming.frames):
                    raise FormatLimitError([
                        f"Image {imageIndex}, frame {i} is required but was not supplied.  Make sure "
                        "your source image hasn't been cropped or is otherwise missing tiles."
                    ], "Sprite set")

                # Frames of a single imported picture may only carry the
                # picture's dimensions
                frame = incoming.frames[i].clone()
                frame.width = frame.width or incoming.width
                frame.height = frame.height or incoming.height

                if piece.masks:
                    frames[colour], frames[piece.masks[i]] = mask_from_frame(frame, transIndex, maskIndex)
                else:
                    frames[colour] = frame

        self._tileset_modified(xga)
        return []

    def _tileset_modified(self, xga: str):
        if xga == "ega":
            self._egaModified = True
            return
        entry = self.exeArchive.find(f"{xga}dave.dav")
        entry.stage_document(self.tilesets[xga], self.registry.get(f"tls-ddave-{xga}"))

    def open_palette(self) -> Palette:
        return self.palette.clone()

    def save_palette(self, palette: Palette) -> list[str]:
        handler = self.registry.get("pal-vga-6bit")
        problems = handler.check_limits(palette)
        if problems:
            raise FormatLimitError(problems, "Palette")
        self.palette = Palette(palette)
        self.exeArchive.find("vga.pal").stage_document(self.palette, handler)
        return []

    def open_border(self) -> Image:
        entry = self.exeArchive.find("border.raw")
        content = entry.get_content()
        return Image(len(content) - 1, 1, [Frame(content[:-1])], self.palette.clone())

    def open_level(self, index: int):
        suffix = level_suffix(index)
        content = {"main": self.search.locate(f"level{suffix}.dav").get_content()}
        enemy = self.exeArchive.find(f"enemy{suffix}.dav")
        if enemy is not None:
            content["enemy"] = enemy.get_content()

        attributes = self.exeFields.attributes
        level = self.registry.get("map-ddave").read(content, {
            "playerStartX": attributes.value_of(f"map.startX.{index}"),
            "playerStartY": attributes.value_of(f"map.startY.{index}"),
            "monsterTileIndex": max(0, index - 3),
        })

        # Always drawn with the VGA tiles
        background = self.load_tileset("vga", "map")[0]
        tiles = []
        for frameIndex in range(MAP_TILE_COUNT):
            width, height = background.frame_size(frameIndex)
            tiles.append(Image(width, height, [background.frames[frameIndex]], background.palette))
        for first, following in ANIMATED_TILES.items():
            tiles[first].frames.extend(tiles[t].frames[0] for t in following)

        level.tilesets = {
            "background": tiles,
            "monsters": self.load_tileset("vga", "monsters"),
            "player": self.load_tileset("vga", "player"),
        }
        level.animationDelay = 150
        return level

    def open_attributes(self) -> dict:
        return self.exeFields.attributes.values_dict(exclude=HIDDEN_ATTRIBUTES)

    def save_attributes(self, values: dict) -> list[str]:
        # Only the visible attributes come back, leave the hidden ones alone
        self.exeFields.attributes.update_values(values)
        return []

    def _graphics(self) -> FolderItem:
        graphics = FolderItem("graphics", "Graphics")
        for xga in ("cga", "ega", "vga"):
            if xga not in self.tilesets:
                continue
            for spriteId in TILESET_SPLIT[xga]:
                graphics.add_child(AssetItem(
                    f"{xga}-{spriteId}", f"{xga.upper()} - {FRIENDLY_NAMES[spriteId]}", ItemType.IMAGE,
                    document=CallbackDocument(partial(self.load_tileset, xga, spriteId),
                                              partial(self.save_tileset, xga, spriteId)),
                ))

        graphics.add_child(AssetItem(
            "vga-palette", "VGA - Palette", ItemType.PALETTE,
            document=CallbackDocument(self.open_palette, self.save_palette),
        ))

        if self.exeArchive.find("border.raw") is None:
            raise MissingAssetError(f"Unable to find \"border.raw\" inside {self.EXE_FILENAME}.")
        graphics.add_child(AssetItem(
            "border", "Map border", ItemType.IMAGE, "border.raw",
            content=ArchiveContent(self.search, "border.raw"),
            document=CallbackDocument(self.open_border),
        ))
        return graphics

    def _levels(self) -> FolderItem:
        canOpen = "map-ddave" in self.registry and "vga" in self.tilesets
        levels = FolderItem("levels", "Levels")
        for index in range(LEVEL_COUNT):
            filename = f"level{level_suffix(index)}.dav"
            if self.exeArchive.find(filename) is None:
                raise MissingAssetError(f"Unable to find \"{filename}\" inside {self.EXE_FILENAME}.")
            levels.add_child(AssetItem(
                f"level.{index}", f"Level {index}" if index else "Title level", ItemType.MAP, filename,
                content=ArchiveContent(self.search, filename),
                document=CallbackDocument(partial(self.open_level, index)) if canOpen else None,
            ))
        return levels

    def items(self) -> FolderItem:
        graphics = self._graphics()
        root = FolderItem("root", self.TITLE)
        root.add_child(self._levels())
        root.add_child(graphics)
        root.add_child(AssetItem.unavailable(
            "sounds", "Sound effects", ItemType.SOUND, "PC Speaker sounds not yet implemented."))
        root.add_child(AssetItem(
            "attributes", "Attributes", ItemType.ATTRIBUTES,
            document=CallbackDocument(self.open_attributes, self.save_attributes),
        ))
        return root

    def preflight(self) -> list[PreflightWarning]:
        if self.exeFields.attributes.value_of("filename.scores") == "DSCORES.DAV":
            return [PreflightWarning(Severity.IMPORTANT, "High scores filename template unchanged", SCORES_DETAIL)]
        return []

    def save(self) -> SaveResult:
        files = {}
        warnings = []

        if "ega" in self.tilesets:
            if self._egaModified:
                generated = self.registry.get("tls-ddave-ega").write(self.tilesets["ega"])
                files[self.EGA_FILENAME] = generated.main
                warnings.extend(generated.warnings)
            else:
                files[self.EGA_FILENAME] = self.egaContent

        # Edited CGA/VGA tiles and the palette are pending in the archive
        output = generate_archive(self.exeArchive, self.registry.get("arc-exe-ddave"))
        warnings.extend(output.warnings)

        patched = self.registry.get("exe-ddave").patch({"main": output.main}, self.exeFields)
        files[self.EXE_FILENAME] = patched["main"]

        return SaveResult(files, warnings)
