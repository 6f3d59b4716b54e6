from __future__ import annotations

import logging

from gameinfo.formats.base import Identification
from gameinfo.game import Game, SaveResult
from gameinfo.item import AssetItem, FileContent, FolderItem, HandlerDocument, ItemType

logger = logging.getLogger(__name__)


class CaptainComic(Game):
    """
    Captain Comic. The only editable content is the set of full screen
    EGA pictures, each RLE compressed in its own file
    """
    ID = "game-ccomic"
    TITLE = "Captain Comic"

    EXE_FILENAME = "comic.exe"
    SPLASH_FILENAMES = tuple(f"sys00{i}.ega" for i in range(5))

    def __init__(self, filesystem, registry=None):
        super().__init__(filesystem, registry)
        self.content: dict[str, bytes] = {}

    @classmethod
    def identify(cls, filesystem) -> Identification:
        if not filesystem.exists(cls.EXE_FILENAME):
            return Identification(False, f"{cls.EXE_FILENAME.upper()} not found.")
        return Identification(True, f"Found {cls.EXE_FILENAME.upper()}.")

    def open(self) -> list[str]:
        warnings = []
        for filename in (self.EXE_FILENAME,) + self.SPLASH_FILENAMES:
            try:
                self.content[filename] = self.filesystem.read(filename)
            except OSError as e:
                logger.debug("Skipping %s: %s", filename, e)
                warnings.append(f"Unable to open {filename}: {e}")
        return warnings

    def items(self) -> FolderItem:
        rle = self.registry.get("cmp-rle-ccomic")
        planar = self.registry.get("img-raw-planar-4bpp")

        graphics = FolderItem("graphics", "Graphics")
        for index, filename in enumerate(self.SPLASH_FILENAMES):
            itemId = f"splash.{index}"
            if filename not in self.content:
                graphics.add_child(AssetItem.unavailable(
                    itemId, f"Splash screen {index}", ItemType.IMAGE, "File could not be opened.", filename))
                continue

            content = FileContent(self.content, filename, rle)
            graphics.add_child(AssetItem(
                itemId, f"Splash screen {index}", ItemType.IMAGE, filename,
                content=content,
                document=HandlerDocument(content, planar, {"width": 320, "height": 200, "planeCount": 4}),
            ))

        return FolderItem("root", self.TITLE, {"graphics": graphics})

    def save(self) -> SaveResult:
        return SaveResult(dict(self.content), [])
