from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

from gameinfo.archive import MissingAssetError
from gameinfo.attributes import AttributeValueError
from gameinfo.filesystem import Filesystem
from gameinfo.formats import FormatRegistry, default_registry
from gameinfo.formats.base import DocumentHandler, FormatLimitError, HandlerKind
from gameinfo.formats.documents import MapDocument, Music, TextScreen
from gameinfo.formats.image import Image, Palette
from gameinfo.game import Game, GameOpenError, RenameError, blocking
from gameinfo.games import all_games, find_handler, get_handler
from gameinfo.item import FolderItem, Item, ItemError, ItemType
from gameinfo.tools import pretty_filesize

logger = logging.getLogger(__name__)

# Which kinds of format can stand in for each kind of item on import
IMPORT_KINDS = {
    ItemType.IMAGE: (HandlerKind.IMAGE,),
    ItemType.TILESET: (HandlerKind.TILESET, HandlerKind.IMAGE),
    ItemType.MUSIC: (HandlerKind.MUSIC,),
    ItemType.PALETTE: (HandlerKind.PALETTE,),
    ItemType.B800: (HandlerKind.TEXT,),
}


class OperationsError(Exception):
    """ A failure the user can fix, reported without a traceback """


def find_item(root: Union[FolderItem, dict[str, Item]], itemId: str) -> Optional[Item]:
    """
    Depth first search for `itemId`. Every sibling is checked before
    descending into any of their children
    """
    children = root.children if isinstance(root, FolderItem) else root
    for item in children.values():
        if item.id == itemId:
            return item
    for item in children.values():
        if isinstance(item, FolderItem):
            found = find_item(item, itemId)
            if found is not None:
                return found
    return None


def print_numbered(header: str, lines: list[str]):
    print(header + "\n")
    for i, line in enumerate(lines, start=1):
        print(f"{i:>2}. {line}")


class Operations():
    """
    The commands of the command line, working on one open game and one
    selected item
    """

    def __init__(self, registry: Optional[FormatRegistry] = None, exportFormats: Optional[dict[str, str]] = None):
        self.registry = registry if registry is not None else default_registry()
        self.exportFormats = exportFormats or {}
        self.gamePath: Optional[Path] = None
        self.game: Optional[Game] = None
        self.item: Optional[Item] = None

    def _require_game(self, command: str) -> Game:
        if self.game is None:
            raise OperationsError(f"{command}: must 'open' a game first.")
        return self.game

    def _require_item(self, command: str) -> Item:
        if self.item is None:
            raise OperationsError(f"{command}: must 'select' an item first.")
        return self.item

    def _items(self, command: str) -> FolderItem:
        game = self._require_game(command)
        try:
            return game.items()
        except MissingAssetError as e:
            logger.debug("Unable to build the item tree", exc_info=True)
            raise OperationsError(f"{command}: {e}") from e

    def _open_document(self, command: str) -> Any:
        item = self._require_item(command)
        if not item.can_open:
            raise OperationsError(f"{command}: this item does not support being opened.")
        try:
            return item.open()
        except (ItemError, LookupError, ValueError, OSError) as e:
            logger.debug("Unable to open %s", item.id, exc_info=True)
            raise OperationsError(f"{command}: error opening item - {e}") from e

    def _document_handler(self, command: str, formatId: str) -> DocumentHandler:
        handler = self.registry.find(formatId)
        if not isinstance(handler, DocumentHandler):
            raise OperationsError(f"{command}: invalid format '{formatId}'.")
        return handler

    def check(self) -> bool:
        """
        Print the preflight warnings. Returns False when one of them should
        stop the game from being saved
        """
        game = self._require_game("check")
        result = game.preflight()
        if not result:
            print("No problems detected.")
            return True

        for warning in result:
            print(f"== [{warning.severity.value}] {warning.summary} ==\n")
            print(warning.detail)
            print()
        return not blocking(result)

    def export(self, target: Optional[str] = None, format: Optional[str] = None):
        item = self._require_item("export")
        if not item.can_open:
            raise OperationsError("export: this item does not support being opened.")
        format = format or self.exportFormats.get(item.kind.value)
        if not format:
            raise OperationsError("export: must specify an output format with -t.")
        if not target:
            raise OperationsError("export: must specify an output filename.")

        handler = self._document_handler("export", format)
        document = self._open_document("export")

        problems = handler.check_limits(document)
        if problems:
            print_numbered("There are problems preventing the file from being saved:", problems)
            print("\nPlease correct these issues and try again.\n")
            raise OperationsError(f"export: unable to export as '{format}' due to file format limitations.")

        try:
            output = handler.write(document)
        except (ValueError, TypeError) as e:
            logger.debug("%s.write() failed", handler.id, exc_info=True)
            raise OperationsError(f"export: {handler.id} failed - {e}") from e

        files = {target: output.main}
        for suppId, suppFilename in (handler.supps(target, output.main) or {}).items():
            print(f" - Saving supplemental file {suppFilename}")
            files[suppFilename] = output.content[suppId]

        for filename, content in files.items():
            Path(filename).write_bytes(content)

        if output.warnings:
            print_numbered("There were warnings generated while saving:", output.warnings)

    def extract(self, target: Optional[str] = None):
        item = self._require_item("extract")
        if not item.can_extract:
            raise OperationsError("extract: this item does not support being extracted.")
        if not target:
            raise OperationsError("extract: must specify an output filename.")

        try:
            content = item.extract()
        except (ItemError, LookupError, ValueError) as e:
            raise OperationsError(f"extract: {e}") from e
        Path(target).write_bytes(content)
        logger.debug("Extracted %s to %s", item.id, target)

    def _import_handler(self, item: Item, path: Path, content: bytes, format: Optional[str]) -> DocumentHandler:
        if format:
            return self._document_handler("import", format)

        candidates = []
        for kind in IMPORT_KINDS[item.kind]:
            candidates += self.registry.identify(content, kind, path.name)
        candidates = [h for h in candidates if isinstance(h, DocumentHandler)]
        if not candidates:
            raise OperationsError("import: unable to identify this file format.")
        if len(candidates) > 1:
            print("This file format could not be unambiguously identified.  It could be:")
            for handler in candidates:
                print(f" * {handler.id} ({handler.TITLE})")
            raise OperationsError("import: please use the -t option to specify the format.")
        return candidates[0]

    def import_(self, target: Optional[str] = None, format: Optional[str] = None):
        item = self._require_item("import")
        if not item.can_save:
            raise OperationsError("import: this item does not support being saved.")
        if not target:
            raise OperationsError("import: must specify an input filename.")
        if item.kind not in IMPORT_KINDS:
            raise OperationsError(f"import: importing items of type \"{item.kind.value}\" is not yet supported.")

        path = Path(target)
        try:
            content = {"main": path.read_bytes()}
        except OSError as e:
            raise OperationsError(f"import: error reading source file - {e}") from e

        handler = self._import_handler(item, path, content["main"], format)
        for suppId, suppFilename in (handler.supps(target, content["main"]) or {}).items():
            logger.debug("Reading supp \"%s\" from: %s", suppId, suppFilename)
            try:
                content[suppId] = Path(suppFilename).read_bytes()
            except OSError as e:
                raise OperationsError(f"import: unable to open supplementary file \"{suppFilename}\": {e}") from e

        try:
            document = handler.read(content)
            warnings = item.save(document)
        except FormatLimitError as e:
            print_numbered("There are problems preventing the file from being saved:", e.problems)
            raise OperationsError("import: the file doesn't fit the limits of this item.") from e
        except (ItemError, LookupError, ValueError) as e:
            raise OperationsError(f"import: {e}") from e

        if warnings:
            print_numbered("There were warnings generated while saving:", warnings)

    def _image_info(self, image: Image):
        print("Document type: Image")
        print(f"Dimensions: {image.width} x {image.height}")
        print(f"Palette size: {len(image.palette) if image.palette is not None else 'N/A'}")
        if image.hotspotX is not None:
            print(f"Hotspot: ({image.hotspotX}, {image.hotspotY})")
        else:
            print("Hotspot: None")
        print(f"Number of frames: {len(image.frames)}")
        for i in range(len(image.frames)):
            width, height = image.frame_size(i)
            print(f"  {i}: {width}x{height}")

    def info(self):
        item = self._require_item("info")
        document = self._open_document("info")

        print(f"Object class: {document.__class__.__name__}")
        if isinstance(document, Image):
            self._image_info(document)
        elif isinstance(document, list) and document and all(isinstance(d, Image) for d in document):
            for i, image in enumerate(document):
                print(f"\n* Image {i}:")
                self._image_info(image)
        elif isinstance(document, Music):
            print("Document type: Music")
            print(f"Number of events: {len(document.events)}")
            print(f"Duration: {document.duration:.2f} seconds")
        elif isinstance(document, Palette):
            print("Document type: Palette")
            print(f"Palette size: {len(document)}")
        elif isinstance(document, TextScreen):
            print("Document type: Text screen")
            print(f"Dimensions: {document.width} x {document.height}")
        elif isinstance(document, MapDocument):
            print("Document type: Map")
            print(f"Number of layers: {len(document.layers)}")
        elif isinstance(document, dict):
            print("Document type: Attributes")
            for key, value in document.items():
                print(f"  {key}: {value!r}")
        elif isinstance(document, (bytes, bytearray)):
            print(f"Document type: Raw data, {pretty_filesize(len(document))}")
        else:
            print(f"Document type: Unknown ({item.kind.value})")

    def list(self):
        # A fresh tree each time so earlier commands show up
        root = self._items("list")
        if not root.children:
            print("No items found!")
            return

        def show(depth: int, folder: FolderItem):
            for item in folder.children.values():
                subtitle = f" | {item.subtitle}" if item.subtitle else ""
                disabled = " DISABLED" if item.disabled else ""
                print("  " * depth + f"* [{item.id}]: {item.title}{subtitle} ({item.kind.value}){disabled}")
                if isinstance(item, FolderItem):
                    show(depth + 1, item)

        show(0, root)

    def open(self, target: Optional[str] = None, format: Optional[str] = None):
        if format and get_handler(format) is None:
            raise OperationsError(f"Invalid format code: {format}")
        if not target:
            raise OperationsError("open: missing path")

        self.gamePath = Path(target)
        filesystem = Filesystem(self.gamePath)
        handlers = find_handler(filesystem, format)
        if not handlers:
            raise OperationsError("Unable to identify this game.")
        if len(handlers) > 1:
            print("This game could not be unambiguously identified.  It could be:")
            for handler in handlers:
                metadata = handler.metadata()
                print(f" * {metadata.id} ({metadata.title})")
            raise OperationsError("open: please use the -t option to specify the format.")

        game = handlers[0](filesystem, self.registry)
        try:
            warnings = game.open()
            # Assets every item depends on must be present
            game.items()
        except (GameOpenError, LookupError, OSError, ValueError) as e:
            logger.debug("Unable to open %s", self.gamePath, exc_info=True)
            raise OperationsError(f"open: {e}") from e

        self.game = game
        self.item = None
        if warnings:
            print("There were warnings opening this game:")
            for warning in warnings:
                print(f" * {warning}")

    def rename(self, target: Optional[str] = None):
        item = self._require_item("rename")
        if not target:
            raise OperationsError("rename: must specify new name.")
        if not item.can_rename:
            raise OperationsError("rename: the selected item does not support being renamed.")
        try:
            item.rename(target)
        except (ItemError, RenameError, AttributeValueError, OSError) as e:
            logger.debug("Rename of %s failed", item.id, exc_info=True)
            raise OperationsError(f"rename: {e}") from e

    def replace(self, target: Optional[str] = None):
        item = self._require_item("replace")
        if not item.can_replace:
            raise OperationsError("replace: this item does not support being replaced.")
        if not target:
            raise OperationsError("replace: must specify a filename to read.")

        try:
            content = Path(target).read_bytes()
        except OSError as e:
            raise OperationsError(f"replace: error reading source file - {e}") from e
        try:
            item.replace(content)
        except (ItemError, LookupError, ValueError) as e:
            raise OperationsError(f"replace: error performing replacement - {e}") from e

    def save(self, force: bool = False):
        game = self._require_game("save")
        if not force and not self.check():
            raise OperationsError("save: fix the warnings and try again.")

        try:
            output = game.save()
        except (LookupError, ValueError, OSError) as e:
            logger.debug("Save failed", exc_info=True)
            raise OperationsError(f"save: {e}") from e

        if output.warnings:
            print("There were warnings saving this game:")
            for warning in output.warnings:
                print(f" * {warning}")

        # Everything is generated before the first file is written
        for filename, content in (output.files or {}).items():
            path = game.filesystem.write(filename.lower(), content)
            print(f"Writing {path}")

    def select(self, target: Optional[str] = None):
        root = self._items("select")
        if not target:
            raise OperationsError("select: must specify an item id.")
        self.item = find_item(root, target)
        if self.item is None:
            raise OperationsError(f"select: unable to find item \"{target}\".")


def list_formats(registry: Optional[FormatRegistry] = None):
    """ Print every supported game and format handler """
    registry = registry if registry is not None else default_registry()
    for game in all_games():
        metadata = game.metadata()
        print(f"{metadata.id}: {metadata.title}")
    print()
    for handler in registry.handlers():
        metadata = handler.metadata()
        print(f"{metadata.id}: {metadata.title}")
        for name, value in metadata.params.items():
            print(f"  * {name}: {value}")
