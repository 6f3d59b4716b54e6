from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Union

from gameinfo.archive import ArchiveSearch
from gameinfo.formats.base import CompressionHandler, DocumentHandler, FormatLimitError

if TYPE_CHECKING:
    from gameinfo.attributes import Attribute
    from gameinfo.game import Game

logger = logging.getLogger(__name__)


class ItemError(Exception):
    ...


class ItemDisabledError(ItemError):
    ...


class UnsupportedOperationError(ItemError):
    ...


class ItemType(str, Enum):
    FOLDER = "folder"
    ATTRIBUTES = "attributes"
    B800 = "b800"
    IMAGE = "image"
    MAP = "map"
    MUSIC = "music"
    PALETTE = "palette"
    SOUND = "sound"
    TILESET = "tileset"


# Where an item's bytes come from. Reading and writing always come as a pair.

class ContentSource(ABC):

    @abstractmethod
    def read(self) -> bytes: ...

    @abstractmethod
    def write(self, content: bytes) -> None: ...

    def store_document(self, document: Any, handler: DocumentHandler, options: Optional[dict]) -> list[str]:
        """
        Store an edited document, encoding it straight away. Sources that can
        defer the encoding until the game is saved override this
        """
        result = handler.write(document, options)
        self.write(result.main)
        return list(result.warnings)


class ArchiveContent(ContentSource):
    """
    A file inside one of the archives of `search`. Given an attribute rather
    than a name, the file follows the attribute through renames
    """

    def __init__(self, search: ArchiveSearch, filename: Union[str, Attribute]):
        self.search = search
        self._filename = filename

    @property
    def filename(self) -> str:
        if isinstance(self._filename, str):
            return self._filename
        return self._filename.value

    def read(self) -> bytes:
        return self.search.locate(self.filename).get_content()

    def write(self, content: bytes) -> None:
        self.search.locate(self.filename).replace(content)

    def store_document(self, document: Any, handler: DocumentHandler, options: Optional[dict]) -> list[str]:
        self.search.locate(self.filename).stage_document(document, handler, options)
        return []


class FileContent(ContentSource):
    """ A whole file loaded by the game, optionally behind a compression layer """

    def __init__(self, files: dict[str, bytes], filename: str, compression: Optional[CompressionHandler] = None):
        self.files = files
        self.filename = filename
        self.compression = compression

    def read(self) -> bytes:
        data = self.files[self.filename]
        if self.compression is not None:
            data = self.compression.reveal(data)
        return data

    def write(self, content: bytes) -> None:
        if self.compression is not None:
            content = self.compression.obscure(content)
        self.files[self.filename] = bytes(content)


# How an item turns its bytes into a document and back.

class DocumentSource(ABC):
    editable = True

    @abstractmethod
    def open(self) -> Any: ...

    @abstractmethod
    def save(self, document: Any) -> list[str]: ...


class HandlerDocument(DocumentSource):

    def __init__(
        self,
        content: ContentSource,
        handler: DocumentHandler,
        options: Optional[dict] = None,
        decorate: Optional[Callable[[Any], None]] = None,
        editable: bool = True
    ):
        """
            content:  Where the encoded bytes live
            handler:  Codec between bytes and document
            options:  Format parameters passed to the codec
            decorate: Applied to each freshly opened document (eg. to attach
                      a palette kept in another file)
            editable: False for documents that can be viewed only
        """
        self.content = content
        self.handler = handler
        self.options = options
        self.decorate = decorate
        self.editable = editable

    def open(self) -> Any:
        document = self.handler.read({"main": self.content.read()}, self.options)
        if self.decorate is not None:
            self.decorate(document)
        return document

    def save(self, document: Any) -> list[str]:
        problems = self.handler.check_limits(document, self.options)
        if problems:
            raise FormatLimitError(problems)
        return self.content.store_document(document, self.handler, self.options)


class CallbackDocument(DocumentSource):
    """ Documents built and stored by title adapter methods """

    def __init__(self, opener: Callable[[], Any], saver: Optional[Callable[[Any], Optional[list[str]]]] = None):
        self.opener = opener
        self.saver = saver
        self.editable = saver is not None

    def open(self) -> Any:
        return self.opener()

    def save(self, document: Any) -> list[str]:
        if self.saver is None:
            raise UnsupportedOperationError("This document can't be saved")
        return list(self.saver(document) or [])


class AttributeRename():
    """ Renames the file an executable attribute points at """

    def __init__(self, game: Game, attribute: Attribute):
        self.game = game
        self.attribute = attribute

    def __call__(self, newName: str) -> None:
        self.game.rename_attribute(self.attribute, newName)


class Item():
    """
    A node in the tree of game assets
    """

    def __init__(
        self,
        itemId: str,
        title: str,
        kind: ItemType,
        subtitle: Optional[str] = None,
        disabled: bool = False,
        disabledReason: Optional[str] = None
    ):
        if not itemId:
            raise ValueError("Items need an id")
        if not title:
            raise ValueError(f"Item {itemId} needs a title")
        if disabled and not disabledReason:
            raise ValueError(f"Item {itemId} is disabled without a reason")
        if not disabled and disabledReason is not None:
            raise ValueError(f"Item {itemId} has a disabled reason but isn't disabled")

        self.id = itemId
        self.title = title
        self.kind = ItemType(kind)
        self.subtitle = subtitle
        self.disabled = disabled
        self.disabledReason = disabledReason

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.id}, {self.kind.value}>"

    def is_folder(self) -> bool:
        return self.kind == ItemType.FOLDER

    @property
    def can_extract(self) -> bool:
        return False

    can_replace = can_extract

    @property
    def can_open(self) -> bool:
        return False

    @property
    def can_save(self) -> bool:
        return False

    @property
    def can_rename(self) -> bool:
        return False

    def capabilities(self) -> list[str]:
        names = ("extract", "replace", "open", "save", "rename")
        return [name for name in names if getattr(self, f"can_{name}")]


class FolderItem(Item):

    def __init__(self, itemId: str, title: str, children: Optional[dict[str, Item]] = None,
                 subtitle: Optional[str] = None, disabled: bool = False, disabledReason: Optional[str] = None):
        super().__init__(itemId, title, ItemType.FOLDER, subtitle, disabled, disabledReason)
        self.children: dict[str, Item] = {}
        for child in (children or {}).values():
            self.add_child(child)

    def add_child(self, child: Item) -> Item:
        if child.id in self.children:
            raise ValueError(f"{self.id} already has a child called {child.id}")
        self.children[child.id] = child
        return child

    def walk(self) -> Iterator[Item]:
        """ Every descendant, depth first, in insertion order """
        for child in self.children.values():
            yield child
            if isinstance(child, FolderItem):
                yield from child.walk()


class AssetItem(Item):
    """
    An item with a payload. Capabilities come from the bindings it is built
    with, so extract always travels with replace and an editable open always
    travels with save
    """

    def __init__(
        self,
        itemId: str,
        title: str,
        kind: ItemType,
        subtitle: Optional[str] = None,
        content: Optional[ContentSource] = None,
        document: Optional[DocumentSource] = None,
        renamer: Optional[AttributeRename] = None,
        disabled: bool = False,
        disabledReason: Optional[str] = None
    ):
        if ItemType(kind) == ItemType.FOLDER:
            raise ValueError("Folders are built with FolderItem")
        super().__init__(itemId, title, kind, subtitle, disabled, disabledReason)
        self.content = content
        self.document = document
        self.renamer = renamer

    @classmethod
    def unavailable(cls, itemId: str, title: str, kind: ItemType, reason: str, subtitle: Optional[str] = None):
        return cls(itemId, title, kind, subtitle, disabled=True, disabledReason=reason)

    @property
    def can_extract(self) -> bool:
        return self.content is not None

    can_replace = can_extract

    @property
    def can_open(self) -> bool:
        return self.document is not None

    @property
    def can_save(self) -> bool:
        return self.document is not None and self.document.editable

    @property
    def can_rename(self) -> bool:
        return self.renamer is not None

    def _require(self, operation: str, available: bool):
        if self.disabled:
            raise ItemDisabledError(f"{self.id} is disabled: {self.disabledReason}")
        if not available:
            raise UnsupportedOperationError(f"{self.id} does not support {operation}")

    def extract(self) -> bytes:
        self._require("extract", self.can_extract)
        return self.content.read()

    def replace(self, content: bytes) -> None:
        self._require("replace", self.can_replace)
        logger.debug("Replacing %s with %d bytes", self.id, len(content))
        self.content.write(content)

    def open(self) -> Any:
        self._require("open", self.can_open)
        return self.document.open()

    def save(self, document: Any) -> list[str]:
        self._require("save", self.can_save)
        logger.debug("Saving document for %s", self.id)
        return self.document.save(document)

    def rename(self, newName: str) -> None:
        self._require("rename", self.can_rename)
        self.renamer(newName)
