from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from gameinfo.archive import ArchiveSearch
from gameinfo.attributes import Attribute
from gameinfo.filesystem import Filesystem
from gameinfo.formats import FormatRegistry, default_registry
from gameinfo.formats.base import Identification
from gameinfo.item import FolderItem

logger = logging.getLogger(__name__)


class GameOpenError(Exception):
    ...


class RenameError(Exception):
    ...


class Severity(str, Enum):
    CRITICAL = "CRI"
    IMPORTANT = "IMP"
    INFORMATIONAL = "INF"

    @property
    def blocks_save(self) -> bool:
        return self in (Severity.CRITICAL, Severity.IMPORTANT)


@dataclass(frozen=True)
class PreflightWarning:
    severity: Severity
    summary: str
    detail: str = ""


@dataclass
class SaveResult:
    """
    Outcome of `Game.save`

        files:    filename -> content for the caller to write, or None when
                  the game already wrote everything itself
        warnings: Anything worth telling the user about the save
    """
    files: Optional[dict[str, bytes]] = None
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GameMetadata:
    id: str
    title: str
    glyph: Optional[str] = None


class Game(ABC):
    """
    Base for the per-title adapters. An instance holds one in-memory copy of
    a game: decompressed executables, parsed archives and executable
    attributes. Items edit that copy, `save` turns it back into files
    """
    ID = "game-unknown"
    TITLE = "Unknown game"
    GLYPH: Optional[str] = None

    # Attributes naming whole archive files rather than entries inside one
    CONTAINER_ATTRIBUTES: tuple[str, ...] = ()

    def __init__(self, filesystem: Filesystem, registry: Optional[FormatRegistry] = None):
        self.filesystem = filesystem
        self.registry = registry if registry is not None else default_registry()

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.filesystem.root}>"

    @classmethod
    def metadata(cls) -> GameMetadata:
        return GameMetadata(cls.ID, cls.TITLE, cls.GLYPH)

    @classmethod
    def identify(cls, filesystem: Filesystem) -> Identification:
        """
        Decide whether the files in `filesystem` belong to this game
        """
        return Identification(False, "Not implemented for this game.")

    def open(self) -> list[str]:
        """
        Load the game into memory. Never writes to the game folder

        Returns warnings about optional content that couldn't be loaded
        """
        return []

    @abstractmethod
    def items(self) -> FolderItem:
        """
        Build the item tree from the current in-memory state. A new tree is
        built on every call
        """

    def preflight(self) -> list[PreflightWarning]:
        """
        Cheap checks worth running before `save`. Does not change anything
        """
        return []

    @abstractmethod
    def save(self) -> SaveResult: ...

    def rename_attribute(self, attribute: Attribute, newName: str) -> None:
        """
        Rename the file an attribute refers to, then update the attribute

            attribute: Filename attribute to change
            newName:   New filename
        """
        newName = newName.upper()
        oldName = str(attribute.value).upper()
        attribute.check_value(newName)

        if attribute.id in self.CONTAINER_ATTRIBUTES:
            logger.debug("Renaming container file %s to %s", oldName, newName)
            self.filesystem.rename(newName.lower(), oldName)
        else:
            search = self.rename_search(attribute)
            if not search.rename(oldName, newName):
                raise RenameError(f"Unable to find {oldName} in {search.label}.")
            logger.debug("Renamed %s to %s in %s", oldName, newName, search.label)

        attribute.value = newName

    def rename_search(self, attribute: Attribute) -> ArchiveSearch:
        """ Archives that may hold the file named by `attribute`, in precedence order """
        return ArchiveSearch([], "any archive")


def blocking(warnings: Iterable[PreflightWarning]) -> list[PreflightWarning]:
    return [w for w in warnings if w.severity.blocks_save]
