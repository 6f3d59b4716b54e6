from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Union

from gameinfo.formats.base import ArchiveHandler, DocumentHandler, GenerateResult

logger = logging.getLogger(__name__)


class MissingAssetError(LookupError):
    ...


class DuplicateEntryError(ValueError):
    ...


class EntryState():
    """ What an archive entry will hold when its archive is next generated """


@dataclass(frozen=True)
class Unmodified(EntryState):
    pass


@dataclass(frozen=True)
class RawOverride(EntryState):
    content: bytes


@dataclass(frozen=True)
class PendingDocument(EntryState):
    document: Any
    handler: DocumentHandler
    options: Optional[dict] = None


UNMODIFIED = Unmodified()


class ArchiveEntry():

    def __init__(
        self,
        name: str,
        content: Union[bytes, Callable[[], bytes]],
        nativeSize: Optional[int] = None,
        diskSize: Optional[int] = None,
        attributes: Optional[dict] = None
    ):
        """
        Initialize a new file entry

            name:       Filename inside the archive
            content:    Original bytes, or a callable that loads them on demand
            nativeSize: Size of the content once decompressed
            diskSize:   Size the content takes up inside the archive
            attributes: Format specific extras (offsets, flags, ...)
        """
        self.name = name
        self.originalName = name
        self.nativeSize = nativeSize
        self.diskSize = diskSize
        self.attributes = attributes or {}

        self._loader = content if callable(content) else None
        self._original = None if callable(content) else bytes(content)
        self._state: EntryState = UNMODIFIED

        if self.nativeSize is None and self._original is not None:
            self.nativeSize = len(self._original)

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.name}, {type(self._state).__name__}>"

    @property
    def state(self) -> EntryState:
        return self._state

    @property
    def original(self) -> bytes:
        if self._original is None:
            self._original = bytes(self._loader())
            self._loader = None
        return self._original

    def is_modified(self) -> bool:
        return not isinstance(self._state, Unmodified)

    def is_renamed(self) -> bool:
        return self.name != self.originalName

    def replace(self, content: bytes):
        self._state = RawOverride(bytes(content))
        self.nativeSize = len(content)
        self.diskSize = None

    def stage_document(self, document: Any, handler: DocumentHandler, options: Optional[dict] = None):
        """
        Hold an edited document until the archive is generated, so the
        encoding only happens once, at save time
        """
        self._state = PendingDocument(document, handler, options)
        self.nativeSize = None
        self.diskSize = None

    def revert(self):
        self._state = UNMODIFIED
        self.nativeSize = len(self.original)

    def resolve(self) -> tuple[bytes, list[str]]:
        """ Final content of this entry plus any warnings encoding it raised """
        state = self._state
        if isinstance(state, RawOverride):
            return state.content, []
        if isinstance(state, PendingDocument):
            logger.debug("Encoding pending document for %s with %s", self.name, state.handler.id)
            result = state.handler.write(state.document, state.options)
            self.nativeSize = len(result.main)
            return result.main, list(result.warnings)
        return self.original, []

    def get_content(self) -> bytes:
        """ Current content, with any pending document encoded """
        return self.resolve()[0]


class Archive():
    """
    An ordered collection of file entries parsed from one container file
    """

    def __init__(self, files: Optional[list[ArchiveEntry]] = None, original: Optional[bytes] = None,
                 filename: Optional[str] = None):
        """
            files:    Entries in on-disk order
            original: The bytes this archive was parsed from
            filename: Name of the container file, for messages
        """
        self.files: list[ArchiveEntry] = list(files or [])
        self.original = original
        self.filename = filename
        self.attributes: dict = {}
        self._structureChanged = False

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.filename}, {len(self.files)} files>"

    def __iter__(self) -> Iterator[ArchiveEntry]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, name: str) -> bool:
        return self.find(name) is not None

    def find(self, name: str) -> Optional[ArchiveEntry]:
        """ Case insensitive lookup, first match in on-disk order """
        target = name.upper()
        for entry in self.files:
            if entry.name.upper() == target:
                return entry
        return None

    def add(self, entry: ArchiveEntry) -> ArchiveEntry:
        if self.find(entry.name) is not None:
            raise DuplicateEntryError(f"{entry.name} already exists in {self.filename}")
        self.files.append(entry)
        self._structureChanged = True
        return entry

    def remove(self, name: str) -> ArchiveEntry:
        entry = self.find(name)
        if entry is None:
            raise MissingAssetError(f"{name} does not exist in {self.filename}")
        self.files.remove(entry)
        self._structureChanged = True
        return entry

    def rename(self, oldName: str, newName: str) -> bool:
        entry = self.find(oldName)
        if entry is None:
            return False
        clash = self.find(newName)
        if clash is not None and clash is not entry:
            raise DuplicateEntryError(f"{newName} already exists in {self.filename}")
        entry.name = newName
        return True

    def is_modified(self) -> bool:
        return self._structureChanged or any(e.is_modified() or e.is_renamed() for e in self.files)


def generate_archive(archive: Archive, handler: ArchiveHandler) -> GenerateResult:
    """
    Produce the bytes of `archive`. An archive nobody touched comes back as
    the exact bytes it was parsed from
    """
    if archive.original is not None and not archive.is_modified():
        logger.debug("%s unchanged, reusing original content", archive.filename)
        return GenerateResult({"main": archive.original}, [])

    logger.debug("Generating %s with %s", archive.filename, handler.id)
    return handler.generate(archive)


@dataclass
class ArchiveSearch():
    """
    Archives to search for a file, in precedence order. The first archive
    holding a matching name wins
    """
    archives: list[Archive] = field(default_factory=list)
    label: str = "the game archives"

    def find(self, name: str) -> Optional[tuple[Archive, ArchiveEntry]]:
        for archive in self.archives:
            entry = archive.find(name)
            if entry is not None:
                return archive, entry
        return None

    def locate(self, name: str) -> ArchiveEntry:
        found = self.find(name)
        if found is None:
            raise MissingAssetError(f"Unable to find \"{name}\" in {self.label}.")
        return found[1]

    def contains(self, name: str) -> bool:
        return self.find(name) is not None

    def rename(self, oldName: str, newName: str) -> bool:
        found = self.find(oldName)
        if found is None:
            return False
        archive, _ = found
        return archive.rename(oldName, newName)
