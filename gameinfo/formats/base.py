from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from gameinfo.archive import Archive
    from gameinfo.attributes import AttributeMap


class FormatLimitError(ValueError):
    """ Raised when a document can't be encoded without losing data """

    def __init__(self, problems: list[str], subject: str = "Document"):
        self.problems = list(problems)
        lines = "\n".join(f"  * {p}" for p in self.problems)
        super().__init__(f"{subject} exceeds the limits of the target format:\n{lines}")


class FormatUnavailableError(LookupError):
    ...


class HandlerKind(str, Enum):
    ARCHIVE = "archive"
    CODE = "code"
    COMPRESSION = "compression"
    IMAGE = "image"
    MAP = "map"
    MUSIC = "music"
    PALETTE = "palette"
    SOUND = "sound"
    TEXT = "text"
    TILESET = "tileset"


@dataclass(frozen=True)
class Identification:
    """
    Result of a format probe

        valid:  True = definitely this format, False = definitely not,
                None = could be, keep looking for something better
        reason: Human readable explanation
    """
    valid: Optional[bool]
    reason: str = ""


@dataclass(frozen=True)
class FormatMetadata:
    id: str
    title: str
    kind: HandlerKind
    params: dict = field(default_factory=dict)


@dataclass
class GenerateResult:
    content: dict[str, bytes]
    warnings: list[str] = field(default_factory=list)

    @property
    def main(self) -> bytes:
        return self.content["main"]


class FormatHandler(ABC):
    """
    Codec for one binary format. Handlers are stateless apart from any fixed
    catalog they were constructed with, so one instance serves every file
    """
    ID = "unknown"
    TITLE = "Unknown format"
    KIND = HandlerKind.ARCHIVE
    PARAMS: dict = {}

    @property
    def id(self) -> str:
        return self.ID

    def metadata(self) -> FormatMetadata:
        return FormatMetadata(self.ID, self.TITLE, self.KIND, dict(self.PARAMS))

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        return Identification(None, "This format has no reliable signature.")

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.id}>"


class DocumentHandler(FormatHandler):
    """
    Decodes files into editable documents (images, music, maps, ...)
    """

    @abstractmethod
    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Any:
        """
        Decode a file into a document

            content: Mapping with the main file under "main" and any
                     supplemental files under their supp ids
            options: Format parameters the file itself doesn't record
        """

    @abstractmethod
    def write(self, document: Any, options: Optional[dict] = None) -> GenerateResult:
        """
        Encode a document into file content
        """

    def check_limits(self, document: Any, options: Optional[dict] = None) -> list[str]:
        """
        List every reason `document` can't be written in this format. An
        empty list means `write` is safe to call
        """
        return []

    def supps(self, filename: str, content: Optional[bytes] = None) -> Optional[dict[str, str]]:
        """
        Supplemental files that accompany `filename`, as supp id -> filename
        """
        return None


class ArchiveHandler(FormatHandler):
    KIND = HandlerKind.ARCHIVE

    @abstractmethod
    def parse(self, content: dict[str, bytes]) -> Archive: ...

    @abstractmethod
    def generate(self, archive: Archive) -> GenerateResult: ...


@dataclass
class ExeFields:
    attributes: AttributeMap


class CodeHandler(FormatHandler):
    """
    Reads and patches named fields inside a game executable
    """
    KIND = HandlerKind.CODE

    @abstractmethod
    def extract(self, content: dict[str, bytes]) -> ExeFields: ...

    @abstractmethod
    def patch(self, content: dict[str, bytes], exe: ExeFields) -> dict[str, bytes]: ...


class CompressionHandler(FormatHandler):
    KIND = HandlerKind.COMPRESSION

    @abstractmethod
    def reveal(self, data: bytes) -> bytes: ...

    @abstractmethod
    def obscure(self, data: bytes) -> bytes: ...
