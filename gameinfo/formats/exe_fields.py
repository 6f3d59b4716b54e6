from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable, Optional

from gameinfo.attributes import Attribute, AttributeKind, AttributeMap
from gameinfo.formats.base import CodeHandler, ExeFields, FormatLimitError, Identification
from gameinfo.iohelper import read_string, write_string

logger = logging.getLogger(__name__)

INT_FORMATS = {1: "<B", 2: "<H", 4: "<I"}


@dataclass(frozen=True)
class FieldSpec:
    """
    One field at a fixed offset inside an executable

        id:          Attribute id, eg. `filename.music.3`
        offset:      Offset into the decompressed executable
        length:      Bytes reserved for the field
        kind:        String or integer
        description: Human readable summary
        terminated:  Strings need a trailing NUL inside `length`
    """
    id: str
    offset: int
    length: int
    kind: AttributeKind = AttributeKind.STRING
    description: str = ""
    terminated: bool = True

    @property
    def maxLength(self) -> Optional[int]:
        if self.kind != AttributeKind.STRING:
            return None
        return self.length - 1 if self.terminated else self.length


class ExeFieldsHandler(CodeHandler):
    """
    Executable handler driven by a catalog of fixed fields. Each supported
    executable version gets one instance with its own catalog and signatures
    """

    def __init__(self, formatId: str, title: str, fields: Iterable[FieldSpec],
                 signatures: Iterable[tuple[int, bytes]] = (), size: Optional[int] = None):
        """
            formatId:   Registry id, eg. `exe-cosmo1`
            title:      Human readable name
            fields:     Catalog of fields to expose as attributes
            signatures: (offset, bytes) pairs that only this version has
            size:       Exact decompressed size, when known
        """
        self.ID = formatId
        self.TITLE = title
        self.fields = list(fields)
        self.signatures = list(signatures)
        self.size = size

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if self.size is not None and len(content) != self.size:
            return Identification(False, f"Size {len(content)} does not match {self.size}.")
        for offset, expected in self.signatures:
            if content[offset:offset + len(expected)] != expected:
                return Identification(False, f"Signature mismatch at offset 0x{offset:X}.")
        if not self.signatures:
            return Identification(None, "No signature to compare against.")
        return Identification(True, "All signatures match.")

    def extract(self, content: dict[str, bytes]) -> ExeFields:
        data = content["main"]
        f = BytesIO(data)
        attributes = AttributeMap()
        for fieldDef in self.fields:
            if fieldDef.offset + fieldDef.length > len(data):
                raise ValueError(f"Field {fieldDef.id} lies past the end of the executable")

            if fieldDef.kind == AttributeKind.STRING:
                value = read_string(f, fieldDef.offset, fieldDef.length, "cp437")
            else:
                value = struct.unpack_from(INT_FORMATS[fieldDef.length], data, fieldDef.offset)[0]

            attributes.add(Attribute(fieldDef.id, value, fieldDef.kind, fieldDef.maxLength, fieldDef.description))

        logger.debug("Extracted %d attributes with %s", len(attributes), self.ID)
        return ExeFields(attributes)

    def patch(self, content: dict[str, bytes], exe: ExeFields) -> dict[str, bytes]:
        buffer = BytesIO(bytearray(content["main"]))
        problems = []
        for fieldDef in self.fields:
            attr = exe.attributes.get(fieldDef.id)
            if attr is None or not attr.is_modified():
                continue

            buffer.seek(fieldDef.offset)
            if fieldDef.kind == AttributeKind.STRING:
                try:
                    write_string(buffer, attr.value, fieldDef.maxLength, "cp437")
                except (ValueError, UnicodeEncodeError) as e:
                    problems.append(f"{fieldDef.id}: {e}")
                    continue
                if fieldDef.terminated:
                    buffer.write(b"\x00")
            else:
                try:
                    buffer.write(struct.pack(INT_FORMATS[fieldDef.length], attr.value))
                except struct.error as e:
                    problems.append(f"{fieldDef.id}: {e}")
            logger.debug("Patched %s = %r", fieldDef.id, attr.value)

        if problems:
            raise FormatLimitError(problems, "Executable")
        return {"main": buffer.getvalue()}
