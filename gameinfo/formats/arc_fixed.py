from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, Optional

from gameinfo.archive import Archive, ArchiveEntry
from gameinfo.formats.base import ArchiveHandler, FormatLimitError, GenerateResult, Identification


@dataclass(frozen=True)
class FixedSlot:
    """
    A file embedded at a fixed place in a host file

        name:         Filename the game knows it by
        offset:       Where the data starts
        capacity:     Bytes reserved for it
        lengthOffset: Offset of a u32le holding the real length, if any
    """
    name: str
    offset: int
    capacity: int
    lengthOffset: Optional[int] = None


class FixedOffsetArchive(ArchiveHandler):
    """
    Files embedded in an executable at fixed offsets. The host bytes around
    the slots are kept exactly as they were
    """

    def __init__(self, formatId: str, title: str, slots: Iterable[FixedSlot], size: Optional[int] = None):
        self.ID = formatId
        self.TITLE = title
        self.slots = list(slots)
        self.size = size

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if self.size is not None and len(content) != self.size:
            return Identification(False, f"Size {len(content)} does not match {self.size}.")
        end = max((s.offset + s.capacity for s in self.slots), default=0)
        if len(content) < end:
            return Identification(False, "Too short to hold every embedded file.")
        return Identification(None, "Large enough to hold every embedded file.")

    def _length(self, data: bytes, slot: FixedSlot) -> int:
        if slot.lengthOffset is None:
            return slot.capacity
        if slot.lengthOffset + 4 > len(data):
            raise ValueError(f"Length of {slot.name} lies past the end of the file")
        return struct.unpack_from("<I", data, slot.lengthOffset)[0]

    def parse(self, content: dict[str, bytes]) -> Archive:
        data = content["main"]
        entries = []
        for slot in self.slots:
            length = self._length(data, slot)
            if length > slot.capacity or slot.offset + length > len(data):
                raise ValueError(f"{slot.name} claims {length} bytes, which doesn't fit its slot")
            entries.append(ArchiveEntry(slot.name, data[slot.offset:slot.offset + length],
                                        nativeSize=length, diskSize=length,
                                        attributes={"slot": slot}))
        return Archive(entries, original=data)

    def generate(self, archive: Archive) -> GenerateResult:
        if archive.original is None:
            raise ValueError("Embedded archives can only be rebuilt on top of their host file")

        out = bytearray(archive.original)
        warnings = []
        problems = []
        for entry in archive.files:
            slot: FixedSlot = entry.attributes["slot"]
            if entry.is_renamed():
                problems.append(f"{entry.originalName} can't be renamed, the game finds it by position.")
                continue
            if not entry.is_modified():
                continue

            content, entryWarnings = entry.resolve()
            warnings.extend(entryWarnings)
            if len(content) > slot.capacity:
                problems.append(f"{entry.name} is {len(content)} bytes but only {slot.capacity} fit.")
                continue
            if slot.lengthOffset is None and len(content) != slot.capacity:
                problems.append(f"{entry.name} must be exactly {slot.capacity} bytes, not {len(content)}.")
                continue

            out[slot.offset:slot.offset + slot.capacity] = content + b"\x00" * (slot.capacity - len(content))
            if slot.lengthOffset is not None:
                struct.pack_into("<I", out, slot.lengthOffset, len(content))
            entry.diskSize = len(content)

        if problems:
            raise FormatLimitError(problems, archive.filename or "Executable archive")
        return GenerateResult({"main": bytes(out)}, warnings)
