from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional

from gameinfo.archive import Archive, ArchiveEntry
from gameinfo.formats.base import (ArchiveHandler, FormatLimitError,
                                   GenerateResult, Identification)
from gameinfo.iohelper import read_string, read_uint32, write_string, write_uint32

logger = logging.getLogger(__name__)


class VolCosmoArchive(ArchiveHandler):
    """
    Cosmo's Cosmic Adventure .VOL/.STN archives: a fixed table of 200 slots
    followed by the file data
    """
    ID = "arc-vol-cosmo"
    TITLE = "Cosmo's Cosmic Adventure VOL/STN archive"
    PARAMS = {"maxFiles": 200, "maxFilenameLen": 12}

    MAX_FILES = 200
    NAME_LENGTH = 12
    ENTRY_SIZE = NAME_LENGTH + 8
    FAT_SIZE = MAX_FILES * ENTRY_SIZE

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if len(content) < self.FAT_SIZE:
            return Identification(False, f"Content too short for FAT ({len(content)} < {self.FAT_SIZE}).")

        f = BytesIO(content)
        for index in range(self.MAX_FILES):
            f.seek(index * self.ENTRY_SIZE)
            rawName = f.read(self.NAME_LENGTH)
            offset = read_uint32(f)
            size = read_uint32(f)
            if rawName[0] == 0:
                continue
            if offset < self.FAT_SIZE and size:
                return Identification(False, f"File {index} starts inside the FAT.")
            if offset + size > len(content):
                return Identification(False, f"File {index} runs past the end of the archive.")

        return Identification(True, "All file offsets and sizes are within the archive.")

    def parse(self, content: dict[str, bytes]) -> Archive:
        data = content["main"]
        if len(data) < self.FAT_SIZE:
            raise ValueError(f"Archive is truncated, the FAT alone is {self.FAT_SIZE} bytes")

        f = BytesIO(data)
        entries = []
        for index in range(self.MAX_FILES):
            base = index * self.ENTRY_SIZE
            if data[base] == 0:
                continue
            name = read_string(f, base, self.NAME_LENGTH, "cp437")
            f.seek(base + self.NAME_LENGTH)
            offset = read_uint32(f)
            size = read_uint32(f)
            if offset + size > len(data):
                raise ValueError(f"{name} runs past the end of the archive")
            entries.append(ArchiveEntry(
                name,
                data[offset:offset + size],
                nativeSize=size,
                diskSize=size,
                attributes={"offset": offset, "slot": index},
            ))

        logger.debug("Parsed %d files from VOL archive", len(entries))
        return Archive(entries, original=data)

    def generate(self, archive: Archive) -> GenerateResult:
        problems = []
        if len(archive.files) > self.MAX_FILES:
            problems.append(f"Too many files: {len(archive.files)} (max is {self.MAX_FILES}).")
        for entry in archive.files:
            if len(entry.name) > self.NAME_LENGTH:
                problems.append(f"Filename \"{entry.name}\" is longer than {self.NAME_LENGTH} chars.")
        if problems:
            raise FormatLimitError(problems, archive.filename or "Archive")

        warnings = []
        blobs = []
        for entry in archive.files:
            content, entryWarnings = entry.resolve()
            warnings.extend(entryWarnings)
            blobs.append(content)

        fat = BytesIO()
        offset = self.FAT_SIZE
        for entry, content in zip(archive.files, blobs):
            write_string(fat, entry.name, self.NAME_LENGTH, "cp437")
            write_uint32(fat, offset)
            write_uint32(fat, len(content))
            entry.diskSize = len(content)
            offset += len(content)
        fat.write(b"\x00" * (self.FAT_SIZE - fat.tell()))

        return GenerateResult({"main": fat.getvalue() + b"".join(blobs)}, warnings)
