from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional, Union

logger = logging.getLogger(__name__)


class GameFileError(OSError):
    ...


class GameFileNotFoundError(GameFileError, FileNotFoundError):
    ...


class Filesystem():
    """
    Access to the files of one game folder.

    DOS games refer to their files in whatever case the programmer felt like
    typing, so every lookup here matches path segments case-insensitively.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.root}>"

    @staticmethod
    def _segments(filename: str) -> list[str]:
        return [part for part in PurePosixPath(filename.replace("\\", "/")).parts if part not in ("/", ".")]

    def find_file(self, filename: str) -> Optional[Path]:
        """
        Resolve `filename` against the game folder, one segment at a time

            filename: Path relative to the game folder, in any case

        Returns the real path, or None when any segment is missing
        """
        current = self.root
        for segment in self._segments(filename):
            if (current / segment).exists():
                current = current / segment
                continue

            target = segment.lower()
            try:
                match = next((p for p in current.iterdir()
                             if p.name.lower() == target), None)
            except OSError:
                return None

            if match is None:
                return None
            current = match

        if current == self.root:
            return None
        return current

    def exists(self, filename: str) -> bool:
        return self.find_file(filename) is not None

    def listdir(self) -> Iterator[str]:
        for path in sorted(self.root.iterdir()):
            yield path.name

    def read(self, filename: str) -> bytes:
        path = self.find_file(filename)
        if path is None or not path.is_file():
            raise GameFileNotFoundError(f"{filename} could not be read: file not found in {self.root}")

        logger.debug("Reading %s", path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise GameFileError(f"{filename} could not be read: {e.strerror or e}") from e

    def write(self, filename: str, content: bytes) -> Path:
        """
        Write `content` over the file matching `filename`, or create it under
        the name given when no such file exists yet
        """
        path = self.find_file(filename)
        if path is None:
            segments = self._segments(filename)
            parent = self.root
            if len(segments) > 1:
                parent = self.find_file("/".join(segments[:-1])) or self.root.joinpath(*segments[:-1])
            path = parent / segments[-1]

        logger.debug("Writing %d bytes to %s", len(content), path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise GameFileError(f"{filename} could not be written: {e.strerror or e}") from e
        return path

    def rename(self, newName: str, oldName: str) -> Path:
        """
        Rename a file in the game folder

            newName: New filename, placed next to the old file
            oldName: Existing filename, in any case
        """
        path = self.find_file(oldName)
        if path is None:
            raise GameFileNotFoundError(f"{oldName} could not be renamed: file not found in {self.root}")

        newPath = path.with_name(self._segments(newName)[-1])
        existing = self.find_file(newName)
        if existing is not None and existing != path and existing.name.lower() != path.name.lower():
            raise GameFileError(f"{oldName} could not be renamed: {existing.name} already exists")

        logger.debug("Renaming %s to %s", path, newPath)
        try:
            return path.rename(newPath)
        except OSError as e:
            raise GameFileError(f"{oldName} could not be renamed to {newName}: {e.strerror or e}") from e
