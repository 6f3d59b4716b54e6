from __future__ import annotations

import struct
from typing import Optional

from gameinfo.formats.base import DocumentHandler, GenerateResult, HandlerKind, Identification
from gameinfo.formats.documents import Music, OPLEvent

RECORD = struct.Struct("<BBH")


class IMFType0(DocumentHandler):
    """
    id Software Music Format, type 0: no length header, just four byte
    records of register, value and a u16le delay until the next record
    """
    ID = "mus-imf-idsoftware-type0"
    TITLE = "id Software Music Format (type 0)"
    KIND = HandlerKind.MUSIC
    PARAMS = {"tempo": 560}

    def identify(self, content: bytes, filename: Optional[str] = None) -> Identification:
        if len(content) % RECORD.size:
            return Identification(False, "Size is not a whole number of records.")
        for reg, val, delay in RECORD.iter_unpack(content):
            if reg > 0xF5:
                return Identification(False, f"Register 0x{reg:02X} is not a valid OPL2 register.")
        return Identification(None, "Every record writes a valid OPL2 register.")

    def read(self, content: dict[str, bytes], options: Optional[dict] = None) -> Music:
        tempo = (options or {}).get("tempo", self.PARAMS["tempo"])
        data = content["main"]
        data = data[:len(data) - len(data) % RECORD.size]
        return Music([OPLEvent(*record) for record in RECORD.iter_unpack(data)], tempo)

    def check_limits(self, document: Music, options: Optional[dict] = None) -> list[str]:
        problems = []
        for index, event in enumerate(document.events):
            if not (0 <= event.reg <= 0xFF and 0 <= event.val <= 0xFF):
                problems.append(f"Event {index} writes 0x{event.val:X} to register 0x{event.reg:X}, "
                                "both must fit in a byte.")
            if not (0 <= event.delay <= 0xFFFF):
                problems.append(f"Event {index} has a delay of {event.delay} ticks (max is 65535).")
        return problems

    def write(self, document: Music, options: Optional[dict] = None) -> GenerateResult:
        warnings = []
        tempo = (options or {}).get("tempo", self.PARAMS["tempo"])
        if document.tempo != tempo:
            warnings.append(f"Song tempo {document.tempo} Hz will play at {tempo} Hz.")
        out = b"".join(RECORD.pack(e.reg, e.val, e.delay) for e in document.events)
        return GenerateResult({"main": out}, warnings)
