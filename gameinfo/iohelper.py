import struct
from typing import BinaryIO, Optional

from chardet import UniversalDetector

# DOS executables and archives are little endian throughout


def read_uint32(f: BinaryIO):
    return struct.unpack("<I", f.read(4))[0]


def write_uint32(f: BinaryIO, val):
    f.write(struct.pack("<I", val))


KNOWN_ENCODES = {"ascii", "cp437", "windows-1252", "iso-8859-1"}


def bytes_to_string(data: bytes, encoding: Optional[str] = None) -> str:
    """
    Smartly decodes an array of bytes to a string using `chardet`

    Anything chardet can't place among the DOS era code pages is read as cp437
    """
    if encoding is None:
        encoder = UniversalDetector()
        encoder.feed(data)
        encoding = encoder.close()["encoding"]

    if not encoding or encoding.lower() not in KNOWN_ENCODES:
        encoding = "cp437"
    try:
        return data.decode(encoding)
    except UnicodeDecodeError:
        return data.decode("cp437")


def read_string(
    f: BinaryIO,
    offset: int = 0,
    maxlen: int = 0,
    encoding: Optional[str] = None
) -> str:
    """ Reads a null terminated string from the specified address """
    f.seek(offset)

    binary = f.read(maxlen) if maxlen > 0 else f.read()
    end = binary.find(b"\x00")
    if end != -1:
        binary = binary[:end]

    return bytes_to_string(binary, encoding)


def write_string(f: BinaryIO, val: str, length: int, encoding: str = "cp437"):
    """ Writes `val` into a fixed `length` field, null padded """
    raw = val.encode(encoding)
    if len(raw) > length:
        raise ValueError(f"\"{val}\" does not fit in a field of {length} bytes")
    f.write(raw + b"\x00" * (length - len(raw)))
