from pathlib import Path


def get_program_folder(folder: str = "") -> Path:
    """ Get path to appdata """
    from os import getenv
    import sys

    if sys.platform == "win32":
        datapath = Path(getenv("APPDATA")) / folder
    elif sys.platform == "darwin":
        if folder:
            folder = "." + folder
        datapath = Path("~/Library/Application Support").expanduser() / folder
    elif "linux" in sys.platform:
        if folder:
            folder = "." + folder
        datapath = Path.home() / folder
    else:
        raise NotImplementedError(f"{sys.platform} OS is unsupported")
    return datapath


# bytes pretty-printing
UNITS_MAPPING = (
    (1 << 20, " MB"),
    (1 << 10, " KB"),
    (1, (" byte", " bytes")),
)


def pretty_filesize(size: int, units=UNITS_MAPPING) -> str:
    """Get human-readable file sizes."""
    for factor, suffix in units:
        if size >= factor:
            break
    amount = int(size / factor)

    if isinstance(suffix, tuple):
        singular, multiple = suffix
        if amount == 1:
            suffix = singular
        else:
            suffix = multiple
    return str(amount) + suffix
