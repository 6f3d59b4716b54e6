import logging
import sys
from argparse import ArgumentError, ArgumentParser
from typing import Optional, Sequence

from gameinfo import __version__
from gameinfo.config import Config, ConfigError
from gameinfo.formats import default_registry
from gameinfo.operations import Operations, OperationsError, list_formats

logger = logging.getLogger("gameinfo")

USAGE = """\
Use: gameinfo [--debug] --formats | [command1 [command2...]]

Options:

  --formats
    List all supported games and file formats.

  --debug
    Show debugging messages.

Commands:

  check
    Run preflight checks before saving to pick up any potential problems.
    These are run automatically during a save operation, but this allows them
    to be run without saving anything.

  list | ls | dir
    Show all items in the currently opened game.

  open [-t format] <folder>
    Open the local <folder> as a game, autodetecting the game unless -t is
    given.  Use --formats for a list of possible values.

  save [-f]
    Write any changes back to the game files.  This will fail if there are
    important or critical warnings, but -f will ignore the warnings and force
    a save anyway.

  select <id>
    Select an item by ID for the selection commands below to work on.

Selection commands:

  export [-t format] <file>
    Convert the selected item into <file> in the given format.  Counterpart
    to 'import'.

  extract <file>
    Copy the selected item into <file> without converting it, apart from
    decompressing it if the game had done so.  Counterpart to 'replace'.

  import [-t format] <file>
    Read <file> in the given format (autodetected if omitted), convert it
    into the game's native format and overwrite the selected item.

  info
    Display technical information about the selected item.

  rename <new>
    Rename the file behind the selected item, both inside its archive and
    in the game executable that refers to it.

  replace <file>
    Overwrite the selected item with the raw content of <file>.

Examples:

  # List the items in a game stored in the folder /dos/games/cosmo
  gameinfo open /dos/games/cosmo list

  # Rename the file used by song 1, inside the .VOL archive and the .EXE
  gameinfo open /dos/games/cosmo select music.1 rename mysong.mni save
"""

GLOBAL_OPTIONS = ("--help", "-h", "--formats", "--debug")

ALIASES = {
    "ls": "list",
    "dir": "list",
}


def _command_parser(name: str) -> ArgumentParser:
    parser = ArgumentParser(prog=f"gameinfo {name}", add_help=False, allow_abbrev=False, exit_on_error=False)
    if name in ("export", "import", "open"):
        parser.add_argument("-t", "--format", help="Format id")
    if name == "save":
        parser.add_argument("-f", "--force", action="store_true", help="Save despite warnings")
    if name in ("export", "extract", "import", "open", "rename", "replace", "select"):
        parser.add_argument("target", nargs="?")
    return parser


COMMANDS = ("check", "export", "extract", "import", "info", "list", "open", "rename", "replace", "save", "select")


def split_commands(argv: Sequence[str]) -> list[tuple[str, list[str]]]:
    """
    Break a command chain into (command, arguments) pairs. Anything that
    names a command starts a new one, except the value given to -t
    """
    commands: list[tuple[str, list[str]]] = []
    expectValue = False
    for arg in argv:
        if not expectValue and (arg in COMMANDS or arg in ALIASES):
            commands.append((ALIASES.get(arg, arg), []))
            continue
        if not commands:
            commands.append((arg, []))
            continue
        commands[-1][1].append(arg)
        expectValue = arg in ("-t", "--format")
    return commands


def run_command(proc: Operations, name: str, args: list[str]):
    try:
        options, extra = _command_parser(name).parse_known_args(args)
    except ArgumentError as e:
        raise OperationsError(f"{name}: {e}") from e
    if extra:
        raise OperationsError(f"{name}: unexpected argument {' '.join(extra)}")

    options = vars(options)
    method = getattr(proc, "import_" if name == "import" else name)
    return method(**options)


def main(argv: Optional[Sequence[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = ArgumentParser(
        f"gameinfo v{__version__}", description="Inspect and modify the files of DOS games",
        add_help=False, allow_abbrev=False)
    parser.add_argument("--help", "-h", action="store_true")
    parser.add_argument("--formats", action="store_true")
    parser.add_argument("--debug", action="store_true")

    # Options only come before the first command
    argv = list(argv)
    first = 0
    while first < len(argv) and argv[first] in GLOBAL_OPTIONS:
        first += 1
    args = parser.parse_args(argv[:first])
    chain = argv[first:]

    try:
        config = Config.load()
    except ConfigError as e:
        print(e, file=sys.stderr)
        return 2
    config.apply_logging(args.debug)

    registry = default_registry()
    registry.load_modules(config.plugins)

    if args.formats:
        list_formats(registry)
        return 0

    if not chain or args.help:
        print(USAGE)
        return 0

    proc = Operations(registry, config.exportFormat)
    for name, commandArgs in split_commands(chain):
        if name not in COMMANDS:
            print(f"Unknown command: {name}", file=sys.stderr)
            return 1
        logger.debug("Running %s %s", name, commandArgs)
        try:
            run_command(proc, name, commandArgs)
        except OperationsError as e:
            print(e, file=sys.stderr)
            return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
