from __future__ import annotations

import logging
from typing import Optional

from gameinfo.archive import Archive, ArchiveSearch, generate_archive
from gameinfo.attributes import Attribute
from gameinfo.formats.base import ExeFields, Identification
from gameinfo.formats.image import Palette
from gameinfo.game import Game, GameOpenError, SaveResult
from gameinfo.item import (ArchiveContent, AssetItem, AttributeRename, FolderItem,
                           HandlerDocument, ItemType)

logger = logging.getLogger(__name__)

DAT_NAMES = ("anim", "converse", "invent", "samples", "test")

GAME_PALETTE = "GAME.PAL"
BACKGROUND_PALETTE = "backg.pal"

FULLSCREEN_TITLES = {
    "backg": "Title screen planetary background",
    "cock1": "Cockpit zoom animation, frame 1",
    "cock2": "Cockpit zoom animation, frame 2",
    "cock3": "Cockpit zoom animation, frame 3",
    "cock4": "Cockpit zoom animation, frame 4",
    "cock5": "Cockpit zoom animation, frame 5",
    "crashed": "Crashed ship in snow",
    "cred0001": "Credits, page 1",
    "cred0002": "Credits, page 2",
    "cred0003": "Credits, page 3",
    "cred0004": "Credits, page 4",
    "cred0005": "Credits, page 5",
    "cred0006": "Credits, page 6",
    "end1a": "Player's crashed escape pod scene, exterior",
    "end1b": "Player's crashed escape pod scene, interior",
    "fixed": "Repaired ship in hangar",
    "getname": "Cockpit newgame screen",
    "korok01": "Endgame scene, Korok victory",
    "korok02": "Endgame scene, Korok victory",
    "oesi": "OESI logo",
    "open08": "Earthscape",
    "snow": "Intro cinematic snow field",
    "win01": "Endgame scene, Alliance victory",
    "win03": "Endgame scene, Alliance victory",
    "win04": "Endgame scene, Alliance victory",
}

FULLSCREEN_PALETTES = {
    **{name: BACKGROUND_PALETTE for name in ("backg", "cock1", "cock2", "cock3", "cock4", "cock5",
                                             "crashed", "fixed", "oesi", "snow")},
    **{f"cred000{i}": "cred0001.pal" for i in range(1, 7)},
    **{name: f"{name}.pal" for name in ("end1a", "end1b", "getname", "korok01", "korok02",
                                        "open08", "win01", "win03", "win04")},
}

STAMP_TITLES = {
    "pscan": "Planet scan display border",
    "navmap": "Navigation starmap, galaxy background",
    "navbkgnd": "Navigation starmap, sector background",
    "gtek": "GameTek intro logo",
    "nomad": "Nomad title logo",
    "design": "Intense! Interactive intro logo",
    "papyrus": "Papyrus Design Group intro logo",
    "border": "Intro screen border",
    "guybody": "Intro briefing guy",
    "sh01": "Ship shield effect, frame A",
    "sh02": "Ship shield effect, frame B",
}

# Everything else is drawn with backg.pal
STAMP_GAME_PALETTE = ("pscan", "navmap", "navbkgnd", "sh01", "sh02")

STAMPROLL_TITLES = {
    "shipst": "Engineering subsystem icons",
    "shp": "Ship scan schematics",
    "smk": "Snow crash particles and smoke",
    "guyhead": "Intro briefing guy head animation, front",
    "guyhead2": "Intro briefing guy head animation, profile",
    "guyturn": "Intro briefing guy body animation",
}

STAMPROLL_GAME_PALETTE = ("shipst", "shp")

INVENTORY_ITEMS = 254
EXPLOSION_FRAMES = 5
STAR_TYPES = 12

# species code: (name, number of cels, palette to show them with). Most
# species have several palettes, the first one that exists is used
ALIEN_SPECIES = {
    "al": ("Altec Hocker", 6, "ALT0001.PAL"),
    "ar": ("Arden", 42, "ARD20.PAL"),
    "be": ("Bellicosian", 56, "BEL03.PAL"),
    "ch": ("Chanticleer", 54, "CHA07.PAL"),
    "ke": ("Kenelm", 14, "KEN.PAL"),
    "ko": ("Korok", 32, "KOR02.PAL"),
    "mu": ("Musin", 55, "MUS12.PAL"),
    "pa": ("Pahrump", 51, "PAH00.PAL"),
    "ph": ("Phelonese", 49, "PHE10.PAL"),
    "sh": ("Shaasa", 43, "SHA04.PAL"),
    "ur": ("Ursor", 41, "URS00.PAL"),
}

PLANET_TEXTURES = 51
UNUSED_PLANET_TEXTURES = (21, 22, 23)

UNIDENTIFIED_WARNING = (
    "{filename} could not be positively identified.  It may be an unsupported "
    "version, modified, or corrupted.  Proceeding, you may encounter "
    "corruption.  If this is an official, unmodified version of the game, "
    "please report it so we can add support for it."
)


class PaletteLookup():
    """
    Attaches a palette stored in one of the DAT archives to each opened image

        dat:      DAT holding the palette file, or None for GAME.PAL
        filename: Palette file
        layered:  The palette is sparse and only patches GAME.PAL
    """

    def __init__(self, game: Nomad, dat: Optional[str] = None, filename: str = GAME_PALETTE,
                 layered: bool = False):
        self.game = game
        self.dat = dat or "test"
        self.filename = filename
        self.layered = layered

    def __call__(self, document) -> None:
        palette = self.game.read_palette(self.dat, self.filename)
        if self.layered:
            palette = self.game.read_palette("test", GAME_PALETTE).padded(256).overlay(palette)
        document.palette = palette


class Nomad(Game):
    """
    Nomad. Graphics live in five Papyrus DAT archives named by the executable
    """
    ID = "game-nomad"
    TITLE = "Nomad"

    EXE_FILENAME = "nomad.exe"
    CONTAINER_ATTRIBUTES = tuple(f"filename.dat.{name}" for name in DAT_NAMES)

    def __init__(self, filesystem, registry=None):
        super().__init__(filesystem, registry)
        self.exeContent: Optional[bytes] = None
        self.exe: Optional[ExeFields] = None
        self.dats: dict[str, Archive] = {}

    @classmethod
    def identify(cls, filesystem) -> Identification:
        if filesystem.exists(cls.EXE_FILENAME):
            return Identification(True, f"Found {cls.EXE_FILENAME}.")
        return Identification(False, f"Unable to find {cls.EXE_FILENAME}.")

    def open(self) -> list[str]:
        warnings = []
        filename = self.EXE_FILENAME
        try:
            self.exeContent = self.filesystem.read(filename)
            exeHandler = self.registry.get("exe-nomad")
            identified = exeHandler.identify(self.exeContent, filename)
            if identified.valid is not True:
                logger.debug("identify() failed for %s: %s", filename, identified.reason)
                warnings.append(UNIDENTIFIED_WARNING.format(filename=filename))
            self.exe = exeHandler.extract({"main": self.exeContent})
        except (OSError, LookupError, ValueError) as e:
            raise GameOpenError(f"Unable to continue, error while reading {filename}: {e}") from e

        datHandler = self.registry.get("arc-dat-papyrus-v1")
        for name in DAT_NAMES:
            datFilename = self.exe.attributes.value_of(f"filename.dat.{name}")
            if datFilename is None:
                raise GameOpenError(f"{filename} does not name its {name} DAT file")
            try:
                archive = datHandler.parse({"main": self.filesystem.read(datFilename)})
            except (OSError, ValueError) as e:
                raise GameOpenError(f"Unable to continue, error while reading {datFilename}: {e}") from e
            archive.filename = datFilename
            self.dats[name] = archive
            logger.debug("Read %d files from %s", len(archive), datFilename)

        return warnings

    def search(self, dat: str) -> ArchiveSearch:
        return ArchiveSearch([self.dats[dat]], self.dats[dat].filename)

    def rename_search(self, attribute: Attribute) -> ArchiveSearch:
        return self.search("test")

    def read_palette(self, dat: str, filename: str) -> Palette:
        content = self.search(dat).locate(filename).get_content()
        return self.registry.get("pal-vga-6bit-papyrus").read({"main": content})

    def _image(self, itemId: str, title: str, dat: str, filename: str, codec: str,
               palette: Optional[PaletteLookup] = None, options: Optional[dict] = None,
               attr: Optional[Attribute] = None) -> AssetItem:
        """
        Item for an image in one of the DATs. Images the DAT doesn't have are
        disabled
        """
        search = self.search(dat)
        if not search.contains(filename):
            return AssetItem.unavailable(itemId, title, ItemType.IMAGE,
                                         f"Unable to find \"{filename}\" in {search.label}.", filename)

        content = ArchiveContent(search, attr if attr is not None else filename)
        handler = self.registry.find(codec)
        return AssetItem(
            itemId, title, ItemType.IMAGE, filename,
            content=content,
            document=HandlerDocument(content, handler, options, palette) if handler is not None else None,
            renamer=AttributeRename(self, attr) if attr is not None else None,
        )

    def _fullscreen(self) -> FolderItem:
        folder = FolderItem("fullscreen", "Fullscreen cinematic backdrops")
        for attr in self.exe.attributes.with_prefix("filename.fullscreen."):
            index = attr.id[len("filename.fullscreen."):]
            # Some parts of the game leave the extension off
            filename = attr.value
            if not filename.lower().endswith(".lbm"):
                filename += ".lbm"

            palette = None
            if index in FULLSCREEN_PALETTES:
                palette = PaletteLookup(self, "test", FULLSCREEN_PALETTES[index])
            folder.add_child(self._image(f"fullscreen.{index}", FULLSCREEN_TITLES.get(index, index), "test",
                                         filename, "img-raw-linear-8bpp", palette, {"width": 320, "height": 200}))
        return folder

    def _inventory(self) -> FolderItem:
        folder = FolderItem("inventitem", "Inventory item images")
        for i in range(1, INVENTORY_ITEMS + 1):
            folder.add_child(self._image(f"inventitem.{i}", f"Inventory item {i}", "invent",
                                         f"inv{i:04d}.stp", "img-stp-v2", PaletteLookup(self)))
        return folder

    def _stamps(self) -> FolderItem:
        folder = FolderItem("stamp", "Overlay (stamp) images")
        for attr in self.exe.attributes.with_prefix("filename.stamp."):
            index = attr.id[len("filename.stamp."):]
            if index in STAMP_GAME_PALETTE:
                palette = PaletteLookup(self)
            else:
                palette = PaletteLookup(self, "test", BACKGROUND_PALETTE)
            folder.add_child(self._image(f"stamp.{index}", STAMP_TITLES.get(index, index), "test",
                                         attr.value, "img-stp-v2", palette, attr=attr))

        for i in range(1, EXPLOSION_FRAMES + 1):
            folder.add_child(self._image(f"stamp.ex{i:02d}", f"Explosion effect, frame {i}", "test",
                                         f"EX{i:02d}.STP", "img-stp-v2", PaletteLookup(self)))
        for i in range(1, STAR_TYPES + 1):
            folder.add_child(self._image(f"stamp.star{i:04d}", f"Background star, type {i}", "test",
                                         f"STAR{i:04d}.STP", "img-stp-v2", PaletteLookup(self)))
        return folder

    def _stamp_rolls(self) -> FolderItem:
        folder = FolderItem("stamproll", "Animations (stamp rolls)")
        for attr in self.exe.attributes.with_prefix("filename.stamproll."):
            index = attr.id[len("filename.stamproll."):]
            if index in STAMPROLL_GAME_PALETTE:
                palette = PaletteLookup(self)
            else:
                palette = PaletteLookup(self, "test", BACKGROUND_PALETTE)
            folder.add_child(self._image(f"stamproll.{index}", STAMPROLL_TITLES.get(index, index), "test",
                                         attr.value, "img-rol-v2", palette, attr=attr))
        return folder

    def _aliens(self) -> FolderItem:
        folder = FolderItem("alien", "Alien animations cels")
        for species, (name, cels, paletteFilename) in ALIEN_SPECIES.items():
            speciesId = "".join(name.lower().split())
            palette = PaletteLookup(self, "anim", paletteFilename, layered=True)
            for i in range(1, cels + 1):
                folder.add_child(self._image(f"alien.{speciesId}.{i}", f"{name}, cel {i}", "anim",
                                             f"{species}{i:04d}.del", "img-del", palette))
        return folder

    def _planets(self) -> FolderItem:
        folder = FolderItem("planet", "Planet surface textures")
        for i in range(PLANET_TEXTURES):
            if i in UNUSED_PLANET_TEXTURES:
                continue
            palette = PaletteLookup(self, "test", f"WORLD{i:02d}a.pal", layered=True)
            folder.add_child(self._image(f"planet.{i}", f"Planet texture {i}", "test",
                                         f"WORLD{i:02d}a.pln", "img-pln", palette))
        return folder

    def items(self) -> FolderItem:
        # Every stamp and stamp roll falls back on it
        self.search("test").locate(GAME_PALETTE)

        root = FolderItem("root", self.TITLE)
        for folder in (self._fullscreen(), self._inventory(), self._stamps(),
                       self._stamp_rolls(), self._aliens(), self._planets()):
            root.add_child(folder)
        return root

    def save(self) -> SaveResult:
        datHandler = self.registry.get("arc-dat-papyrus-v1")
        files = {}
        warnings = []
        for name in DAT_NAMES:
            output = generate_archive(self.dats[name], datHandler)
            warnings.extend(output.warnings)
            files[self.exe.attributes.value_of(f"filename.dat.{name}").lower()] = output.main

        patched = self.registry.get("exe-nomad").patch({"main": self.exeContent}, self.exe)
        files[self.EXE_FILENAME] = patched["main"]
        return SaveResult(files, warnings)
