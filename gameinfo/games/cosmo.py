from __future__ import annotations

import logging
from typing import Optional

from gameinfo.archive import Archive, ArchiveSearch, generate_archive
from gameinfo.attributes import Attribute
from gameinfo.formats.base import ArchiveHandler, CodeHandler, ExeFields, Identification
from gameinfo.formats.exe_unpack import decompress_exe
from gameinfo.game import Game, GameOpenError, PreflightWarning, SaveResult, Severity
from gameinfo.item import (ArchiveContent, AssetItem, AttributeRename, CallbackDocument,
                           FolderItem, HandlerDocument, ItemType)

logger = logging.getLogger(__name__)

EPISODES = (1, 2, 3)

B800_TITLES = {
    "nomemory": "Not enough memory error",
    "farewell": "Exit screen",
}

TILESET_CODECS = {
    "solid": ("tls-cosmo", "Solid tiles"),
    "masked": ("tls-cosmo-masked", "Masked tiles"),
}

SAVEGAME_DETAIL = (
    "The template used to construct filenames for saved games has not been "
    "changed.  This will cause your mod to share its saved games with the "
    "original unmodified game, allowing saved games from the original to be "
    "loaded inside your mod, possibly allowing unintentional access to other "
    "levels.\n\n"
    "It is recommended to change the template so that it is unique for your "
    "mod to avoid this problem.  This will also prevent games saved while in "
    "your mod from overwriting saved games belonging to the original "
    "unmodified game.\n\n"
    "The value is located in the \"filename.savegame.template\" attribute in "
    "the game's .exe file."
)


class Episode():
    """ Everything loaded for one episode: its executable and both archives """

    def __init__(self, number: int, handler: CodeHandler):
        self.number = number
        self.handler = handler
        self.exeFilename = f"cosmo{number}.exe"
        self.exeContent: Optional[bytes] = None
        self.exe: Optional[ExeFields] = None
        self.vol: Optional[Archive] = None
        self.stn: Optional[Archive] = None

    @property
    def attributes(self):
        return self.exe.attributes

    @property
    def search(self) -> ArchiveSearch:
        """ The episode's own VOL wins over the STN shared by every episode """
        return ArchiveSearch([self.vol, self.stn], "the .VOL or .STN archive")


class Cosmo(Game):
    """
    Cosmo's Cosmic Adventure. Each episode has an executable naming its
    files, an episode .VOL archive and a .STN archive of shared files
    """
    ID = "game-cosmo"
    TITLE = "Cosmo's Cosmic Adventure"

    CONTAINER_ATTRIBUTES = ("filename.archive.episode", "filename.archive.standard")

    def __init__(self, filesystem, registry=None):
        super().__init__(filesystem, registry)
        self.episodes: dict[int, Episode] = {}

    @classmethod
    def identify(cls, filesystem) -> Identification:
        for number in EPISODES:
            exeFilename = f"cosmo{number}.exe"
            if filesystem.exists(exeFilename):
                return Identification(True, f"Found {exeFilename}.")
        return Identification(False, "Unable to find one or more of cosmo[123].exe.")

    def _read_archive(self, episode: Episode, attrId: str, handler: ArchiveHandler) -> Archive:
        filename = episode.attributes.value_of(attrId)
        if filename is None:
            raise GameOpenError(f"{episode.exeFilename} does not name its {attrId} file")
        try:
            archive = handler.parse({"main": self.filesystem.read(filename)})
        except (OSError, ValueError) as e:
            raise GameOpenError(f"Unable to continue, error while reading {filename}: {e}") from e
        archive.filename = filename
        logger.debug("Read %d files from %s", len(archive), filename)
        return archive

    def open(self) -> list[str]:
        warnings = []
        volHandler = self.registry.get("arc-vol-cosmo")

        for number in EPISODES:
            episodeName = f"cosmo{number}.exe"
            if not self.filesystem.exists(episodeName):
                continue

            try:
                episode = Episode(number, self.registry.get(f"exe-cosmo{number}"))
                episode.exeContent = decompress_exe(self.filesystem.read(episodeName), self.registry, episodeName)
                identified = episode.handler.identify(episode.exeContent, episodeName)
                if identified.valid is False:
                    warnings.append(f"Episode {number} is unavailable due to {episodeName} being an "
                                    f"unrecognised version: {identified.reason}")
                    continue
                episode.exe = episode.handler.extract({"main": episode.exeContent})
            except (OSError, LookupError, ValueError) as e:
                logger.debug("Episode %d unavailable", number, exc_info=True)
                warnings.append(f"Episode {number} is unavailable due to an error while reading "
                                f"{episodeName}: {e}")
                continue

            episode.vol = self._read_archive(episode, "filename.archive.episode", volHandler)
            episode.stn = self._read_archive(episode, "filename.archive.standard", volHandler)
            self.episodes[number] = episode

        if not self.episodes:
            raise GameOpenError("No episode of the game could be loaded:\n" + "\n".join(warnings))
        return warnings

    def _episode_of(self, attribute: Attribute) -> Episode:
        for episode in self.episodes.values():
            if episode.attributes.get(attribute.id) is attribute:
                return episode
        raise LookupError(f"{attribute.id} does not belong to any loaded episode")

    def rename_search(self, attribute: Attribute) -> ArchiveSearch:
        return self._episode_of(attribute).search

    def _asset(self, episode: Episode, itemId: str, title: str, kind: ItemType, attr: Attribute,
               codec: Optional[str] = None, options: Optional[dict] = None,
               rawAccess: bool = True, editable: bool = True) -> AssetItem:
        """
        Item for a file named by `attr` inside the episode archives. Missing
        files give a disabled item
        """
        filename = attr.value
        search = episode.search
        if not search.contains(filename):
            return AssetItem.unavailable(itemId, title, kind,
                                         f"{filename} is not in the .VOL or .STN archive.", filename)

        content = ArchiveContent(search, attr)
        handler = self.registry.find(codec) if codec else None
        document = None
        if handler is not None:
            document = HandlerDocument(content, handler, options, editable=editable)

        return AssetItem(
            itemId, title, kind, filename,
            content=content if rawAccess else None,
            document=document,
            renamer=AttributeRename(self, attr),
        )

    def _episode_items(self, episode: Episode) -> dict[str, FolderItem]:
        attributes = episode.attributes

        levels = FolderItem("levels", "Levels")
        for attr in attributes.with_prefix("filename.level."):
            index = attr.id[len("filename.level."):]
            if index.startswith("bonus."):
                title = f"Bonus level {index[len('bonus.'):]}"
            else:
                title = f"Level {index}"
            levels.add_child(self._asset(episode, f"level.{index}", title, ItemType.MAP, attr,
                                         "map-cosmo", rawAccess=False, editable=False))

        tiles = FolderItem("tiles", "Tilesets")
        for attr in attributes.with_prefix("filename.tiles."):
            index = attr.id[len("filename.tiles."):]
            codec, title = TILESET_CODECS.get(index, (None, f"Tileset {index}"))
            # Without tiles there is nothing to draw levels with
            episode.search.locate(attr.value)
            tiles.add_child(self._asset(episode, f"tiles.{index}", title, ItemType.TILESET, attr, codec))

        backdrops = FolderItem("backdrop", "Level backgrounds")
        for attr in attributes.with_prefix("filename.backdrop."):
            index = attr.id[len("filename.backdrop."):]
            backdrops.add_child(self._asset(episode, f"backdrop.{index}", f"Backdrop {index}",
                                            ItemType.IMAGE, attr, "img-cosmo-backdrop"))

        songs = FolderItem("music", "Music")
        for attr in attributes.with_prefix("filename.music."):
            index = attr.id[len("filename.music."):]
            songs.add_child(self._asset(episode, f"music.{index}", f"Song {index}", ItemType.MUSIC,
                                        attr, "mus-imf-idsoftware-type0"))

        sounds = FolderItem("sound", "Sound effects")
        for attr in attributes.with_prefix("filename.sounds."):
            index = attr.id[len("filename.sounds."):]
            sounds.add_child(self._asset(episode, f"sounds.{index}", f"Sound effects {index}",
                                         ItemType.SOUND, attr, "snd-cosmo"))

        b800 = FolderItem("textSplash", "Text-mode splash screens")
        for attr in attributes.with_prefix("filename.b800."):
            index = attr.id[len("filename.b800."):]
            b800.add_child(self._asset(episode, f"b800.{index}", B800_TITLES.get(index, index),
                                       ItemType.B800, attr, "b800-text"))

        misc = FolderItem("misc", "Misc")
        misc.add_child(AssetItem(
            "attributes", "Attributes", ItemType.ATTRIBUTES,
            document=CallbackDocument(attributes.values_dict, attributes.update_values),
        ))

        return {
            "levels": levels,
            "tiles": tiles,
            "backdrop": backdrops,
            "music": songs,
            "sound": sounds,
            "textSplash": b800,
            "misc": misc,
        }

    def items(self) -> FolderItem:
        root = FolderItem("root", self.TITLE)
        for number, episode in self.episodes.items():
            root.add_child(FolderItem(f"e{number}", f"Episode {number}", self._episode_items(episode)))
        return root

    def preflight(self) -> list[PreflightWarning]:
        warnings = []
        for number, episode in self.episodes.items():
            template = episode.attributes.value_of("filename.savegame.template")
            if template == f"COSMO{number}.SV ":
                warnings.append(PreflightWarning(
                    Severity.IMPORTANT,
                    "Saved game filename template unchanged",
                    SAVEGAME_DETAIL,
                ))
        return warnings

    def save(self) -> SaveResult:
        """
        Write every episode's archives and executable straight to the game
        folder. Files are written one at a time, so a failure part way
        through can leave some files updated and others not
        """
        volHandler = self.registry.get("arc-vol-cosmo")
        warnings = []
        for episode in self.episodes.values():
            attributes = episode.attributes

            for attrId, archive in (("filename.archive.episode", episode.vol),
                                    ("filename.archive.standard", episode.stn)):
                output = generate_archive(archive, volHandler)
                warnings.extend(output.warnings)
                self.filesystem.write(attributes.value_of(attrId), output.main)

            patched = episode.handler.patch({"main": episode.exeContent}, episode.exe)
            self.filesystem.write(episode.exeFilename, patched["main"])

        return SaveResult(None, warnings)
