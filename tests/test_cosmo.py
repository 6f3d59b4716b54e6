from __future__ import annotations

import pytest

from gameinfo.archive import DuplicateEntryError, MissingAssetError
from gameinfo.filesystem import Filesystem
from gameinfo.formats.arc_vol_cosmo import VolCosmoArchive
from gameinfo.formats.documents import OPLEvent
from gameinfo.game import GameOpenError, RenameError, Severity
from gameinfo.games import Cosmo
from gameinfo.item import ItemType
from tests.gamedata import build_vol, cosmo_files, write_files


def find(root, itemId):
    return next(item for item in root.walk() if item.id == itemId)


def test_identify(cosmo_dir, ddave_dir):
    assert Cosmo.identify(Filesystem(cosmo_dir)).valid is True
    assert Cosmo.identify(Filesystem(ddave_dir)).valid is False


def test_tree(cosmo):
    assert cosmo.openWarnings == []
    root = cosmo.items()
    assert list(root.children) == ["e1"]
    assert list(root.children["e1"].children) == [
        "levels", "tiles", "backdrop", "music", "sound", "textSplash", "misc"]

    ids = [item.id for item in root.walk()]
    assert len(ids) == len(set(ids))
    assert "tiles.solid" in ids
    assert "music.1" in ids


def test_missing_file_disables_item(cosmo):
    item = find(cosmo.items(), "level.bonus.1")
    assert item.disabled
    assert item.subtitle == "BONUS1.MNI"
    assert "BONUS1.MNI" in item.disabledReason


def test_level_without_map_codec(cosmo):
    item = find(cosmo.items(), "level.1")
    assert item.kind == ItemType.MAP
    assert not item.disabled
    assert item.capabilities() == ["rename"]


def test_sounds_without_codec_are_raw_only(cosmo):
    item = find(cosmo.items(), "sounds.1")
    assert item.capabilities() == ["extract", "replace", "rename"]
    assert item.extract() == b"sfx"


def test_open_documents(cosmo):
    root = cosmo.items()

    tiles = find(root, "tiles.solid").open()
    assert len(tiles.frames) == 2
    masked = find(root, "tiles.masked").open()
    assert len(masked.frames) == 1

    backdrop = find(root, "backdrop.1").open()
    assert (backdrop.width, backdrop.height) == (320, 144)

    song = find(root, "music.1").open()
    assert song.events[0] == OPLEvent(0x20, 0x01, 10)

    screen = find(root, "b800.farewell").open()
    assert screen.get_cell(0, 0) == (ord("B"), 0x1F)


def test_music_edit_is_written_on_save(cosmo, cosmo_dir):
    item = find(cosmo.items(), "music.1")
    song = item.open()
    song.events.append(OPLEvent(0xBD, 0x20, 5))
    assert item.save(song) == []

    assert cosmo.save().files is None
    vol = VolCosmoArchive().parse({"main": (cosmo_dir / "COSMO1.VOL").read_bytes()})
    assert vol.find("MBOSS.MNI").get_content()[-4:] == b"\xBD\x20\x05\x00"


def test_unmodified_save_is_identical(cosmo, cosmo_dir):
    cosmo.save()
    for name, content in cosmo_files().items():
        assert (cosmo_dir / name).read_bytes() == content


def test_rename_updates_archive_and_executable(cosmo, cosmo_dir):
    item = find(cosmo.items(), "music.1")
    item.rename("song.mni")
    assert item.subtitle == "MBOSS.MNI"
    assert find(cosmo.items(), "music.1").subtitle == "SONG.MNI"
    assert find(cosmo.items(), "music.1").open().events

    cosmo.save()
    exe = (cosmo_dir / "COSMO1.EXE").read_bytes()
    assert exe[0x160:0x16D] == b"SONG.MNI" + bytes(5)
    vol = VolCosmoArchive().parse({"main": (cosmo_dir / "COSMO1.VOL").read_bytes()})
    assert [e.name for e in vol] == ["A1.MNI", "BDBLANK.MNI", "SONG.MNI", "FAREWELL.MNI"]


def test_rename_clash(cosmo):
    with pytest.raises(DuplicateEntryError):
        find(cosmo.items(), "music.1").rename("A1.MNI")


def test_rename_too_long(cosmo):
    with pytest.raises(ValueError):
        find(cosmo.items(), "music.1").rename("FAR_TOO_LONG.MNI")


def test_rename_missing_file_changes_nothing(cosmo):
    episode = cosmo.episodes[1]
    attr = episode.attributes["filename.level.bonus.1"]
    before = [[e.name for e in archive] for archive in episode.search.archives]

    with pytest.raises(RenameError, match="BONUS1.MNI"):
        cosmo.rename_attribute(attr, "bonus9.mni")

    assert attr.value == "BONUS1.MNI"
    assert [[e.name for e in archive] for archive in episode.search.archives] == before
    assert not episode.vol.is_modified()
    assert not episode.stn.is_modified()


def test_rename_container(cosmo, cosmo_dir):
    attr = cosmo.episodes[1].attributes["filename.archive.episode"]
    cosmo.rename_attribute(attr, "mod1.vol")
    assert attr.value == "MOD1.VOL"
    assert (cosmo_dir / "mod1.vol").is_file()
    assert not (cosmo_dir / "COSMO1.VOL").exists()

    cosmo.save()
    assert b"MOD1.VOL" in (cosmo_dir / "COSMO1.EXE").read_bytes()


def test_attributes(cosmo):
    item = find(cosmo.items(), "attributes")
    values = item.open()
    assert values["filename.music.1"] == "MBOSS.MNI"
    assert values["filename.savegame.template"] == "COSMO1.SV "

    warnings = cosmo.preflight()
    assert [w.severity for w in warnings] == [Severity.IMPORTANT]
    assert "filename.savegame.template" in warnings[0].detail

    item.save({"filename.savegame.template": "MYMOD.SV "})
    assert cosmo.preflight() == []


def test_missing_tiles_are_fatal(tmp_path, registry):
    files = cosmo_files()
    files["COSMO1.STN"] = build_vol([("MASKTILE.MNI", bytes(40))])
    game = Cosmo(Filesystem(write_files(tmp_path / "game", files)), registry)
    game.open()
    with pytest.raises(MissingAssetError, match="TILES.MNI"):
        game.items()


def test_unrecognised_executable(tmp_path, registry):
    files = cosmo_files()
    files["COSMO1.EXE"] = files["COSMO1.EXE"][:0x1F0] + bytes(0x10)
    game = Cosmo(Filesystem(write_files(tmp_path / "game", files)), registry)
    with pytest.raises(GameOpenError, match="unrecognised version"):
        game.open()


def test_missing_archive(tmp_path, registry):
    files = cosmo_files()
    del files["COSMO1.STN"]
    game = Cosmo(Filesystem(write_files(tmp_path / "game", files)), registry)
    with pytest.raises(GameOpenError, match="COSMO1.STN"):
        game.open()
