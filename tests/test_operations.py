from __future__ import annotations

import pytest

from gameinfo.filesystem import Filesystem
from gameinfo.games import Cosmo
from gameinfo.item import AssetItem, FolderItem, ItemType
from gameinfo.operations import Operations, OperationsError, find_item, list_formats
from tests.gamedata import build_registry, build_vol, cosmo_files, write_files


@pytest.fixture
def proc():
    return Operations(build_registry(), {"image": "img-png", "tileset": "tls-png"})


def test_find_item_checks_siblings_first():
    nested = AssetItem("x", "Nested", ItemType.IMAGE)
    sibling = AssetItem("x", "Sibling", ItemType.IMAGE)
    root = FolderItem("root", "Root")
    root.add_child(FolderItem("folder", "Folder", {"x": nested}))
    root.children["x"] = sibling
    assert find_item(root, "x") is sibling
    assert find_item(root.children, "folder").title == "Folder"
    assert find_item(root, "missing") is None


def test_commands_need_a_game(proc):
    with pytest.raises(OperationsError, match="must 'open' a game first"):
        proc.list()
    with pytest.raises(OperationsError, match="must 'select' an item first"):
        proc.extract("out.bin")


def test_open_errors(proc, tmp_path):
    with pytest.raises(OperationsError, match="Invalid format code: nope"):
        proc.open(str(tmp_path), "nope")
    with pytest.raises(OperationsError, match="open: missing path"):
        proc.open()
    with pytest.raises(OperationsError, match="Unable to identify this game."):
        proc.open(str(tmp_path))


@pytest.fixture
def tileless_cosmo_dir(tmp_path):
    files = cosmo_files()
    files["COSMO1.STN"] = build_vol([("MASKTILE.MNI", bytes(40))])
    return write_files(tmp_path / "game", files)


def test_open_missing_required_asset(proc, tileless_cosmo_dir):
    with pytest.raises(OperationsError, match="^open: .*TILES.MNI"):
        proc.open(str(tileless_cosmo_dir))
    assert proc.game is None


def test_tree_commands_report_missing_assets(proc, tileless_cosmo_dir):
    game = Cosmo(Filesystem(tileless_cosmo_dir), build_registry())
    game.open()
    proc.game = game
    with pytest.raises(OperationsError, match="^list: .*TILES.MNI"):
        proc.list()
    with pytest.raises(OperationsError, match="^select: .*TILES.MNI"):
        proc.select("music.1")


def test_open_with_forced_format(proc, ddave_dir, capsys):
    proc.open(str(ddave_dir), "game-ddave")
    assert proc.game.ID == "game-ddave"
    out = capsys.readouterr().out
    assert "There were warnings opening this game:" in out
    assert "dave.exe could not be positively identified" in out


def test_open_failure_is_reported(proc, tmp_path):
    (tmp_path / "DAVE.EXE").write_bytes(b"MZ")
    with pytest.raises(OperationsError, match="^open: "):
        proc.open(str(tmp_path))


def test_list(proc, cosmo_dir, capsys):
    proc.open(str(cosmo_dir))
    proc.list()
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "* [e1]: Episode 1 (folder)"
    assert "  * [levels]: Levels (folder)" in lines
    assert "    * [level.bonus.1]: Bonus level 1 | BONUS1.MNI (map) DISABLED" in lines
    assert "    * [music.1]: Song 1 | MBOSS.MNI (music)" in lines


def test_select_unknown(proc, cosmo_dir):
    proc.open(str(cosmo_dir))
    with pytest.raises(OperationsError, match="select: unable to find item \"nothing\"."):
        proc.select("nothing")


def test_check(proc, cosmo_dir, ccomic_dir, capsys):
    proc.open(str(ccomic_dir))
    assert proc.check() is True
    assert "No problems detected." in capsys.readouterr().out

    proc.open(str(cosmo_dir))
    assert proc.check() is False
    assert "== [IMP] Saved game filename template unchanged ==" in capsys.readouterr().out


def test_extract_and_replace(proc, cosmo_dir, tmp_path):
    proc.open(str(cosmo_dir))
    proc.select("sounds.1")
    target = tmp_path / "sounds.bin"
    proc.extract(str(target))
    assert target.read_bytes() == b"sfx"

    target.write_bytes(b"new sounds")
    proc.replace(str(target))
    assert proc.item.extract() == b"new sounds"

    with pytest.raises(OperationsError, match="replace: error reading source file"):
        proc.replace(str(tmp_path / "missing.bin"))


def test_extract_unsupported(proc, ddave_dir):
    proc.open(str(ddave_dir))
    proc.select("vga-palette")
    with pytest.raises(OperationsError, match="does not support being extracted"):
        proc.extract("out.bin")


def test_export_uses_default_format(proc, cosmo_dir, tmp_path):
    proc.open(str(cosmo_dir))
    proc.select("tiles.solid")
    target = tmp_path / "tiles.png"
    proc.export(str(target))
    assert target.read_bytes().startswith(b"\x89PNG")


def test_export_without_format(proc, cosmo_dir):
    proc.exportFormats = {}
    proc.open(str(cosmo_dir))
    proc.select("music.1")
    with pytest.raises(OperationsError, match="must specify an output format"):
        proc.export("song.imf")


def test_export_limits(proc, ddave_dir, tmp_path, capsys):
    proc.open(str(ddave_dir))
    proc.select("border")
    with pytest.raises(OperationsError, match="due to file format limitations"):
        proc.export(str(tmp_path / "border.raw"), "img-raw-planar-4bpp")
    assert "There are problems preventing the file from being saved:" in capsys.readouterr().out
    assert not (tmp_path / "border.raw").exists()


def test_export_then_import(proc, ccomic_dir, tmp_path):
    proc.open(str(ccomic_dir))
    proc.select("splash.1")
    target = tmp_path / "splash.png"
    proc.export(str(target))
    proc.import_(str(target))
    assert proc.game.save().files["sys001.ega"] == (ccomic_dir / "SYS001.EGA").read_bytes()


def test_import_unidentified(proc, cosmo_dir, tmp_path):
    proc.open(str(cosmo_dir))
    proc.select("b800.farewell")
    source = tmp_path / "screen.bin"
    source.write_bytes(b"short")
    with pytest.raises(OperationsError, match="unable to identify this file format"):
        proc.import_(str(source))

    source.write_bytes(b"X\x4e" * 2000)
    proc.import_(str(source))
    assert proc.item.open().get_cell(0, 0) == (ord("X"), 0x4E)


def test_import_limits(proc, ccomic_dir, tmp_path, capsys):
    from gameinfo.formats.image import Frame, Image, Palette
    from gameinfo.formats.img_png import PNGImage

    source = tmp_path / "small.png"
    source.write_bytes(PNGImage().write(Image(2, 2, [Frame([0, 1, 2, 3])], Palette.ega())).main)
    proc.open(str(ccomic_dir))
    proc.select("splash.0")
    with pytest.raises(OperationsError, match="doesn't fit the limits"):
        proc.import_(str(source))
    assert "Image must be 320x200, not 2x2." in capsys.readouterr().out


def test_info(proc, cosmo_dir, capsys):
    proc.open(str(cosmo_dir))
    proc.select("music.1")
    proc.info()
    out = capsys.readouterr().out
    assert "Document type: Music" in out
    assert "Number of events: 2" in out

    proc.select("tiles.masked")
    proc.info()
    out = capsys.readouterr().out
    assert "Dimensions: 8 x 8" in out
    assert "Palette size: 17" in out


def test_rename(proc, cosmo_dir):
    proc.open(str(cosmo_dir))
    proc.select("music.1")
    with pytest.raises(OperationsError, match="^rename: "):
        proc.rename("THIS_IS_TOO_LONG.MNI")
    proc.rename("song.mni")
    proc.select("music.1")
    assert proc.item.subtitle == "SONG.MNI"


def test_save(proc, ddave_dir, capsys):
    proc.open(str(ddave_dir))
    with pytest.raises(OperationsError, match="save: fix the warnings and try again."):
        proc.save()

    proc.select("level.1")
    proc.item.replace(bytes([9]) * 16)
    proc.save(force=True)
    assert "Writing" in capsys.readouterr().out
    assert (ddave_dir / "DAVE.EXE").read_bytes()[0x710:0x720] == bytes([9]) * 16
    assert sorted(p.name for p in ddave_dir.iterdir()) == ["DAVE.EXE", "EGADAVE.DAV"]


def test_list_formats(capsys):
    list_formats(build_registry())
    out = capsys.readouterr().out
    assert "game-nomad: Nomad" in out
    assert "arc-vol-cosmo: Cosmo's Cosmic Adventure VOL/STN archive" in out
    assert "  * maxFiles: 200" in out
