from __future__ import annotations

import pytest

from gameinfo.filesystem import Filesystem
from gameinfo.formats.cmp_rle_ccomic import RLECComic
from gameinfo.formats.image import Palette
from gameinfo.games import CaptainComic
from gameinfo.item import ItemDisabledError
from tests.gamedata import ccomic_splash


def find(root, itemId):
    return next(item for item in root.walk() if item.id == itemId)


def test_identify(ccomic_dir, cosmo_dir):
    assert CaptainComic.identify(Filesystem(ccomic_dir)).valid is True
    assert CaptainComic.identify(Filesystem(cosmo_dir)).valid is False


def test_splash_titles(ccomic):
    graphics = ccomic.items().children["graphics"]
    titles = [item.title for item in graphics.children.values()]
    assert titles == [f"Splash screen {i}" for i in range(5)]


def test_missing_splash_is_disabled(ccomic):
    assert len(ccomic.openWarnings) == 1
    assert "sys004.ega" in ccomic.openWarnings[0]

    item = find(ccomic.items(), "splash.4")
    assert item.disabled
    with pytest.raises(ItemDisabledError):
        item.open()


def test_open_splash(ccomic):
    image = find(ccomic.items(), "splash.1").open()
    assert (image.width, image.height) == (320, 200)
    assert image.palette == Palette.ega()
    assert set(image.frames[0].pixels.tolist()) == {5}


def test_extract_is_decompressed(ccomic):
    content = find(ccomic.items(), "splash.0").extract()
    assert len(content) == 32000
    assert content[:8000] == b"\xFF" * 8000
    assert content[8000:] == bytes(24000)


def test_replace_is_recompressed(ccomic):
    find(ccomic.items(), "splash.2").replace(bytes(32000))
    files = ccomic.save().files
    assert files["sys002.ega"] == ccomic_splash((0, 0, 0, 0))
    assert files["sys001.ega"] == ccomic_splash((0xFF, 0, 0xFF, 0))


def test_edit_round_trip(ccomic):
    item = find(ccomic.items(), "splash.0")
    image = item.open()
    image.frame_array(0)[0, 0] = 14
    assert item.save(image) == []

    data = RLECComic().reveal(ccomic.save().files["sys000.ega"])
    assert data[0] == 0x7F
    assert data[8000] == 0x80
    assert data[16000] == 0x80
    assert data[24000] == 0x80
    assert data[1:8000] == b"\xFF" * 7999
    assert find(ccomic.items(), "splash.0").open().frame_array(0)[0, 0] == 14
