from __future__ import annotations

from pathlib import Path

import pytest

from gameinfo.filesystem import Filesystem
from gameinfo.formats import FormatRegistry
from gameinfo.games import CaptainComic, Cosmo, DangerousDave, Nomad
from tests.gamedata import (build_registry, ccomic_files, cosmo_files, ddave_files,
                            nomad_files, write_files)


@pytest.fixture
def registry() -> FormatRegistry:
    return build_registry()


@pytest.fixture
def cosmo_dir(tmp_path: Path) -> Path:
    return write_files(tmp_path / "cosmo", cosmo_files())


@pytest.fixture
def ddave_dir(tmp_path: Path) -> Path:
    return write_files(tmp_path / "ddave", ddave_files())


@pytest.fixture
def nomad_dir(tmp_path: Path) -> Path:
    return write_files(tmp_path / "nomad", nomad_files())


@pytest.fixture
def ccomic_dir(tmp_path: Path) -> Path:
    return write_files(tmp_path / "ccomic", ccomic_files())


@pytest.fixture
def cosmo(cosmo_dir: Path, registry: FormatRegistry) -> Cosmo:
    game = Cosmo(Filesystem(cosmo_dir), registry)
    game.openWarnings = game.open()
    return game


@pytest.fixture
def ddave(ddave_dir: Path, registry: FormatRegistry) -> DangerousDave:
    game = DangerousDave(Filesystem(ddave_dir), registry)
    game.openWarnings = game.open()
    return game


@pytest.fixture
def nomad(nomad_dir: Path, registry: FormatRegistry) -> Nomad:
    game = Nomad(Filesystem(nomad_dir), registry)
    game.openWarnings = game.open()
    return game


@pytest.fixture
def ccomic(ccomic_dir: Path, registry: FormatRegistry) -> CaptainComic:
    game = CaptainComic(Filesystem(ccomic_dir), registry)
    game.openWarnings = game.open()
    return game


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """ Keep tests away from the user's own config file """
    path = tmp_path / "config" / "config.json"
    monkeypatch.setenv("GAMEINFO_CONFIG", str(path))
    monkeypatch.delenv("GAMEINFO_LOG_LEVEL", raising=False)
    return path
