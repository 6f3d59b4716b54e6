from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import Optional

from gameinfo.filesystem import Filesystem
from gameinfo.game import Game
from gameinfo.games.ccomic import CaptainComic
from gameinfo.games.cosmo import Cosmo
from gameinfo.games.ddave import DangerousDave
from gameinfo.games.nomad import Nomad

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "gameinfo.games"

GAMES: list[type[Game]] = [
    CaptainComic,
    Cosmo,
    DangerousDave,
    Nomad,
]


def all_games(group: str = ENTRY_POINT_GROUP) -> list[type[Game]]:
    """ Built-in title adapters followed by any installed as plugins """
    games = list(GAMES)
    for ep in entry_points(group=group):
        game = ep.load()
        if not (isinstance(game, type) and issubclass(game, Game)):
            raise TypeError(f"Entry point {ep.name} is not a Game subclass")
        if game not in games:
            games.append(game)
    return games


def get_handler(gameId: str) -> Optional[type[Game]]:
    for game in all_games():
        if game.ID == gameId:
            return game
    return None


def find_handler(filesystem: Filesystem, gameId: Optional[str] = None) -> list[type[Game]]:
    """
    Work out which title adapter can open the game in `filesystem`

        filesystem: Game folder to examine
        gameId:     Skip detection and use this adapter

    Returns the one adapter that positively matched, otherwise every adapter
    that might match. An empty list means the game couldn't be identified
    """
    if gameId is not None:
        game = get_handler(gameId)
        return [game] if game is not None else []

    candidates = []
    for game in all_games():
        metadata = game.metadata()
        logger.debug("Trying format handler %s (%s)", metadata.id, metadata.title)
        confidence = game.identify(filesystem)
        if confidence.valid is True:
            logger.debug("Matched %s: %s", metadata.id, confidence.reason)
            return [game]
        if confidence.valid is None:
            logger.debug("Possible match for %s: %s", metadata.id, confidence.reason)
            candidates.append(game)
        else:
            logger.debug("Not %s: %s", metadata.id, confidence.reason)
    return candidates


__all__ = [
    "GAMES",
    "CaptainComic",
    "Cosmo",
    "DangerousDave",
    "Nomad",
    "all_games",
    "find_handler",
    "get_handler",
]
