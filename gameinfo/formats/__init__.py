from __future__ import annotations

import importlib
import logging
from importlib.metadata import entry_points
from typing import Iterable, Iterator, Optional

from sortedcontainers import SortedDict

from gameinfo.formats.base import (FormatHandler, FormatUnavailableError,
                                   HandlerKind, Identification)

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "gameinfo.formats"


class FormatRegistry():
    """
    Format handlers by id. Title adapters look their codecs up here, so a
    plugin that registers a handler under the right id lights up every item
    that needs it
    """

    def __init__(self, handlers: Iterable[FormatHandler] = ()):
        self._handlers: SortedDict = SortedDict()
        for handler in handlers:
            self.register(handler)

    def __contains__(self, formatId: str) -> bool:
        return formatId in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def register(self, handler: FormatHandler, replace: bool = False) -> FormatHandler:
        if handler.id in self._handlers and not replace:
            raise ValueError(f"A handler for {handler.id} is already registered")
        logger.debug("Registered format handler %s", handler.id)
        self._handlers[handler.id] = handler
        return handler

    def unregister(self, formatId: str) -> Optional[FormatHandler]:
        return self._handlers.pop(formatId, None)

    def find(self, formatId: str) -> Optional[FormatHandler]:
        return self._handlers.get(formatId)

    def get(self, formatId: str) -> FormatHandler:
        handler = self._handlers.get(formatId)
        if handler is None:
            raise FormatUnavailableError(f"No handler is installed for the format \"{formatId}\"")
        return handler

    def handlers(self, kind: Optional[HandlerKind] = None) -> Iterator[FormatHandler]:
        for handler in self._handlers.values():
            if kind is None or handler.KIND == kind:
                yield handler

    def identify(self, content: bytes, kind: Optional[HandlerKind] = None,
                 filename: Optional[str] = None) -> list[FormatHandler]:
        """
        Probe every handler of `kind` with `content`. A definite match is
        returned alone, otherwise every handler that might fit
        """
        candidates = []
        for handler in self.handlers(kind):
            result: Identification = handler.identify(content, filename)
            if result.valid is True:
                logger.debug("%s identified as %s: %s", filename, handler.id, result.reason)
                return [handler]
            if result.valid is None:
                candidates.append(handler)
        return candidates

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP):
        """
        Register handlers advertised by installed packages. Each entry point
        resolves to a handler instance, a handler class or a callable taking
        this registry
        """
        for ep in entry_points(group=group):
            target = ep.load()
            self._register_target(target, ep.name)

    def load_modules(self, names: Iterable[str]):
        """
        Import plugin modules. A module exposing `register(registry)` gets
        called with this registry
        """
        for name in names:
            module = importlib.import_module(name)
            hook = getattr(module, "register", None)
            if hook is None:
                logger.warning("Plugin %s has no register() function", name)
                continue
            hook(self)

    def _register_target(self, target, name: str):
        if isinstance(target, FormatHandler):
            self.register(target)
        elif isinstance(target, type) and issubclass(target, FormatHandler):
            self.register(target())
        elif callable(target):
            target(self)
        else:
            raise TypeError(f"Entry point {name} is not a format handler")

    def copy(self) -> FormatRegistry:
        return FormatRegistry(self._handlers.values())


def builtin_handlers() -> list[FormatHandler]:
    from gameinfo.formats.arc_vol_cosmo import VolCosmoArchive
    from gameinfo.formats.b800 import B800Text
    from gameinfo.formats.cmp_rle_ccomic import RLECComic
    from gameinfo.formats.img_png import PNGImage, PNGTileset
    from gameinfo.formats.img_raw import LinearImage8bpp, PlanarImage4bpp
    from gameinfo.formats.mus_imf import IMFType0
    from gameinfo.formats.pal_vga import VGAPalette6bit
    from gameinfo.formats.tls_cosmo import CosmoBackdrop, CosmoMaskedTiles, CosmoTiles

    return [
        VolCosmoArchive(),
        B800Text(),
        RLECComic(),
        PNGImage(),
        PNGTileset(),
        LinearImage8bpp(),
        PlanarImage4bpp(),
        IMFType0(),
        VGAPalette6bit(),
        CosmoTiles(),
        CosmoMaskedTiles(),
        CosmoBackdrop(),
    ]


_DEFAULT: Optional[FormatRegistry] = None


def default_registry() -> FormatRegistry:
    """ The shared registry: built-ins, then installed plugins """
    global _DEFAULT
    if _DEFAULT is None:
        registry = FormatRegistry(builtin_handlers())
        registry.load_entry_points()
        _DEFAULT = registry
    return _DEFAULT


__all__ = [
    "FormatRegistry",
    "FormatUnavailableError",
    "builtin_handlers",
    "default_registry",
]
