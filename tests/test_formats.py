from __future__ import annotations

import struct

import numpy as np
import pytest

from gameinfo.archive import ArchiveEntry, generate_archive
from gameinfo.formats import FormatRegistry, builtin_handlers
from gameinfo.formats.arc_vol_cosmo import VolCosmoArchive
from gameinfo.formats.b800 import B800Text
from gameinfo.formats.base import FormatLimitError, FormatUnavailableError, HandlerKind
from gameinfo.formats.cmp_rle_ccomic import RLECComic, RLEDecodeError
from gameinfo.formats.documents import Music, OPLEvent, TextScreen
from gameinfo.formats.image import TRANSPARENT, Frame, Image, Palette
from gameinfo.formats.img_png import PNGImage, PNGTileset
from gameinfo.formats.img_raw import LinearImage8bpp, PlanarImage4bpp
from gameinfo.formats.mus_imf import IMFType0
from gameinfo.formats.pal_vga import VGAPalette6bit
from gameinfo.formats.tls_cosmo import CosmoBackdrop, CosmoMaskedTiles, CosmoTiles
from tests.gamedata import build_vol


class TestRegistry:

    def test_builtins_are_unique(self):
        registry = FormatRegistry(builtin_handlers())
        assert len(registry) == len(builtin_handlers())
        assert "arc-vol-cosmo" in registry

    def test_get_missing(self):
        with pytest.raises(FormatUnavailableError, match="map-cosmo"):
            FormatRegistry().get("map-cosmo")
        assert FormatRegistry().find("map-cosmo") is None

    def test_register_twice(self):
        registry = FormatRegistry([B800Text()])
        with pytest.raises(ValueError):
            registry.register(B800Text())
        registry.register(B800Text(), replace=True)

    def test_handlers_by_kind(self):
        registry = FormatRegistry(builtin_handlers())
        ids = [h.id for h in registry.handlers(HandlerKind.TILESET)]
        assert ids == sorted(ids)
        assert "tls-cosmo" in ids
        assert "img-png" not in ids

    def test_identify_prefers_definite_match(self, tmp_path):
        registry = FormatRegistry(builtin_handlers())
        png = PNGImage().write(Image(1, 1, [Frame([0])], Palette.ega())).main
        assert registry.identify(png, HandlerKind.IMAGE) == [registry.get("img-png")]

    def test_copy_is_independent(self):
        registry = FormatRegistry([B800Text()])
        clone = registry.copy()
        clone.unregister("b800-text")
        assert "b800-text" in registry


class TestRLE:

    def test_reveal(self):
        data = b"\x04\x00" + b"\x84\x11" + b"\x02\x01\x02\x82\x03" + b"\x04abcd" + b"\x82\x00\x82\xFF"
        assert RLECComic().reveal(data) == b"\x11" * 4 + b"\x01\x02\x03\x03" + b"abcd" + b"\x00\x00\xFF\xFF"

    def test_obscure(self):
        data = b"ABCCCC" + bytes(18)
        expected = b"\x06\x00" + b"\x02AB\x84C" + b"\x86\x00" * 3
        assert RLECComic().obscure(data) == expected

    def test_long_literal_is_split(self):
        plane = bytes(range(128))
        encoded = RLECComic().obscure(plane * 4)
        assert encoded[2] == 127
        assert encoded[2 + 128] == 1

    def test_truncated(self):
        with pytest.raises(RLEDecodeError):
            RLECComic().reveal(b"\x10\x00\x85")
        assert RLECComic().identify(b"\x10\x00").valid is False

    def test_overflowing_plane(self):
        with pytest.raises(RLEDecodeError):
            RLECComic().reveal(b"\x02\x00\x83\x01")


class TestRawImages:

    def test_planar(self):
        planes = b"\x80\x00" + b"\x00\x01" + b"\x00\x00" + b"\xFF\xFF"
        options = {"width": 16, "height": 1, "planeCount": 4}
        image = PlanarImage4bpp().read({"main": planes}, options)
        assert list(image.frames[0].pixels) == [9] + [8] * 14 + [10]
        assert image.palette == Palette.ega()
        assert PlanarImage4bpp().write(image, options).main == planes

    def test_planar_limits(self):
        image = Image(16, 1, [Frame([16] * 16)])
        problems = PlanarImage4bpp().check_limits(image, {"width": 16, "height": 1, "planeCount": 4})
        assert len(problems) == 1
        assert "colour 16" in problems[0]

    def test_planar_too_short(self):
        with pytest.raises(ValueError):
            PlanarImage4bpp().read({"main": bytes(10)})

    def test_linear(self):
        image = LinearImage8bpp().read({"main": bytes(range(6))}, {"width": 3, "height": 2})
        assert image.frame_array(0).tolist() == [[0, 1, 2], [3, 4, 5]]
        assert LinearImage8bpp().write(image).main == bytes(range(6))


def solid_tile_rows(colour: int, planes: int = 4) -> bytes:
    row = bytes(0xFF if colour >> p & 1 else 0 for p in range(planes))
    return row * 8


class TestCosmoTiles:

    def test_solid(self):
        data = bytes([0xF0, 0x0F, 0x00, 0xFF]) * 8
        tiles = CosmoTiles().read({"main": data})
        assert (tiles.width, tiles.height) == (8, 8)
        assert list(tiles.frames[0].pixels[:8]) == [9, 9, 9, 9, 10, 10, 10, 10]
        assert CosmoTiles().write(tiles).main == data

    def test_masked(self):
        data = bytes([0x80, 0x7F, 0x00, 0x00, 0x00]) * 8
        tiles = CosmoMaskedTiles().read({"main": data})
        assert list(tiles.frames[0].pixels[:8]) == [16, 1, 1, 1, 1, 1, 1, 1]
        assert tiles.palette[16] == TRANSPARENT
        assert CosmoMaskedTiles().write(tiles).main == data

    def test_identify(self):
        assert CosmoTiles().identify(bytes(64)).valid is None
        assert CosmoTiles().identify(bytes(65)).valid is False

    def test_backdrop(self):
        data = b"".join(solid_tile_rows(index % 16) for index in range(40 * 18))
        image = CosmoBackdrop().read({"main": data})
        assert (image.width, image.height) == (320, 144)
        pixels = image.frame_array(0)
        assert pixels[0, 8] == 1
        assert pixels[8, 0] == 40 % 16
        assert pixels[143, 319] == (40 * 18 - 1) % 16
        assert CosmoBackdrop().write(image).main == data


class TestVol:

    def test_parse(self):
        data = build_vol([("A.MNI", b"abc"), ("B.MNI", b"de")])
        handler = VolCosmoArchive()
        assert handler.identify(data).valid is True
        archive = handler.parse({"main": data})
        assert [e.name for e in archive] == ["A.MNI", "B.MNI"]
        assert archive.find("b.mni").get_content() == b"de"
        assert archive.find("B.MNI").attributes == {"offset": 4003, "slot": 1}

    def test_identify_rejects_short(self):
        assert VolCosmoArchive().identify(bytes(100)).valid is False

    def test_identify_rejects_overrun(self):
        data = bytearray(build_vol([("A.MNI", b"abc")]))
        struct.pack_into("<I", data, 16, 50)
        assert VolCosmoArchive().identify(bytes(data)).valid is False

    def test_generate_after_replace(self):
        data = build_vol([("A.MNI", b"abc"), ("B.MNI", b"de")])
        archive = VolCosmoArchive().parse({"main": data})
        archive.find("A.MNI").replace(b"xyz!")
        output = generate_archive(archive, VolCosmoArchive())
        assert output.main == build_vol([("A.MNI", b"xyz!"), ("B.MNI", b"de")])
        assert archive.find("A.MNI").diskSize == 4

    def test_limits(self):
        archive = VolCosmoArchive().parse({"main": build_vol([])})
        archive.add(ArchiveEntry("THIRTEEN.CHAR", b""))
        for i in range(200):
            archive.add(ArchiveEntry(f"F{i}.MNI", b""))
        with pytest.raises(FormatLimitError) as exc:
            VolCosmoArchive().generate(archive)
        assert len(exc.value.problems) == 2


class TestText:

    def test_b800(self):
        screen = B800Text().read({"main": b"H\x1fi\x1f"})
        assert screen.get_cell(1, 0) == (ord("i"), 0x1F)
        assert screen.get_cell(0, 1) == (ord(" "), 0x07)
        assert screen.text().splitlines()[0].rstrip() == "Hi"
        assert len(B800Text().write(screen).main) == 4000

    def test_cell_bounds(self):
        with pytest.raises(IndexError):
            TextScreen().get_cell(80, 0)


class TestMusic:

    def test_imf(self):
        data = struct.pack("<BBH", 0x20, 0x01, 280) + struct.pack("<BBH", 0xB0, 0x32, 280)
        song = IMFType0().read({"main": data})
        assert song.events == [OPLEvent(0x20, 0x01, 280), OPLEvent(0xB0, 0x32, 280)]
        assert song.duration == 1.0
        assert IMFType0().write(song).main == data

    def test_identify(self):
        assert IMFType0().identify(bytes(3)).valid is False
        assert IMFType0().identify(b"\xF6\x00\x00\x00").valid is False
        assert IMFType0().identify(b"\x20\x01\x00\x00").valid is None

    def test_limits(self):
        song = Music([OPLEvent(0x20, 0x100, 0), OPLEvent(0x20, 0, 70000)])
        assert len(IMFType0().check_limits(song)) == 2

    def test_tempo_warning(self):
        output = IMFType0().write(Music([], tempo=700))
        assert output.main == b""
        assert output.warnings


class TestPalette:

    def test_read_write(self):
        data = bytes([0, 0, 0, 63, 63, 63, 32, 16, 1])
        palette = VGAPalette6bit().read({"main": data})
        assert palette == [(0, 0, 0, 255), (255, 255, 255, 255), (130, 65, 4, 255)]
        assert VGAPalette6bit().write(palette).main == data

    def test_translucent_warning(self):
        output = VGAPalette6bit().write(Palette([(0, 0, 0, 255), TRANSPARENT]))
        assert output.main == bytes([0, 0, 0, 63, 0, 63])
        assert len(output.warnings) == 1

    def test_identify(self):
        assert VGAPalette6bit().identify(bytes([64, 0, 0])).valid is False
        assert VGAPalette6bit().identify(bytes(768)).valid is None

    def test_overlay_and_pad(self):
        base = Palette([(1, 1, 1, 255), (2, 2, 2, 255)])
        merged = base.padded(4).overlay([None, (9, 9, 9, 255)])
        assert merged == [(1, 1, 1, 255), (9, 9, 9, 255), (0, 0, 0, 255), (0, 0, 0, 255)]


class TestFrame:

    @pytest.mark.parametrize("pixels", [b"\x01\x02\x03", bytearray(b"\x01\x02\x03"), [1, 2, 3]])
    def test_pixel_sources(self, pixels):
        frame = Frame(pixels)
        assert frame.pixels.dtype == np.uint8
        assert frame.pixels.tolist() == [1, 2, 3]

    def test_pixels_are_writable_copy(self):
        source = b"\x05\x06"
        frame = Frame(source)
        frame.pixels[0] = 9
        assert frame.pixels.tolist() == [9, 6]
        assert source == b"\x05\x06"


class TestPNG:

    def test_image_round_trip(self):
        palette = Palette.ega()
        palette[3] = (0, 0xAA, 0xAA, 0)
        image = Image(4, 2, [Frame(np.arange(8, dtype=np.uint8))], palette)
        content = PNGImage().write(image).main
        assert PNGImage().identify(content).valid is True

        loaded = PNGImage().read({"main": content})
        assert (loaded.width, loaded.height) == (4, 2)
        assert loaded.frame_array(0).tolist() == [[0, 1, 2, 3], [4, 5, 6, 7]]
        assert loaded.palette[1] == palette[1]
        assert loaded.palette[3][3] == 0

    def test_image_limits(self):
        image = Image(1, 1, [Frame([0]), Frame([1])])
        assert PNGImage().check_limits(image)
        assert PNGImage().check_limits([image])

    def test_tileset_round_trip(self):
        first = Image(2, 2, [Frame([1, 1, 1, 1]), Frame([2, 2, 2, 2])], Palette.ega())
        second = Image(2, 2, [Frame([3, 3, 3, 3])], Palette.ega())
        content = PNGTileset().write([first, second], {"columns": 2}).main
        assert PNGTileset().identify(content).valid is True
        assert PNGImage().identify(content).valid is True

        loaded = PNGTileset().read({"main": content})
        assert [len(img.frames) for img in loaded] == [2, 1]
        assert loaded[1].frame_array(0).tolist() == [[3, 3], [3, 3]]

    def test_tileset_needs_layout(self):
        content = PNGImage().write(Image(1, 1, [Frame([0])], Palette.ega())).main
        assert PNGTileset().identify(content).valid is False
        with pytest.raises(ValueError):
            PNGTileset().read({"main": content})


class TestExeFields:

    @pytest.fixture
    def handler(self):
        from gameinfo.attributes import AttributeKind
        from gameinfo.formats.exe_fields import ExeFieldsHandler, FieldSpec
        fields = [
            FieldSpec("filename.music.1", 0x10, 13),
            FieldSpec("map.width", 0x20, 2, AttributeKind.INTEGER),
        ]
        return ExeFieldsHandler("exe-test", "Test executable", fields, [(0x30, b"SIG")], size=0x40)

    @staticmethod
    def exe() -> bytes:
        data = bytearray(0x40)
        data[0x10:0x19] = b"SONG1.MNI"
        struct.pack_into("<H", data, 0x20, 64)
        data[0x30:0x33] = b"SIG"
        return bytes(data)

    def test_identify(self, handler):
        assert handler.identify(self.exe()).valid is True
        assert handler.identify(self.exe()[:-1]).valid is False
        assert handler.identify(bytes(0x40)).valid is False

    def test_extract(self, handler):
        attributes = handler.extract({"main": self.exe()}).attributes
        assert attributes.value_of("filename.music.1") == "SONG1.MNI"
        assert attributes["filename.music.1"].maxLength == 12
        assert attributes.value_of("map.width") == 64

    def test_patch_only_touches_changed_fields(self, handler):
        original = self.exe()
        exe = handler.extract({"main": original})
        exe.attributes["filename.music.1"].value = "A.MNI"
        patched = handler.patch({"main": original}, exe)["main"]
        assert patched[0x10:0x1D] == b"A.MNI" + bytes(8)
        assert patched[:0x10] == original[:0x10]
        assert patched[0x1D:] == original[0x1D:]

    def test_patch_unchanged_is_identity(self, handler):
        exe = handler.extract({"main": self.exe()})
        assert handler.patch({"main": self.exe()}, exe)["main"] == self.exe()

    def test_patch_integer_overflow(self, handler):
        exe = handler.extract({"main": self.exe()})
        exe.attributes["map.width"].value = 70000
        with pytest.raises(FormatLimitError):
            handler.patch({"main": self.exe()}, exe)

    def test_field_past_end(self, handler):
        with pytest.raises(ValueError):
            handler.extract({"main": bytes(0x18)})


class TestFixedOffset:

    @pytest.fixture
    def handler(self):
        from gameinfo.formats.arc_fixed import FixedOffsetArchive, FixedSlot
        slots = [FixedSlot("a.bin", 4, 4), FixedSlot("b.bin", 12, 8, lengthOffset=0)]
        return FixedOffsetArchive("arc-test", "Test embedded", slots)

    @staticmethod
    def host() -> bytes:
        data = bytearray(b"\xEE" * 24)
        struct.pack_into("<I", data, 0, 3)
        data[4:8] = b"AAAA"
        data[12:15] = b"BBB"
        return bytes(data)

    def test_parse(self, handler):
        archive = handler.parse({"main": self.host()})
        assert archive.find("A.BIN").get_content() == b"AAAA"
        assert archive.find("b.bin").get_content() == b"BBB"

    def test_unmodified_is_original(self, handler):
        archive = handler.parse({"main": self.host()})
        assert generate_archive(archive, handler).main is archive.original

    def test_replace_variable_slot(self, handler):
        archive = handler.parse({"main": self.host()})
        archive.find("b.bin").replace(b"CCCCC")
        out = generate_archive(archive, handler).main
        assert struct.unpack_from("<I", out, 0)[0] == 5
        assert out[12:20] == b"CCCCC\x00\x00\x00"
        assert out[4:12] == self.host()[4:12]
        assert out[20:] == self.host()[20:]

    def test_fixed_slot_size(self, handler):
        archive = handler.parse({"main": self.host()})
        archive.find("a.bin").replace(b"AA")
        archive.find("b.bin").replace(bytes(9))
        with pytest.raises(FormatLimitError) as exc:
            handler.generate(archive)
        assert len(exc.value.problems) == 2

    def test_rename_refused(self, handler):
        archive = handler.parse({"main": self.host()})
        archive.rename("a.bin", "c.bin")
        with pytest.raises(FormatLimitError, match="renamed"):
            handler.generate(archive)

    def test_claimed_length_too_long(self, handler):
        data = bytearray(self.host())
        struct.pack_into("<I", data, 0, 9)
        with pytest.raises(ValueError):
            handler.parse({"main": bytes(data)})


class TestExeUnpack:

    def test_plain_executable(self):
        from gameinfo.formats.exe_unpack import decompress_exe, detect_packer
        data = b"MZ" + bytes(0x40)
        assert detect_packer(data) is None
        assert decompress_exe(data, FormatRegistry()) is data

    def test_missing_unpacker(self):
        from gameinfo.formats.exe_unpack import PackedExecutableError, decompress_exe, detect_packer
        data = bytearray(b"MZ" + bytes(0x40))
        data[0x1C:0x20] = b"LZ91"
        assert detect_packer(bytes(data)) == "cmp-lzexe"
        with pytest.raises(PackedExecutableError, match="LZEXE"):
            decompress_exe(bytes(data), FormatRegistry(), "GAME.EXE")

    def test_unpacker_plugin(self):
        from gameinfo.formats.exe_unpack import decompress_exe

        class FakeLzexe(RLECComic):
            ID = "cmp-lzexe"

            def reveal(self, data):
                return b"unpacked"

        data = bytearray(b"MZ" + bytes(0x40))
        data[0x1C:0x20] = b"LZ09"
        assert decompress_exe(bytes(data), FormatRegistry([FakeLzexe()])) == b"unpacked"
