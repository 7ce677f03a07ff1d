"""
Tests for sidecar resolution.
"""

import errno

import pytest

from rawdesk.utils.xmp_sidecar import SidecarResolver, is_sidecar_for_ext, sidecar_for_extension

from fakes import make_xmp, read_crs


@pytest.fixture
def resolver(metadata):
    return SidecarResolver(metadata)


class TestExtensionGuard:
    """Test photoshop:SidecarForExtension matching."""

    def test_matching_extension(self):
        assert is_sidecar_for_ext(make_xmp("NEF"), ".NEF")

    def test_case_insensitive(self):
        assert is_sidecar_for_ext(make_xmp("nef"), ".NEF")

    def test_foreign_extension(self):
        assert not is_sidecar_for_ext(make_xmp("CR2"), ".NEF")

    def test_undeclared_extension_applies(self):
        assert is_sidecar_for_ext(make_xmp(), ".NEF")

    def test_element_form(self):
        data = (b'<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF '
                b'xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
                b'<rdf:Description xmlns:photoshop="http://ns.adobe.com/photoshop/1.0/">'
                b'<photoshop:SidecarForExtension>ARW</photoshop:SidecarForExtension>'
                b'</rdf:Description></rdf:RDF></x:xmpmeta>')
        assert sidecar_for_extension(data) == "ARW"

    def test_malformed_never_applies(self):
        assert not is_sidecar_for_ext(b"<x:xmpmeta", ".NEF")


class TestReadPrecedence:
    """Test which sidecar is read."""

    def test_name_xmp_wins(self, resolver, metadata, photo, tmp_path):
        (photo.parent / "IMG_0001.xmp").write_bytes(make_xmp("NEF", Exposure2012="+1.00"))
        (photo.parent / "IMG_0001.NEF.xmp").write_bytes(make_xmp("NEF", Exposure2012="-1.00"))

        dst = tmp_path / "orig.xmp"
        resolver.load_sidecar(photo, dst)

        assert read_crs(dst)["Exposure2012"] == "+1.00"
        assert "extract_xmp" not in metadata.names()

    def test_foreign_name_xmp_skipped(self, resolver, photo, tmp_path):
        (photo.parent / "IMG_0001.xmp").write_bytes(make_xmp("CR2", Exposure2012="+1.00"))
        (photo.parent / "IMG_0001.NEF.xmp").write_bytes(make_xmp(Exposure2012="-1.00"))

        dst = tmp_path / "orig.xmp"
        resolver.load_sidecar(photo, dst)

        assert read_crs(dst)["Exposure2012"] == "-1.00"

    def test_falls_back_to_embedded(self, resolver, metadata, photo, tmp_path):
        (photo.parent / "IMG_0001.xmp").write_bytes(make_xmp("CR2"))
        metadata.embedded[str(photo.resolve())] = make_xmp(Contrast2012="25")

        dst = tmp_path / "orig.xmp"
        resolver.load_sidecar(photo, dst)

        assert read_crs(dst) == {"Contrast2012": "25"}
        assert metadata.names() == ["extract_xmp"]

    def test_external_sidecar_beats_dng_history(self, resolver, metadata, photo_dir, tmp_path):
        dng = photo_dir / "IMG_0002.dng"
        dng.write_bytes(b"DNG")
        metadata.edited_dngs.add(dng.resolve())
        metadata.embedded[str(dng.resolve())] = make_xmp(Exposure2012="+2.00")
        (photo_dir / "IMG_0002.xmp").write_bytes(make_xmp("dng", Exposure2012="+0.50"))

        dst = tmp_path / "orig.xmp"
        resolver.load_sidecar(dng, dst)

        assert read_crs(dst)["Exposure2012"] == "+0.50"
        assert resolver.destination(dng) == photo_dir / "IMG_0002.xmp"

    def test_other_errors_propagate(self, resolver, photo, tmp_path, monkeypatch):
        def unreadable(self):
            raise PermissionError(errno.EACCES, "denied", str(self))

        monkeypatch.setattr(type(photo), "read_bytes", unreadable)
        with pytest.raises(PermissionError):
            resolver.read_sidecar(photo)


class TestWritePrecedence:
    """Test where saved edits go."""

    def test_matching_name_xmp(self, resolver, photo):
        (photo.parent / "IMG_0001.xmp").write_bytes(make_xmp("NEF"))
        assert resolver.destination(photo) == photo.parent / "IMG_0001.xmp"

    def test_name_ext_xmp_by_existence(self, resolver, photo):
        (photo.parent / "IMG_0001.xmp").write_bytes(make_xmp("CR2"))
        (photo.parent / "IMG_0001.NEF.xmp").write_bytes(b"not even xml")
        assert resolver.destination(photo) == photo.parent / "IMG_0001.NEF.xmp"

    def test_edited_dng_is_its_own_sidecar(self, resolver, metadata, photo_dir):
        dng = photo_dir / "IMG_0002.DNG"
        dng.write_bytes(b"DNG")
        metadata.edited_dngs.add(dng.resolve())
        assert resolver.destination(dng) == dng

    def test_unedited_dng_gets_sidecar(self, resolver, photo_dir):
        dng = photo_dir / "IMG_0002.dng"
        dng.write_bytes(b"DNG")
        assert resolver.destination(dng) == photo_dir / "IMG_0002.xmp"

    def test_new_sidecar_when_nothing_exists(self, resolver, metadata, photo):
        dest = resolver.destination(photo)
        assert dest == photo.parent / "IMG_0001.xmp"
        assert not dest.exists()
        # Only DNGs are probed for edit history
        assert "dng_has_edits" not in metadata.names()

    def test_foreign_name_xmp_not_overwritten(self, resolver, photo):
        (photo.parent / "IMG_0001.xmp").write_bytes(make_xmp("CR2"))
        assert resolver.destination(photo) == photo.parent / "IMG_0001.NEF.xmp"

