"""
Tests for edit and export settings.
"""

import pytest

from rawdesk.processing.settings import (
    CAMERA_MATCHING, EditSettings, ExportSettings, ResampleSettings,
    FitMode, DimUnit, DensityUnit,
)


class TestEditSettings:
    """Test edit settings conversion."""

    def test_xmp_args(self):
        args = EditSettings(exposure=1.0, contrast=-20, lens_profile=True).to_xmp_args()
        assert "-XMP-crs:Exposure2012=+1.00" in args
        assert "-XMP-crs:Contrast2012=-20" in args
        assert "-XMP-crs:LensProfileEnable=True" in args
        assert "-XMP-crs:ProcessVersion=11.0" in args

    def test_unset_fields_not_written(self):
        args = EditSettings(exposure=0.0).to_xmp_args()
        assert not any("Contrast2012" in a for a in args)
        assert not any("Orientation" in a for a in args)

    def test_orientation_written_when_set(self):
        assert "-XMP-tiff:Orientation#=6" in EditSettings(orientation=6).to_xmp_args()

    def test_custom_temperature(self):
        args = EditSettings(white_balance="Custom", temperature=4500, tint=5).to_xmp_args()
        assert "-XMP-crs:Temperature=4500" in args
        assert "-XMP-crs:Tint=5" in args

    def test_preset_clears_temperature(self):
        args = EditSettings(white_balance="Daylight", temperature=4500).to_xmp_args()
        assert "-XMP-crs:WhiteBalance=Daylight" in args
        assert "-XMP-crs:Temperature=" in args

    def test_camera_matching_never_written(self):
        with pytest.raises(ValueError):
            EditSettings(white_balance=CAMERA_MATCHING).to_xmp_args()

    def test_from_xmp_tags(self):
        settings = EditSettings.from_xmp_tags(
            {"Exposure2012": 0.65, "Clarity2012": "12", "AutoLateralCA": 1,
             "WhiteBalance": "As Shot", "Orientation": 8}, filename="a.NEF")
        assert settings.exposure == 0.65
        assert settings.clarity == 12
        assert settings.auto_lateral_ca is True
        assert settings.white_balance == "As Shot"
        assert settings.orientation == 8
        assert settings.filename == "a.NEF"

    def test_from_xmp_tags_skips_unreadable(self):
        settings = EditSettings.from_xmp_tags({"Contrast2012": "high", "Shadows2012": 5})
        assert settings.contrast is None
        assert settings.shadows == 5

    def test_from_dict_ignores_unknown(self):
        settings = EditSettings.from_dict({"exposure": "0.5", "bogus": 1, "auto_lateral_ca": "on"})
        assert settings.exposure == 0.5
        assert settings.auto_lateral_ca is True

    def test_from_dict_rejects_bad_values(self):
        with pytest.raises(ValueError):
            EditSettings.from_dict({"contrast": "lots"})

    def test_round_trip_dict(self):
        settings = EditSettings(exposure=0.3, crop_top=0.1, has_crop=True)
        assert EditSettings.from_dict(settings.to_dict()) == settings


class TestExportSettings:
    """Test export settings parsing."""

    def test_defaults(self):
        export = ExportSettings.from_dict({})
        assert not export.dng
        assert export.resample is None
        assert export.extension == ".jpg"

    def test_resample_parsed(self):
        export = ExportSettings.from_dict({
            "resample": "true", "fit": "size", "width": "10", "height": 8,
            "dim_unit": "cm", "density": "100", "den_unit": "ppc", "quality": 80,
        })
        assert export.resample == ResampleSettings(
            fit=FitMode.SIZE, width=10.0, height=8.0, dim_unit=DimUnit.CM,
            density=100, den_unit=DensityUnit.PPC, quality=80)

    def test_resample_ignored_unless_requested(self):
        assert ExportSettings.from_dict({"fit": "mpix", "mpixels": 2}).resample is None

    def test_invalid_preview(self):
        with pytest.raises(ValueError):
            ExportSettings.from_dict({"dng": True, "preview": "p9"})

    def test_dpi(self):
        assert ResampleSettings(density=100, den_unit=DensityUnit.PPC).dpi == pytest.approx(254)
        assert ResampleSettings(density=72).dpi == 72
