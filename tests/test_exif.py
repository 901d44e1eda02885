"""Tests for best-effort EXIF extraction."""

from datetime import datetime
from fractions import Fraction
from unittest.mock import patch

from photo_sync.exif import extract_metadata, parse_exif_datetime


class FakeTag:
    def __init__(self, values):
        self.values = values

    def __str__(self):
        return str(self.values)


def gps_tags(lat=(19, 0, 0), lat_ref="N", lon=(71, 0, 0), lon_ref="W"):
    return {
        "GPS GPSLatitude": FakeTag([Fraction(v) for v in lat]),
        "GPS GPSLatitudeRef": FakeTag(lat_ref),
        "GPS GPSLongitude": FakeTag([Fraction(v) for v in lon]),
        "GPS GPSLongitudeRef": FakeTag(lon_ref),
    }


class TestExtractMetadata:

    def test_gps_and_original_time(self):
        tags = gps_tags()
        tags["EXIF DateTimeOriginal"] = FakeTag("2023:05:01 10:30:00")
        tags["Image DateTime"] = FakeTag("2024:01:01 00:00:00")

        with patch("photo_sync.exif.exifread.process_file", return_value=tags):
            meta = extract_metadata(b"fake")

        assert meta.latitude == 19.0
        assert meta.longitude == -71.0
        assert meta.captured_at == datetime(2023, 5, 1, 10, 30)
        assert meta.has_location

    def test_minutes_and_seconds(self):
        tags = gps_tags(lat=(19, 16, Fraction(3699, 100)), lat_ref="S", lon=(71, 15, 4), lon_ref="E")

        with patch("photo_sync.exif.exifread.process_file", return_value=tags):
            meta = extract_metadata(b"fake")

        assert abs(meta.latitude - -(19 + 16 / 60 + 36.99 / 3600)) < 1e-9
        assert abs(meta.longitude - (71 + 15 / 60 + 4 / 3600)) < 1e-9

    def test_time_falls_back_to_digitized_then_modified(self):
        digitized = {"EXIF DateTimeDigitized": FakeTag("2022:02:02 02:02:02"),
                     "Image DateTime": FakeTag("2021:01:01 01:01:01")}
        modified = {"Image DateTime": FakeTag("2021:01:01 01:01:01")}

        with patch("photo_sync.exif.exifread.process_file", side_effect=[digitized, modified]):
            first = extract_metadata(b"fake")
            second = extract_metadata(b"fake")

        assert first.captured_at == datetime(2022, 2, 2, 2, 2, 2)
        assert second.captured_at == datetime(2021, 1, 1, 1, 1, 1)
        assert not first.has_location

    def test_half_a_position_is_no_position(self):
        tags = gps_tags()
        del tags["GPS GPSLongitude"]

        with patch("photo_sync.exif.exifread.process_file", return_value=tags):
            meta = extract_metadata(b"fake")

        assert meta.latitude is None
        assert meta.longitude is None

    def test_parser_error_gives_empty_metadata(self):
        with patch("photo_sync.exif.exifread.process_file", side_effect=ValueError("corrupt")):
            meta = extract_metadata(b"fake")

        assert (meta.latitude, meta.longitude, meta.captured_at) == (None, None, None)

    def test_garbage_file_never_raises(self, tmp_path):
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"\xff\xd8 definitely not a real jpeg")

        meta = extract_metadata(path)

        assert not meta.has_location
        assert meta.captured_at is None

    def test_missing_file_never_raises(self, tmp_path):
        meta = extract_metadata(tmp_path / "gone.jpg")

        assert meta.captured_at is None


class TestParseExifDatetime:

    def test_valid(self):
        assert parse_exif_datetime("2020:12:31 23:59:58") == datetime(2020, 12, 31, 23, 59, 58)

    def test_invalid(self):
        assert parse_exif_datetime("0000:00:00 00:00:00") is None
        assert parse_exif_datetime("") is None
