"""Best-effort EXIF extraction: GPS position and capture time."""

from __future__ import annotations

import io
import logging
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Union

import exifread

from photo_sync.models import PhotoMetadata

logger = logging.getLogger(__name__)

# Original capture, then digitized (CreateDate), then last modification.
DATE_TAGS = (
    "EXIF DateTimeOriginal",
    "EXIF DateTimeDigitized",
    "Image DateTime",
)

Source = Union[str, Path, bytes, BinaryIO]


def parse_exif_datetime(value) -> datetime | None:
    # EXIF stores "YYYY:MM:DD HH:MM:SS"
    text = str(value).strip().replace(":", "-", 2)
    try:
        return datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        return None


def _to_degrees(tag, ref_tag) -> float | None:
    if tag is None:
        return None
    values = list(getattr(tag, "values", []) or [])
    if len(values) != 3:
        return None
    degrees, minutes, seconds = (float(v) for v in values)
    result = degrees + minutes / 60.0 + seconds / 3600.0
    ref = str(getattr(ref_tag, "values", ref_tag) or "").strip().upper()
    if ref in ("S", "W"):
        result = -result
    return result


def _read_tags(source: Source) -> dict:
    if isinstance(source, (str, Path)):
        with open(source, "rb") as fh:
            return exifread.process_file(fh, details=False)
    if isinstance(source, bytes):
        return exifread.process_file(io.BytesIO(source), details=False)
    source.seek(0)
    return exifread.process_file(source, details=False)


def extract_metadata(source: Source) -> PhotoMetadata:
    """Return GPS coordinates and capture time found in *source*.

    Never raises: unreadable or EXIF-less files give an empty PhotoMetadata,
    so a missing location is never confused with a real one.
    """
    try:
        tags = _read_tags(source)
    except Exception as exc:
        logger.warning("EXIF parse failed for %s: %s", _describe(source), exc)
        return PhotoMetadata()

    if not tags:
        logger.debug("No EXIF tags found for %s", _describe(source))
        return PhotoMetadata()

    try:
        latitude = _to_degrees(tags.get("GPS GPSLatitude"), tags.get("GPS GPSLatitudeRef"))
        longitude = _to_degrees(tags.get("GPS GPSLongitude"), tags.get("GPS GPSLongitudeRef"))
    except (ValueError, TypeError, ZeroDivisionError) as exc:
        logger.warning("Unreadable GPS data in %s: %s", _describe(source), exc)
        latitude = longitude = None
    if latitude is None or longitude is None:
        latitude = longitude = None

    captured_at = None
    for name in DATE_TAGS:
        if name in tags:
            captured_at = parse_exif_datetime(tags[name])
            if captured_at:
                break

    return PhotoMetadata(latitude=latitude, longitude=longitude, captured_at=captured_at)


def _describe(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return Path(source).name
    return "<buffer>"
