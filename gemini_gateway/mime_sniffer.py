#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
MIME type detection - HTTP header, then URL extension, then magic numbers

Every function here is pure: the same inputs always give the same MIME type.
"""

import mimetypes
import zipfile
from io import BytesIO
from typing import Optional
from urllib.parse import urlparse

from .helpers import debug_log

OCTET_STREAM = "application/octet-stream"
DEFAULT_IMAGE_MIME = "image/jpeg"

FAMILY_IMAGE = "image"
FAMILY_AUDIO = "audio"
FAMILY_FILE = "file"

# Plain prefix signatures, checked in order
_SIMPLE_SIGNATURES = (
    (b"\x89PNG", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF8", "image/gif"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\xb3", "video/mpeg"),
    (b"\x00\x00\x01\xba", "video/mpeg"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"FLV", "video/x-flv"),
    (b".RMF", "video/x-rmvb"),
    (b"%PDF", "application/pdf"),
)

_ZIP_SIGNATURE = b"PK\x03\x04"
_OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"

# Office Open XML: directory prefix inside the archive -> MIME
_OOXML_MARKERS = (
    ("word/", "application/vnd.openxmlformats-officedocument.wordprocessingml.document"),
    ("ppt/", "application/vnd.openxmlformats-officedocument.presentationml.presentation"),
    ("xl/", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"),
)

# Legacy compound binary Office: stream name -> MIME
_OLE_STREAMS = (
    ("WordDocument", "application/msword"),
    ("Workbook", "application/vnd.ms-excel"),
    ("PowerPoint", "application/vnd.ms-powerpoint"),
)

_AUDIO_SUFFIXES = (
    (".mp3", "audio/mpeg"),
    (".wav", "audio/wav"),
    (".ogg", "audio/ogg"),
    (".m4a", "audio/mp4"),
    (".aac", "audio/aac"),
    (".flac", "audio/flac"),
)


def normalize_content_type(content_type: Optional[str]) -> Optional[str]:
    """Strip parameters (``; charset=...``) and lowercase a Content-Type value."""
    if not content_type:
        return None
    value = content_type.split(";", 1)[0].strip().lower()
    return value or None


def _url_path(url: str) -> str:
    try:
        return urlparse(url).path or ""
    except ValueError:
        return url or ""


def guess_from_url(url: Optional[str]) -> Optional[str]:
    """Look up a MIME type from the URL path's file extension."""
    if not url:
        return None
    mime_type, _ = mimetypes.guess_type(_url_path(url), strict=False)
    return mime_type


def _sniff_iso_bmff(data: bytes) -> Optional[str]:
    if data[4:8] != b"ftyp":
        return None
    brand = data[8:12]
    if brand == b"qt  ":
        return "video/quicktime"
    if brand in (b"M4A ", b"M4B "):
        return "audio/mp4"
    return "video/mp4"


def _sniff_riff(data: bytes) -> Optional[str]:
    if not data.startswith(b"RIFF"):
        return None
    form = data[8:12]
    if form == b"WEBP":
        return "image/webp"
    if form == b"AVI ":
        return "video/x-msvideo"
    if form == b"WAVE":
        return "audio/wav"
    return None


def _sniff_ooxml(data: bytes) -> str:
    try:
        with zipfile.ZipFile(BytesIO(data)) as archive:
            names = [name.lower() for name in archive.namelist()]
    except (zipfile.BadZipFile, ValueError, OSError):
        # truncated archive: fall back to scanning the raw bytes for entry names
        lowered = data.lower()
        names = [marker for marker, _ in _OOXML_MARKERS if marker.encode("ascii") in lowered]

    for marker, mime_type in _OOXML_MARKERS:
        if any(name.startswith(marker) for name in names):
            return mime_type
    return "application/zip"


def _sniff_ole(data: bytes) -> str:
    for stream_name, mime_type in _OLE_STREAMS:
        # directory entries are UTF-16LE, older writers also leave ASCII copies
        if stream_name.encode("utf-16-le") in data or stream_name.encode("ascii") in data:
            return mime_type
    return "application/x-ms-office"


def sniff_magic(data: Optional[bytes]) -> str:
    """Identify a payload from its leading bytes; unknown payloads are octet-stream."""
    if not data:
        return OCTET_STREAM

    for signature, mime_type in _SIMPLE_SIGNATURES:
        if data.startswith(signature):
            return mime_type

    detected = _sniff_riff(data) or _sniff_iso_bmff(data)
    if detected:
        return detected

    if data.startswith(_ZIP_SIGNATURE):
        return _sniff_ooxml(data)
    if data.startswith(_OLE_SIGNATURE):
        return _sniff_ole(data)

    return OCTET_STREAM


def _audio_from_suffix(url: str) -> Optional[str]:
    path = _url_path(url).lower()
    for suffix, mime_type in _AUDIO_SUFFIXES:
        if path.endswith(suffix):
            return mime_type
    return None


def identify(
    data: Optional[bytes],
    url: Optional[str],
    content_type: Optional[str] = None,
    family: str = FAMILY_FILE,
) -> str:
    """
    Best-guess MIME type for a fetched resource.

    Args:
        data: response body, used for magic-number detection
        url: the resource URL, used for extension lookup
        content_type: the HTTP Content-Type header, if any
        family: ``image``, ``audio`` or ``file``; image and audio fetches
            ignore headers and extensions outside their family

    Returns:
        MIME type string, never empty
    """
    header_type = normalize_content_type(content_type)
    url_type = guess_from_url(url)

    if family == FAMILY_IMAGE:
        for candidate in (header_type, url_type, sniff_magic(data)):
            if candidate and candidate.startswith("image/"):
                return candidate
        debug_log("[MIME] image type undetermined, using default", url=url, default=DEFAULT_IMAGE_MIME)
        return DEFAULT_IMAGE_MIME

    if family == FAMILY_AUDIO:
        for candidate in (header_type, url_type, _audio_from_suffix(url or "")):
            if candidate and candidate.startswith("audio/"):
                return candidate
        debug_log("[MIME] audio type undetermined, using fallback", url=url, default=OCTET_STREAM)
        return OCTET_STREAM

    if header_type:
        return header_type
    if url_type:
        return url_type
    return sniff_magic(data)
