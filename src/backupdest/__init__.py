"""backupdest: backupdest/__init__.py."""

import urllib.parse
from datetime import datetime, timezone


__version__ = "0.3.0"


def join_url_path(*parts: str) -> str:
    """Join URL path segments without duplicate separators.

    Empty segments are ignored, a leading slash on the first segment is
    kept, and a single non-empty segment is returned untouched.
    """
    segments = [p for p in parts if p]
    if not segments:
        return ""
    if len(segments) == 1:
        return segments[0]
    joined = "/".join(s.strip("/") for s in segments if s.strip("/"))
    if segments[0].startswith("/"):
        joined = "/" + joined
    return joined


def join_uri(uri: str, *tails: str) -> str:
    """Append path segments to the path of a URI, leaving its query intact."""
    parsed = urllib.parse.urlsplit(uri)
    path = join_url_path(parsed.path, *tails)
    return urllib.parse.urlunsplit(parsed._replace(path=path))


def append_paths(uris, *tails: str) -> list[str]:
    """Append path segments to every URI."""
    return [join_uri(uri, *tails) for uri in uris]


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` in UTC, treating naive datetimes as UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def date_based_folder(pattern: str, moment: datetime) -> str:
    """Format ``moment`` with ``pattern`` and append hundredths of a second."""
    moment = as_utc(moment)
    return f"{moment.strftime(pattern)}.{moment.microsecond // 10000:02d}"
