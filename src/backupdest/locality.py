"""Locality-aware backup URIs.

A backup may be partitioned over several URIs, each tagged with the
locality it serves through the ``COCKROACH_LOCALITY`` query parameter.
Exactly one of them carries the ``default`` tag and anchors the backup.
"""

import urllib.parse
from dataclasses import dataclass, field

from . import join_url_path
from .__logger__ import logger
from .constants import DEFAULT_LOCALITY_VALUE, LOCALITY_URL_PARAM
from .errors import LocalityError


@dataclass(frozen=True)
class LocalityURI:
    """A URI with its locality tag extracted and removed."""

    tag: str
    base_uri: str

    @property
    def is_default(self) -> bool:
        return self.tag in ("", DEFAULT_LOCALITY_VALUE)


@dataclass
class LocalityURISet:
    """The URIs of one (possibly partitioned) backup.

    Attributes:
        default_uri: URI of the unpartitioned/default replica
        by_tag: Non-default URIs keyed by locality tag
    """

    default_uri: str
    by_tag: dict[str, str] = field(default_factory=dict)


def parse_locality(tag: str) -> tuple[str, str]:
    """Parse a locality tag such as ``region=us-east`` into its key and value.

    Raises:
        LocalityError: If the tag is not a single ``key=value`` pair.
    """
    parts = tag.split("=")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise LocalityError(
            f"failed to parse backup locality {tag!r}: "
            'tier must be in the form "key=value"'
        )
    return parts[0], parts[1]


def get_locality_and_base_uri(uri: str, append_path: str = "") -> LocalityURI:
    """Split the locality tag out of ``uri`` and append ``append_path`` to its path."""
    try:
        parsed = urllib.parse.urlsplit(uri)
    except ValueError as e:
        raise LocalityError(f"invalid backup URI {uri!r}: {e}") from e

    query = urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
    tag = next((v for k, v in query if k == LOCALITY_URL_PARAM), "")
    remaining = [(k, v) for k, v in query if k != LOCALITY_URL_PARAM]

    base = parsed._replace(
        path=join_url_path(parsed.path, append_path),
        query=urllib.parse.urlencode(remaining),
    )
    return LocalityURI(tag=tag, base_uri=urllib.parse.urlunsplit(base))


def get_uris_by_locality_kv(uris, append_path: str = "") -> LocalityURISet:
    """Build the locality URI set of one backup.

    ``append_path`` is joined onto the path of every URI and the locality
    parameter is removed from all of them.

    Args:
        uris: Ordered URIs of a single backup
        append_path: Path appended to every URI (may be empty)

    Returns:
        LocalityURISet with the default URI and the tagged URIs

    Raises:
        LocalityError: If the tags are missing, duplicated, malformed, or
            the default is missing or repeated
    """
    uris = list(uris)
    if not uris:
        raise LocalityError("no backup URIs provided")

    if len(uris) == 1:
        locality_uri = get_locality_and_base_uri(uris[0], append_path)
        if not locality_uri.is_default:
            raise LocalityError(
                f"{LOCALITY_URL_PARAM} {locality_uri.tag} is invalid for a single "
                f"backup location: {uris[0]}"
            )
        return LocalityURISet(default_uri=locality_uri.base_uri)

    default_uri = ""
    by_tag: dict[str, str] = {}
    for uri in uris:
        locality_uri = get_locality_and_base_uri(uri, append_path)
        tag = locality_uri.tag
        if not tag:
            raise LocalityError(
                f"multiple URLs are provided for partitioned backup, but "
                f"{LOCALITY_URL_PARAM} is not specified for {uri}"
            )
        if tag == DEFAULT_LOCALITY_VALUE:
            if default_uri:
                raise LocalityError(
                    f"multiple default URLs provided for partitioned backup: {uri}"
                )
            default_uri = locality_uri.base_uri
            continue
        parse_locality(tag)
        if tag in by_tag:
            raise LocalityError(f"duplicate URIs for locality {tag}: {uri}")
        by_tag[tag] = locality_uri.base_uri

    if not default_uri:
        raise LocalityError("no default URL provided for partitioned backup")

    logger.debug("Resolved default %s with %d locality URIs", default_uri, len(by_tag))
    return LocalityURISet(default_uri=default_uri, by_tag=by_tag)
