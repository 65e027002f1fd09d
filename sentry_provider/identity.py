"""Composite identifiers for Sentry resources.

Sentry objects are addressed through their parent hierarchy, e.g. a team by
``organization/team`` and a metric alert by ``organization/project/alert``.
The joined string is the only handle the host keeps between runs, so the
encoding must be exactly reversible.
"""

from collections.abc import Sequence

from sentry_provider.clients.exceptions import (
    EmptyIDError,
    InvalidSegmentError,
    MalformedIDError,
)

SEPARATOR = "/"


def encode(segments: Sequence[str]) -> str:
    """Join identifier segments into a composite identifier.

    Args:
        segments: Ordered path segments, e.g. ``("acme", "core-team")``

    Returns:
        The joined identifier

    Raises:
        InvalidSegmentError: If there are no segments, or any segment is
            empty or contains the separator
    """
    if not segments:
        raise InvalidSegmentError("Identifier needs at least one segment")

    for index, segment in enumerate(segments):
        if not isinstance(segment, str) or not segment:
            raise InvalidSegmentError(f"Segment {index} is empty")
        if SEPARATOR in segment:
            raise InvalidSegmentError(
                f"Segment {index} ({segment!r}) contains separator {SEPARATOR!r}"
            )

    return SEPARATOR.join(segments)


def decode(identifier: str, expected_arity: int) -> tuple[str, ...]:
    """Split a composite identifier back into its segments.

    Args:
        identifier: Identifier produced by :func:`encode`
        expected_arity: Number of segments the resource kind uses

    Returns:
        Tuple of segments

    Raises:
        EmptyIDError: If the identifier is empty
        MalformedIDError: If the segment count is wrong or a segment is empty
    """
    if not identifier:
        raise EmptyIDError("Identifier is empty")

    segments = tuple(identifier.split(SEPARATOR))
    if len(segments) != expected_arity:
        raise MalformedIDError(
            f"Identifier {identifier!r} has {len(segments)} segment(s), "
            f"expected {expected_arity}"
        )
    if any(not segment for segment in segments):
        raise MalformedIDError(f"Identifier {identifier!r} has an empty segment")

    return segments
