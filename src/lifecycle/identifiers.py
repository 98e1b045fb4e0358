"""Composite resource identifiers.

Remote resources are persisted by a single opaque string built from one or
more path segments, e.g. an EKS add-on is "<cluster-name>:<addon-name>".
The delimiter is reserved: no segment may contain it, which keeps the
encoding a bijection.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidSegmentError, MalformedKeyError

DEFAULT_DELIMITER = ":"


@dataclass(frozen=True)
class ResourceKeyCodec:
    """Encode and decode resource keys with a fixed number of segments."""

    arity: int
    delimiter: str = DEFAULT_DELIMITER

    def __post_init__(self) -> None:
        if self.arity < 1:
            raise ValueError(f"arity must be at least 1: {self.arity}")
        if not self.delimiter:
            raise ValueError("delimiter cannot be empty")

    def encode(self, *segments: str) -> str:
        """Join segments into a resource key.

        Raises:
            InvalidSegmentError: If a segment is empty, contains the
                delimiter, or the segment count does not match the arity.
        """
        if len(segments) != self.arity:
            raise InvalidSegmentError(
                f"Expected {self.arity} identifier segment(s), got {len(segments)}"
            )

        for index, segment in enumerate(segments):
            if not segment:
                raise InvalidSegmentError(f"Identifier segment {index} is empty")
            if self.delimiter in segment:
                raise InvalidSegmentError(
                    f"Identifier segment {index} contains reserved delimiter "
                    f"'{self.delimiter}': {segment!r}"
                )

        return self.delimiter.join(segments)

    def decode(self, key: str) -> tuple[str, ...]:
        """Split a resource key into its segments.

        Raises:
            MalformedKeyError: If the key does not split into exactly
                `arity` non-empty segments.
        """
        parts = tuple(key.split(self.delimiter)) if key else ()

        if len(parts) != self.arity or not all(parts):
            expected = self.delimiter.join(f"<segment{i}>" for i in range(self.arity))
            raise MalformedKeyError(
                f"Unexpected format for resource key {key!r}, expected {expected}",
                key=key,
            )

        return parts
