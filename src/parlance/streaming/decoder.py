"""Incremental decoder for provider response streams.

Hidden design decisions:
- Bytes go through an incremental UTF-8 decoder, so a multi-byte
  character split across fragments is never emitted half-decoded
- Payload boundaries are found with the bounded brace scanner; each
  balanced span is decoded exactly once
- Buffered text that never becomes a payload is flushed raw once it
  exceeds the fallback threshold, so a malformed stream cannot grow the
  buffer without bound
- Every buffered span leaves the decoder through exactly one path
  (payload or raw), never both
"""

import codecs
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .scanner import MAX_NESTING_DEPTH, ScanStatus, scan_balanced

logger = logging.getLogger(__name__)

# Characters that separate payloads in array or newline-delimited streams
FRAMING_CHARS = " \t\r\n[],"

DEFAULT_FALLBACK_THRESHOLD = 65536


class FragmentKind(str, Enum):
    """How a decoded fragment contributes to the response body."""

    RESULT = "result"        # Whole result, replaces the body
    CANDIDATE = "candidate"  # Incremental text, appended
    RAW = "raw"              # Undecodable text, appended verbatim


@dataclass(frozen=True)
class DecodedFragment:
    """A piece of text that became decodable."""

    kind: FragmentKind
    text: str


def payload_from(data: Any) -> tuple[FragmentKind, str] | None:
    """Interpret a decoded JSON value as a wire payload.

    ``{"result": str}`` wins over ``{"candidate": str}``; anything else is
    not a payload.
    """
    if not isinstance(data, dict):
        return None
    result = data.get("result")
    if isinstance(result, str):
        return FragmentKind.RESULT, result
    candidate = data.get("candidate")
    if isinstance(candidate, str):
        return FragmentKind.CANDIDATE, candidate
    return None


class StreamDecoder:
    """Turns raw response fragments into decoded text fragments.

    Usage:
        decoder = StreamDecoder()
        for raw in fragments:
            for fragment in decoder.feed(raw):
                show(fragment.text)
        decoder.finish()
        body = decoder.text
    """

    def __init__(
        self,
        fallback_threshold: int = DEFAULT_FALLBACK_THRESHOLD,
        max_depth: int = MAX_NESTING_DEPTH
    ):
        """Initialize the decoder.

        Args:
            fallback_threshold: Characters the buffer may hold without a
                balanced payload before it is flushed raw
            max_depth: Nesting bound passed to the brace scanner
        """
        if fallback_threshold < 1:
            raise ValueError("fallback_threshold must be positive")
        self._threshold = fallback_threshold
        self._max_depth = max_depth
        self.reset()

    def reset(self) -> None:
        """Discard all buffered and assembled state."""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._parts: list[str] = []
        self._structured = False
        self._finished = False

    @property
    def text(self) -> str:
        """The response body assembled so far."""
        return "".join(self._parts)

    @property
    def buffered(self) -> str:
        """Text received but not yet emitted."""
        return self._buffer

    @property
    def finished(self) -> bool:
        return self._finished

    def feed(self, fragment: bytes | str) -> list[DecodedFragment]:
        """Append a raw fragment and emit whatever became decodable.

        Args:
            fragment: Raw bytes or text from the provider

        Returns:
            Decoded fragments in stream order
        """
        if self._finished:
            raise RuntimeError("Decoder already finished; call reset() first")

        if isinstance(fragment, (bytes, bytearray)):
            self._buffer += self._utf8.decode(bytes(fragment))
        else:
            self._buffer += fragment

        emitted = self._drain()

        # Growth is measured from the last extraction, which always leaves
        # only the unscanned remainder in the buffer
        if len(self._buffer) > self._threshold:
            logger.debug("No payload within %d buffered chars, flushing raw", len(self._buffer))
            emitted.extend(self._flush_raw())

        return emitted

    def finish(self) -> list[DecodedFragment]:
        """Signal end of stream and emit the residual buffer.

        A final whole-body decode is attempted on the residual; if that
        fails the residual is emitted verbatim rather than failing.
        """
        if self._finished:
            return []

        self._buffer += self._utf8.decode(b"", final=True)
        emitted = self._drain()

        residual = self._buffer
        self._buffer = ""
        if residual:
            payloads = self._decode_whole(residual)
            if payloads is not None:
                emitted.extend(self._emit(kind, text) for kind, text in payloads)
            elif not (self._structured and not residual.strip(FRAMING_CHARS)):
                emitted.append(self._emit(FragmentKind.RAW, residual))

        self._finished = True
        return emitted

    def _drain(self) -> list[DecodedFragment]:
        """Extract every balanced span currently in the buffer."""
        emitted: list[DecodedFragment] = []

        while True:
            scan = scan_balanced(self._buffer, max_depth=self._max_depth)
            if scan.status != ScanStatus.COMPLETE:
                return emitted

            prefix = self._buffer[:scan.start]
            span = self._buffer[scan.start:scan.end]
            self._buffer = self._buffer[scan.end:]

            payload = self._decode_span(span)
            if payload is None:
                logger.warning("Malformed response payload, emitting raw: %.80r", span)
                emitted.append(self._emit(FragmentKind.RAW, prefix + span))
                continue

            if prefix.strip(FRAMING_CHARS):
                emitted.append(self._emit(FragmentKind.RAW, prefix))
            self._structured = True
            emitted.append(self._emit(*payload))

    def _flush_raw(self) -> list[DecodedFragment]:
        residual = self._buffer
        self._buffer = ""
        if self._structured and not residual.strip(FRAMING_CHARS):
            return []
        return [self._emit(FragmentKind.RAW, residual)]

    @staticmethod
    def _decode_span(span: str) -> tuple[FragmentKind, str] | None:
        try:
            data = json.loads(span)
        except json.JSONDecodeError:
            return None
        return payload_from(data)

    @staticmethod
    def _decode_whole(residual: str) -> list[tuple[FragmentKind, str]] | None:
        """Decode a residual buffer as one payload or an array of payloads."""
        try:
            data = json.loads(residual)
        except (json.JSONDecodeError, RecursionError):
            return None

        items = data if isinstance(data, list) else [data]
        payloads = [payload_from(item) for item in items]
        if not payloads or any(p is None for p in payloads):
            return None
        return payloads  # type: ignore[return-value]

    def _emit(self, kind: FragmentKind, text: str) -> DecodedFragment:
        if kind == FragmentKind.RESULT:
            self._parts = [text]
        else:
            self._parts.append(text)
        return DecodedFragment(kind, text)


def decode_all(fragments: Iterable[bytes | str], fallback_threshold: int = DEFAULT_FALLBACK_THRESHOLD) -> str:
    """Decode a complete, already-received stream into its body text."""
    decoder = StreamDecoder(fallback_threshold=fallback_threshold)
    for fragment in fragments:
        decoder.feed(fragment)
    decoder.finish()
    return decoder.text
