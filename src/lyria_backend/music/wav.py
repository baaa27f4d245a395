"""WAV payload concatenation and ``data:`` URI helpers."""

from __future__ import annotations

import base64
import logging
import struct
from typing import Sequence

from .models import AudioSegment, ConcatenatedAudio

logger = logging.getLogger(__name__)

WAV_HEADER_SIZE = 44
RIFF_SIZE_OFFSET = 4
DATA_SIZE_OFFSET = 40


def encode_data_uri(payload: bytes, fmt: str = "wav") -> str:
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:audio/{fmt};base64,{encoded}"


def _merge_payloads(payloads: Sequence[bytes]) -> bytes:
    header = bytearray(payloads[0][:WAV_HEADER_SIZE])
    if len(header) < WAV_HEADER_SIZE:
        raise ValueError(
            f"First segment is {len(header)} bytes, shorter than a WAV header"
        )

    data_parts = [payload[WAV_HEADER_SIZE:] for payload in payloads]
    total_data = sum(len(part) for part in data_parts)

    struct.pack_into("<I", header, RIFF_SIZE_OFFSET, WAV_HEADER_SIZE + total_data - 8)
    struct.pack_into("<I", header, DATA_SIZE_OFFSET, total_data)

    return b"".join([bytes(header), *data_parts])


def concatenate_wav(segments: Sequence[AudioSegment]) -> ConcatenatedAudio:
    """Join WAV segments that share one 44-byte header layout.

    The first segment's header is reused with its RIFF and data chunk sizes
    patched. Sample format parameters are not compared; segments from a
    single provider are expected to match. If merging fails the first
    segment is returned on its own.
    """

    if not segments:
        raise ValueError("At least one audio segment is required")

    logger.info("Starting WAV concatenation for %d segments", len(segments))
    if len(segments) == 1:
        return ConcatenatedAudio(payload=segments[0].payload, segment_count=1)

    try:
        for index, segment in enumerate(segments):
            logger.debug("Segment %d: %d bytes", index + 1, len(segment.payload))
        merged = _merge_payloads([segment.payload for segment in segments])
    except Exception:
        logger.exception(
            "WAV concatenation failed, falling back to the first segment only"
        )
        return ConcatenatedAudio(payload=segments[0].payload, segment_count=1)

    logger.info("WAV concatenation complete: %d bytes total", len(merged))
    return ConcatenatedAudio(payload=merged, segment_count=len(segments))


__all__ = [
    "DATA_SIZE_OFFSET",
    "RIFF_SIZE_OFFSET",
    "WAV_HEADER_SIZE",
    "concatenate_wav",
    "encode_data_uri",
]
