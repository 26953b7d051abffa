#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Volume label helpers.

The same 11-character label is stored in the boot sector and in the
volume-ID entry of the root directory.
"""

from .errors import VolumeLabelError

LABEL_LENGTH = 11

# Characters forbidden in 8.3 short names, and therefore in volume labels
FORBIDDEN_LABEL_CHARS = '"*+,./:;<=>?[\\]|'


def normalize_volume_label(label: str) -> str:
    """Truncate to 11 characters, uppercase ASCII letters and pad with spaces.

    No character-set validation is done here; see validate_volume_label.
    """
    truncated = label[:LABEL_LENGTH]
    upper = ''.join(c.upper() if 'a' <= c <= 'z' else c for c in truncated)
    return upper.ljust(LABEL_LENGTH, ' ')


def encode_volume_label(label: str) -> bytes:
    """Normalize a label and encode it as the 11-byte on-disk field"""
    # 'replace' keeps the field at exactly one byte per character
    return normalize_volume_label(label).encode('ascii', 'replace')


def is_valid_label_char(char: str) -> bool:
    """Check if character is printable ASCII and allowed in a volume label"""
    if not char.isascii() or not (' ' <= char <= '~'):
        return False
    return char not in FORBIDDEN_LABEL_CHARS


def validate_volume_label(label: str) -> str:
    """
    Strictly validate a caller-supplied label.

    Args:
        label: Label text, 1-11 printable ASCII characters.

    Returns:
        The label unchanged, for chaining into the formatter.

    Raises:
        VolumeLabelError: If the label is empty, too long, or contains a
            non-printable, non-ASCII or forbidden character.
    """
    if not label:
        raise VolumeLabelError("Volume label is empty", VolumeLabelError.EMPTY)
    if len(label) > LABEL_LENGTH:
        raise VolumeLabelError(f"Volume label exceeds {LABEL_LENGTH} characters",
                               VolumeLabelError.TOO_LONG)
    for char in label:
        if not is_valid_label_char(char):
            raise VolumeLabelError(f"Invalid character in volume label: {char!r}",
                                   VolumeLabelError.INVALID_CHARACTER, char)
    return label
