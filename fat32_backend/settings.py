#!/usr/bin/env python3

# Copyright (c) 2026 Stephen P Smith
# MIT License

"""
Persisted formatter preferences.

Only user-facing defaults live here (label, sync behavior, volume ID
source). The volume layout itself is fixed by FormatConfig.
"""

import random
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from PySide6.QtCore import QSettings

from .formatter import default_volume_serial

logger = logging.getLogger(__name__)

SERIAL_MODE_TIME = 'time'
SERIAL_MODE_RANDOM = 'random'
SERIAL_MODES = (SERIAL_MODE_TIME, SERIAL_MODE_RANDOM)


@dataclass
class FormatterSettings:
    """User defaults applied when starting a format session"""
    default_label: str = 'NO NAME'
    sync_writes: bool = True
    serial_mode: str = SERIAL_MODE_TIME


def open_settings() -> QSettings:
    return QSettings('NDSFormat', 'Settings')


def load_settings(settings: Optional[QSettings] = None) -> FormatterSettings:
    """Read preferences, falling back to defaults for missing or bad values"""
    if settings is None:
        settings = open_settings()
    defaults = FormatterSettings()

    serial_mode = settings.value('serial_mode', defaults.serial_mode, type=str)
    if serial_mode not in SERIAL_MODES:
        logger.warning(f"Unknown serial_mode '{serial_mode}', using '{defaults.serial_mode}'")
        serial_mode = defaults.serial_mode

    return FormatterSettings(
        default_label=settings.value('default_label', defaults.default_label, type=str),
        sync_writes=settings.value('sync_writes', defaults.sync_writes, type=bool),
        serial_mode=serial_mode,
    )


def save_settings(values: FormatterSettings, settings: Optional[QSettings] = None):
    if settings is None:
        settings = open_settings()
    settings.setValue('default_label', values.default_label)
    settings.setValue('sync_writes', values.sync_writes)
    settings.setValue('serial_mode', values.serial_mode)
    settings.sync()
    logger.debug(f"Saved formatter settings: {values}")


def reset_settings(settings: Optional[QSettings] = None):
    """Restore default preferences"""
    save_settings(FormatterSettings(), settings)


def random_volume_serial() -> int:
    return random.getrandbits(32)


def serial_source_for(mode: str) -> Callable[[], int]:
    if mode == SERIAL_MODE_RANDOM:
        return random_volume_serial
    if mode == SERIAL_MODE_TIME:
        return default_volume_serial
    raise ValueError(f"Unknown serial mode: {mode}")


def formatter_options(values: FormatterSettings) -> dict:
    """Keyword arguments for FAT32Formatter derived from saved preferences"""
    return {
        'sync_writes': values.sync_writes,
        'serial_source': serial_source_for(values.serial_mode),
    }
