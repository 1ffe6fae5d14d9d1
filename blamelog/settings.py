# -----------------------------------------------------------------------------
# Copyright (C) 2025 Iliyas Jorio.
# This file is part of BlameLog, distributed under the GNU GPL v3.
# For full terms, see the included LICENSE file.
# -----------------------------------------------------------------------------

import dataclasses
import logging
import os

logger = logging.getLogger(__name__)

ENV_PREFIX = "BLAMELOG_"

GIB = 1024 * 1024 * 1024


@dataclasses.dataclass(frozen=True)
class Settings:
    hashLength                  : int                   = 16
    maxLineLength               : int                   = GIB
    maxCheckpoints              : int                   = 8
    workers                     : int                   = 4
    gitPath                     : str                   = "git"
    gitTimeout                  : float                 = 0.0   # 0 = wait forever
    maxFormatWarnings           : int                   = 20

    @classmethod
    def fromEnvironment(cls, environ: dict[str, str] | None = None) -> "Settings":
        """
        Build Settings from BLAMELOG_* environment variables, e.g.
        BLAMELOG_HASHLENGTH=12 or BLAMELOG_GITPATH=/usr/bin/git.
        Unparsable values are ignored with a warning.
        """
        if environ is None:
            environ = dict(os.environ)

        overrides = {}
        for field in dataclasses.fields(cls):
            key = ENV_PREFIX + field.name.upper()
            try:
                raw = environ[key]
            except KeyError:
                continue

            fieldType = type(field.default)
            try:
                value = fieldType(raw)
            except ValueError:
                logger.warning(f"Ignoring {key}: cannot convert {raw!r} to {fieldType.__name__}")
                continue

            # Validate each override on its own so one bad value doesn't spoil the rest
            try:
                cls(**{field.name: value})
            except ValueError as exc:
                logger.warning(f"Ignoring {key}={raw!r}: {exc}")
                continue

            overrides[field.name] = value

        return cls(**overrides)

    def __post_init__(self):
        if self.hashLength <= 0:
            raise ValueError("hashLength must be positive")
        if self.maxLineLength <= 0:
            raise ValueError("maxLineLength must be positive")
        if self.maxCheckpoints < 1:
            raise ValueError("maxCheckpoints must be at least 1")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")


DEFAULT_SETTINGS = Settings()
