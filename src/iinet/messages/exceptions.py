# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from enum import Enum
from typing import ClassVar

__all__ = 'ErrorKind', 'MessageError', 'DecodeError', 'FormatError', 'ValidationError', 'ParseError'  # noqa: RUF022


class ErrorKind(Enum):
    DECODE = 'decode'
    FORMAT = 'format'
    VALIDATION = 'validation'
    PARSE = 'parse'

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.{self.name}'


class MessageError(ValueError):
    """Base class for the errors raised while decoding or encoding messages"""

    kind: ClassVar[ErrorKind] = NotImplemented

    def __init_subclass__(cls, *, kind: ErrorKind = NotImplemented, **kw: object) -> None:
        if kind is not NotImplemented:
            cls.kind = kind
        super().__init_subclass__(**kw)


class DecodeError(MessageError, kind=ErrorKind.DECODE):
    """Raised when the base64 or UTF-8 payload of a message cannot be decoded."""


class FormatError(MessageError, kind=ErrorKind.FORMAT):
    """
    Raised when a message or tag string does not have the expected structure.

    This covers missing lines, a missing body delimiter, a malformed message
    identifier prefix and tag strings with an odd number of tokens.

    """


class ValidationError(MessageError, kind=ErrorKind.VALIDATION):
    """Raised when an echo area name or a message identifier has the wrong shape."""


class ParseError(MessageError, kind=ErrorKind.PARSE):
    """Raised when the date field of a bundle is not an integer."""
