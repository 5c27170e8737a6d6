# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import hashlib
from binascii import Error as BinasciiError
from binascii import a2b_base64
from binascii import b2a_base64 as base64encode
from collections.abc import Iterable, Iterator, Mapping
from typing import ClassVar, Self

from .exceptions import FormatError, ValidationError

__all__ = (  # noqa: RUF022
    # Wire data

    'WireData',
    'base64decode',
    'base64encode',
    'urlsafe_base64decode',

    # Validators

    'is_echo_name',
    'is_message_id',

    # Types

    'MessageID',
    'Tags',
)


type WireData = str | bytes | bytearray | memoryview


# Base64 helpers

_urlsafe_translation = bytes.maketrans(b'-_', b'+/')


def _prepare(data: WireData) -> bytes:
    if isinstance(data, str):
        try:
            data = data.encode('ascii')
        except UnicodeEncodeError as exc:
            raise BinasciiError('base64 data should contain only ASCII characters') from exc
    # line breaks are not part of the data
    return bytes(data).replace(b'\r', b'').replace(b'\n', b'')


def base64decode(data: WireData) -> bytes:
    """Decode padded base64 data that uses the standard alphabet"""
    return a2b_base64(_prepare(data), strict_mode=True)


def urlsafe_base64decode(data: WireData) -> bytes:
    """Decode padded base64 data that uses the URL and filesystem safe alphabet"""
    data = _prepare(data)
    if b'+' in data or b'/' in data:
        raise BinasciiError('Only URL safe base64 characters are allowed')
    return a2b_base64(data.translate(_urlsafe_translation), strict_mode=True)


# Validators

def is_message_id(value: str) -> bool:
    """Message identifiers have exactly 20 characters and never contain a dot"""
    return len(value) == MessageID._size_ and '.' not in value


def is_echo_name(name: str) -> bool:
    """Echo area names are dotted names between 3 and 120 characters long"""
    return 3 <= len(name) <= 120 and '.' in name


# Types

class MessageID(str):
    """
    A message identifier.

    The identifier is derived from the canonical form of a message, so
    the same message gets the same identifier on every node. It is made
    of the first 20 characters of the base64 encoded SHA-256 digest of
    the message, with '+' replaced by 'A' and '/' replaced by 'Z' to keep
    it safe to use in file names and URLs.
    """

    __slots__ = ()

    _size_: ClassVar[int] = 20

    def __new__(cls, value: str) -> Self:
        if not is_message_id(value):
            raise ValidationError(f'Wrong message id format: {value!r}')
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}({super().__repr__()})'

    @classmethod
    def for_message(cls, message: WireData) -> Self:
        if isinstance(message, str):
            message = message.encode()
        digest = base64encode(hashlib.sha256(message).digest(), newline=False).decode('ascii')
        return cls(digest.replace('+', 'A').replace('/', 'Z')[:cls._size_])


class Tags(Mapping[str, str]):
    """
    An ordered set of key/value annotations attached to a message.

    The wire representation is a '/' separated list of alternating keys
    and values, like 'ii/ok/repto/AbCdEfGhIjKlMnOpQrSt'. The order in
    which keys were added is the order in which they are serialized.

    Adding a key that is already present updates its value and appends
    the key to the order again, so it is serialized once per addition,
    always with the latest value. The mapping interface only sees the
    unique keys.
    """

    __slots__ = '_order', '_tags'

    def __init__(self, tags: Mapping[str, str] | Iterable[tuple[str, str]] = (), /) -> None:
        if isinstance(tags, Tags):
            self._order: list[str] = list(tags._order)
            self._tags: dict[str, str] = dict(tags._tags)
        else:
            self._tags = dict(tags)
            self._order = list(self._tags)

    def __repr__(self) -> str:
        return f'{self.__class__.__qualname__}.parse({str(self)!r})'

    def __str__(self) -> str:
        return '/'.join(f'{key}/{self._tags[key]}' for key in self._order)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Tags):
            return self._order == other._order and self._tags == other._tags
        return super().__eq__(other)

    def __getitem__(self, key: str) -> str:
        return self._tags[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    @property
    def order(self) -> tuple[str, ...]:
        """The keys in serialization order, repeated keys included"""
        return tuple(self._order)

    @classmethod
    def parse(cls, text: str) -> Self:
        instance = cls()
        text = text.strip()
        if text:
            instance._add_tokens(text)
        return instance

    def add(self, text: str) -> None:
        self._add_tokens(text)

    def _add_tokens(self, text: str) -> None:
        tokens = text.split('/')
        if len(tokens) % 2 != 0:
            raise FormatError(f'wrong tags: {text}')
        for key, value in zip(tokens[::2], tokens[1::2], strict=True):
            self._tags[key] = value
            self._order.append(key)
