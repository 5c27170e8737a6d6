# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
ii message formats

   Messages travel between ii nodes as bundles.  A bundle is a message
   identifier followed by a colon and the base64 encoded message:

     <msgid>:<base64 encoded message>

   The encoded message is a block of text with a fixed number of header
   lines, a blank line and the message body:

     +-------------------------+
     |   tags                  |   ii/ok/repto/AbCdEfGhIjKlMnOpQrSt
     |   echo area             |   ii.test.14
     |   date                  |   1700000000
     |   author                |   alice
     |   author address        |   node,1
     |   destination           |   All
     |   subject               |   Hello
     |                         |
     |   body ...              |
     +-------------------------+

   The message identifier is derived from the encoded message text, so
   identical messages have identical identifiers everywhere and can be
   deduplicated.  When the identifier is missing from a bundle it is
   computed from the message text.

   Users post messages to their node as msglines.  A msgline carries only
   the fields the author controls:

     +-------------------------+
     |   echo area             |
     |   destination           |
     |   subject               |
     |                         |
     |   [@repto:<msgid>]      |
     |   body ...              |
     +-------------------------+

   The node fills in the rest (date, author, address and identifier)
   before the message is sent out as a bundle.

"""

import logging
import re
import time
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from logging import Logger

from .datamodel import MessageID, Tags, WireData, base64decode, base64encode, is_echo_name, is_message_id, urlsafe_base64decode
from .exceptions import DecodeError, ErrorKind, FormatError, MessageError, ParseError, ValidationError

__all__ = (  # noqa: RUF022
    'DEFAULT_TAGS',

    'Message',
    'FinalizedMessage',
    'MessageID',
    'Tags',

    'decode_msgline',
    'decode_bundle',
    'encode',

    'is_echo_name',
    'is_message_id',

    'ErrorKind',
    'MessageError',
    'DecodeError',
    'FormatError',
    'ParseError',
    'ValidationError',
)


log = logging.getLogger(__name__)


DEFAULT_TAGS = 'ii/ok'  # the tags of a newly authored message

REPTO_PREFIX = '@repto:'

BUNDLE_HEADER_LINES = 8  # the header lines of a bundle, including the body delimiter

_integer_prefix = re.compile(r'\s*[-+]?[0-9]+', re.ASCII)

_date_range = range(-2**63, 2**63)  # dates are 64 bit signed integers on the wire


# Helpers

def _decode_text(data: WireData) -> str:
    if isinstance(data, str):
        return data
    try:
        return bytes(data).decode('utf-8')
    except UnicodeDecodeError as exc:
        raise DecodeError(f'Message is not valid UTF-8: {exc!s}') from exc


def _parse_date(value: str) -> int:
    # behaves like scanf("%d"): leading blanks are skipped and anything after the number is ignored
    match = _integer_prefix.match(value)
    if match is None:
        raise ParseError(f'Wrong date format: {value!r}')
    date = int(match.group())
    if date not in _date_range:
        raise ParseError(f'Wrong date format: {value!r} is out of range')
    return date


def _validate_echo(echo: str) -> str:
    if not is_echo_name(echo):
        raise ValidationError(f'Wrong echoarea format: {echo!r}')
    return echo


# Messages

@dataclass(frozen=True)
class Message:
    msgid: MessageID | None = None
    tags: Tags = field(default_factory=Tags)
    echo: str = ''
    date: int = 0
    msgfrom: str = ''
    addr: str = ''
    msgto: str = ''
    subj: str = ''
    text: str = ''

    def canonical(self) -> str:
        """The text form of the message, used both for the bundle payload and to derive the message identifier"""
        return '\n'.join((str(self.tags), self.echo, str(self.date), self.msgfrom, self.addr, self.msgto, self.subj, '', self.text))

    def dump(self) -> str:
        """A human readable representation of the message"""
        try:
            date = datetime.fromtimestamp(self.date, UTC).isoformat()
        except (OverflowError, OSError, ValueError):
            date = str(self.date)
        return (
            f'id: {self.msgid or ""}\n'
            f'tags: {self.tags}\n'
            f'echoarea: {self.echo}\n'
            f'date: {date}\n'
            f'msgfrom: {self.msgfrom}\n'
            f'addr: {self.addr}\n'
            f'msgto: {self.msgto}\n'
            f'subj: {self.subj}\n'
            f'\n'
            f'{self.text}'
        )

    def tag(self, name: str) -> str | None:
        return self.tags.get(name)

    def finalize(self, *, now: int | None = None) -> 'FinalizedMessage':
        """
        Return a copy of the message that is ready to be sent out.

        The date is set to now (defaults to the current time) if the message
        doesn't have one and the message identifier is computed from the
        canonical form of the message if it wasn't already assigned. The
        message must have an echo area.
        """
        if not self.echo:
            raise ValidationError('A finalized message must have an echo area')
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values['tags'] = Tags(self.tags)
        if not self.date:
            values['date'] = now if now is not None else int(time.time())
        if self.msgid is None:
            values['msgid'] = MessageID.for_message(Message(**values).canonical())
        return FinalizedMessage(**values)


@dataclass(frozen=True)
class FinalizedMessage(Message):
    """A message with an echo area, a date and an identifier, ready to be encoded as a bundle"""

    def __post_init__(self) -> None:
        if self.msgid is None:
            raise ValidationError('A finalized message must have a message id')
        if not self.date:
            raise ValidationError('A finalized message must have a date')
        if not self.echo:
            raise ValidationError('A finalized message must have an echo area')

    def encode(self) -> str:
        payload = base64encode(self.canonical().encode(), newline=False).decode('ascii')
        return f'{self.msgid}:{payload}'


# Codecs

def decode_msgline(data: WireData, *, encoded: bool = False, default_tags: str = DEFAULT_TAGS, now: int | None = None, logger: Logger | None = None) -> Message:
    """
    Decode a message posted by a user.

    If encoded is true the data is base64 encoded, using either the standard
    or the URL safe alphabet. The date is set to now (defaults to the current
    time), as the message is being authored. Author, address and identifier
    are left to be filled in by the caller.
    """
    logger = logger or log
    if encoded:
        try:
            data = base64decode(data)
        except ValueError:
            try:
                data = urlsafe_base64decode(data)
            except ValueError as exc:
                raise DecodeError(f'Invalid base64 data: {exc!s}') from exc
    lines = _decode_text(data).split('\n')
    if len(lines) < 5:
        raise FormatError('Wrong message format')
    if lines[3] != '':
        raise FormatError('No body delimiter in message')

    echo = _validate_echo(lines[0])
    tags = Tags.parse(default_tags)
    body_start = 4
    if lines[4].startswith(REPTO_PREFIX):
        repto = lines[4].split(':')[1].strip(' ')
        tags.add(f'repto/{repto}')
        logger.debug('Add repto tag: %s', repto)
        body_start += 1

    message = Message(
        tags=tags,
        echo=echo,
        date=now if now is not None else int(time.time()),
        msgto=lines[1],
        subj=lines[2],
        text='\n'.join(lines[body_start:]),
    )
    logger.debug('Final message: %s', message.canonical())
    return message


def decode_bundle(data: WireData, *, logger: Logger | None = None) -> Message:
    """
    Decode a message bundle.

    The bundle may or may not start with the message identifier. When it
    doesn't, the identifier is computed from the decoded message.
    """
    logger = logger or log
    bundle = _decode_text(data)
    msgid: MessageID | None = None
    if ':' in bundle:
        parts = bundle.split(':')
        if len(parts) != 2:
            raise FormatError('Wrong bundle format')
        msgid = MessageID(parts[0])
        bundle = parts[1]
    try:
        payload = base64decode(bundle)
    except ValueError as exc:
        raise DecodeError(f'Invalid base64 data: {exc!s}') from exc
    if msgid is None:
        msgid = MessageID.for_message(payload)

    lines = _decode_text(payload).split('\n')
    if len(lines) <= BUNDLE_HEADER_LINES:
        raise FormatError('Wrong message format')

    message = Message(
        msgid=msgid,
        tags=Tags.parse(lines[0]),
        echo=_validate_echo(lines[1]),
        date=_parse_date(lines[2]),
        msgfrom=lines[3],
        addr=lines[4],
        msgto=lines[5],
        subj=lines[6],
        text='\n'.join(lines[BUNDLE_HEADER_LINES:]),
    )
    logger.debug('Decoded bundle %s from %s in %s', message.msgid, message.msgfrom, message.echo)
    return message


def encode(message: Message) -> str:
    """Encode the message as a bundle, or return an empty string if the message has no echo area"""
    if not message.echo:
        return ''
    return message.finalize().encode()
