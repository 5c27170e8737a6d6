# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from dataclasses import dataclass, replace
from logging import Logger
from os import PathLike
from typing import Self

from iinet.configuration import StationConfiguration
from iinet.messages import FinalizedMessage, ValidationError, decode_msgline
from iinet.messages.datamodel import WireData

__all__ = 'Station',  # noqa: COM818


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Station:
    """The local node, turning the msglines posted by its users into messages ready to be sent out"""

    configuration: StationConfiguration

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> Self:
        return cls(StationConfiguration.from_file(path))

    @property
    def name(self) -> str:
        return self.configuration.name

    def post(self, msgline: WireData, *, author: str, encoded: bool = False, now: int | None = None, logger: Logger | None = None) -> FinalizedMessage:
        logger = logger or log
        if not author or '\n' in author:
            raise ValidationError(f'Wrong author format: {author!r}')
        default_tags = str(self.configuration.default_tags or '')
        message = decode_msgline(msgline, encoded=encoded, default_tags=default_tags, now=now, logger=logger)
        message = replace(message, msgfrom=author, addr=self.configuration.address)
        finalized = message.finalize(now=now)
        logger.debug('Message %s posted by %s to %s', finalized.msgid, author, finalized.echo)
        return finalized

    def bundle(self, msgline: WireData, *, author: str, encoded: bool = False, now: int | None = None, logger: Logger | None = None) -> str:
        return self.post(msgline, author=author, encoded=encoded, now=now, logger=logger).encode()
