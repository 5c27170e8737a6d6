# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from functools import cache
from pathlib import Path

from lxml import etree

__all__ = 'RelaxNGValidator', 'get_validator'


type ETreeElement = etree._Element  # noqa: SLF001

schema_directory = Path(__file__).parent


class RelaxNGValidator:
    """Checks XML documents against one of the RelaxNG schemas shipped with the package"""

    def __init__(self, schema_file: str) -> None:
        self.schema_path = schema_directory / schema_file
        self.schema = etree.RelaxNG(file=self.schema_path)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.schema_path.name!r})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RelaxNGValidator):
            return self.schema_path == other.schema_path
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.schema_path)

    @property
    def error(self) -> str | None:
        error = self.schema.error_log.last_error
        return error.message if error is not None else None

    def validate(self, element: ETreeElement) -> bool:
        return self.schema.validate(element)

    def check(self, element: ETreeElement, qualname: str | None = None) -> None:
        """Raise ValueError if the element does not match the schema"""
        if not self.schema.validate(element):
            raise ValueError(f'The {qualname or element.tag!r} element does not match its schema: {self.error}')


@cache
def get_validator(schema_file: str) -> RelaxNGValidator:
    return RelaxNGValidator(schema_file)
