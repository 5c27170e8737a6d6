# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

from iinet.messages import DEFAULT_TAGS, Tags

from .xml import AnnotatedXMLElement, Attribute, Namespace, OptionalDataElement

__all__ = 'StationConfiguration', 'TagsAdapter'


ns_station = Namespace('urn:ii:params:xml:ns:station', schema='station.rng', prefix=None)


class TagsAdapter:
    @staticmethod
    def xml_parse(value: str) -> Tags:
        return Tags.parse(value)

    @staticmethod
    def xml_build(value: Tags) -> str:
        return str(value)


def default_tags() -> Tags:
    return Tags.parse(DEFAULT_TAGS)


class StationElement(AnnotatedXMLElement, namespace=ns_station):
    pass


class StationConfiguration(StationElement, name='station'):
    """
    The configuration of the local station.

    The address is stamped on the messages posted by the station users and
    the default tags are the tags every new message starts with.
    """

    name: Attribute[str] = Attribute(str)
    address: Attribute[str] = Attribute(str)

    default_tags: OptionalDataElement[Tags] = OptionalDataElement(Tags, name='default-tags', adapter=TagsAdapter, default_factory=default_tags)
