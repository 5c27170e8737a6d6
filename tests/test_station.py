# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import logging
from binascii import b2a_base64
from pathlib import Path

import pytest

from iinet.configuration import StationConfiguration
from iinet.messages import FinalizedMessage, MessageID, Tags, ValidationError, decode_bundle
from iinet.station import Station

MSGLINE = 'ii.test.14\nAll\nHello\n\n@repto:AbCdEfGhIjKlMnOpQrSt\nHello world'


@pytest.fixture
def station() -> Station:
    configuration = StationConfiguration(name='node', address='node,1')
    return Station(configuration)


class TestStation:

    def test_post(self, station: Station) -> None:
        message = station.post(MSGLINE, author='alice', now=1700000000)
        assert isinstance(message, FinalizedMessage)
        assert message.echo == 'ii.test.14'
        assert message.msgfrom == 'alice'
        assert message.addr == 'node,1'
        assert message.msgto == 'All'
        assert message.subj == 'Hello'
        assert message.text == 'Hello world'
        assert message.date == 1700000000
        assert str(message.tags) == 'ii/ok/repto/AbCdEfGhIjKlMnOpQrSt'
        assert message.msgid == MessageID.for_message(message.canonical())

    def test_post_encoded(self, station: Station) -> None:
        encoded = b2a_base64(MSGLINE.encode(), newline=False).decode('ascii')
        assert station.post(encoded, author='alice', encoded=True, now=1700000000) == station.post(MSGLINE, author='alice', now=1700000000)

    def test_post_default_tags(self) -> None:
        configuration = StationConfiguration(name='node', address='node,1', default_tags=Tags.parse('ii/ok/client/test'))
        message = Station(configuration).post('std.club\nAll\nHello\n\nbody', author='alice')
        assert str(message.tags) == 'ii/ok/client/test'

        configuration.default_tags = Tags()
        message = Station(configuration).post('std.club\nAll\nHello\n\nbody', author='alice')
        assert len(message.tags) == 0

    def test_post_rejected(self, station: Station) -> None:
        with pytest.raises(ValidationError, match='Wrong echoarea format'):
            station.post('nodots\nAll\nHello\n\nbody', author='alice')
        with pytest.raises(ValidationError, match='Wrong author format'):
            station.post(MSGLINE, author='')
        with pytest.raises(ValidationError, match='Wrong author format'):
            station.post(MSGLINE, author='alice\nbob')

    def test_bundle(self, station: Station) -> None:
        bundle = station.bundle(MSGLINE, author='alice', now=1700000000)
        posted = station.post(MSGLINE, author='alice', now=1700000000)
        message = decode_bundle(bundle)
        assert message.msgid == posted.msgid
        assert message.canonical() == posted.canonical()
        assert message.finalize() == posted

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / 'station.xml'
        path.write_text('<station xmlns="urn:ii:params:xml:ns:station" name="node" address="node,2"><default-tags>ii/ok/client/test</default-tags></station>')
        station = Station.from_file(path)
        assert station.name == 'node'
        message = station.post('std.club\nAll\nHello\n\nbody', author='alice')
        assert message.addr == 'node,2'
        assert str(message.tags) == 'ii/ok/client/test'

    def test_trace(self, station: Station, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger('test.station')
        caplog.set_level(logging.DEBUG, logger='test.station')
        message = station.post(MSGLINE, author='alice', logger=logger)
        assert f'Message {message.msgid} posted by alice to ii.test.14' in caplog.text
        assert 'Add repto tag: AbCdEfGhIjKlMnOpQrSt' in caplog.text
