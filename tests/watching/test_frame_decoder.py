import pytest

from kubeclient._cogs.clients.errors import WatchFrameError
from kubeclient._cogs.clients.watching import FrameDecoder


def test_empty_chunks_yield_nothing():
    decoder = FrameDecoder()
    assert list(decoder.feed(b'')) == []
    assert decoder.buffer == b''


def test_one_frame_per_chunk():
    decoder = FrameDecoder()
    assert list(decoder.feed(b'{"type": "ADDED"}\n')) == [{'type': 'ADDED'}]
    assert decoder.buffer == b''


def test_many_frames_per_chunk():
    decoder = FrameDecoder()
    events = list(decoder.feed(b'{"a": 1}\n{"b": 2}\n{"c": 3}\n'))
    assert events == [{'a': 1}, {'b': 2}, {'c': 3}]


def test_frames_without_separators():
    decoder = FrameDecoder()
    events = list(decoder.feed(b'{"a": 1}{"b": 2}'))
    assert events == [{'a': 1}, {'b': 2}]


def test_frames_split_between_chunks():
    decoder = FrameDecoder()
    assert list(decoder.feed(b'{"a": 1}\n{"b"')) == [{'a': 1}]
    assert decoder.buffer == b'\n{"b"'
    assert list(decoder.feed(b': 2')) == []
    assert list(decoder.feed(b'}\n')) == [{'b': 2}]
    assert decoder.buffer == b''


def test_multibyte_characters_split_between_chunks():
    decoder = FrameDecoder()
    data = '{"name": "мир"}\n'.encode('utf-8')
    cut = data.index('м'.encode('utf-8')) + 1  # in the middle of a 2-byte character.
    assert list(decoder.feed(data[:cut])) == []
    assert list(decoder.feed(data[cut:])) == [{'name': 'мир'}]
    assert decoder.buffer == b''


def test_multibyte_characters_before_the_frame_boundary():
    decoder = FrameDecoder()
    events = list(decoder.feed('{"a": "ä"}\n{"b": "ö"}\n'.encode('utf-8')))
    assert events == [{'a': 'ä'}, {'b': 'ö'}]
    assert decoder.buffer == b''


def test_malformed_frames_are_buffered():
    decoder = FrameDecoder()
    assert list(decoder.feed(b'{"a": oops}\n')) == []
    assert decoder.buffer == b'{"a": oops}\n'


def test_oversized_frames_are_discarded():
    decoder = FrameDecoder(max_frame_size=10)
    with pytest.raises(WatchFrameError):
        list(decoder.feed(b'{"a": "0123456789'))
    assert decoder.buffer == b''


def test_complete_frames_are_yielded_before_the_overflow():
    decoder = FrameDecoder(max_frame_size=10)
    events = []
    with pytest.raises(WatchFrameError):
        for event in decoder.feed(b'{"a": 1}\n{"b": "0123456789'):
            events.append(event)
    assert events == [{'a': 1}]
    assert decoder.buffer == b''


def test_decoding_continues_after_the_overflow():
    decoder = FrameDecoder(max_frame_size=10)
    with pytest.raises(WatchFrameError):
        list(decoder.feed(b'{"a": "0123456789'))
    assert list(decoder.feed(b'{"b": "0123456789"}\n')) == [{'b': '0123456789'}]


def test_unlimited_buffers():
    decoder = FrameDecoder(max_frame_size=None)
    assert list(decoder.feed(b'{"a": "' + b'x' * 100_000)) == []
    assert len(decoder.buffer) > 100_000


def test_big_frames_are_decoded_once(mocker):
    decoder = FrameDecoder()
    raw_decode = mocker.spy(decoder._decoder, 'raw_decode')
    data = b'{"items": [' + b','.join(b'{"a": "x"}' for _ in range(1000)) + b']}\n'
    chunks = [data[i:i + 100] for i in range(0, len(data), 100)]

    events = [event for chunk in chunks for event in decoder.feed(chunk)]

    assert len(events) == 1
    assert len(events[0]['items']) == 1000
    assert raw_decode.call_count == 1


def test_brackets_in_strings_are_not_boundaries(mocker):
    decoder = FrameDecoder()
    raw_decode = mocker.spy(decoder._decoder, 'raw_decode')
    assert list(decoder.feed(b'{"a": "}]\\n')) == []
    assert list(decoder.feed(b'}]"}\n')) == [{'a': '}]\n}]'}]
    assert raw_decode.call_count == 1


def test_escaped_quotes_split_between_chunks():
    decoder = FrameDecoder()
    assert list(decoder.feed(b'{"a": "q\\')) == []
    assert list(decoder.feed(b'"}"}\n')) == [{'a': 'q"}'}]
    assert decoder.buffer == b''
