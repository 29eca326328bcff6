import json

import pytest

from pingpong import config
from pingpong.config import ConfigurationError, Settings
from pingpong.identity import encode_identifier


A = 'a' * 64
B = 'b' * 64


def test_defaults():
    settings = Settings(environ={})

    assert settings.max_attempts == 10
    assert settings.initial_delay == 1.0
    assert settings.max_delay == 30.0
    assert settings.reconnect_delay == 5.0


def test_overrides():
    environ = {'PINGPONG_MAX_ATTEMPTS': '3', 'PINGPONG_RECONNECT_DELAY': '0.5'}
    settings = Settings(environ=environ, max_delay=2)

    assert settings.max_attempts == 3
    assert settings.reconnect_delay == 0.5
    assert settings.max_delay == 2.0

    # Keyword arguments win over the environment.
    settings = Settings(environ=environ, max_attempts=4)
    assert settings.max_attempts == 4


def test_invalid_settings():

    with pytest.raises(ConfigurationError):
        Settings(environ={'PINGPONG_MAX_ATTEMPTS': 'lots'})

    with pytest.raises(ConfigurationError):
        Settings(environ={}, max_attempts=0)

    with pytest.raises(ConfigurationError):
        Settings(environ={}, reconnect_delay=-1)

    with pytest.raises(TypeError):
        Settings(environ={}, colour='blue')


def test_backoff():
    settings = Settings(environ={})
    delays = [settings.backoff(attempt) for attempt in range(1, 10)]

    assert delays == [1, 4, 9, 16, 25, 30, 30, 30, 30]


def test_parse_interval():
    assert config.parse_interval('5') == 5.0
    assert config.parse_interval('0.25') == 0.25

    for bad in ('', 'soon', '0', '-1', 'inf', 'nan'):
        with pytest.raises(ConfigurationError):
            config.parse_interval(bad)


def test_load_secret():
    hex_secret = '67dea2ed018072d675f5415ecfaed7d2597555e202d85b3d65ea4e58d2d92ffa'
    nsec = 'nsec1vl029mgpspedva04g90vltkh6fvh240zqtv9k0t9af8935ke9laqsnlfe5'

    assert config.load_secret(hex_secret).public == config.load_secret(nsec).public

    for bad in ('', 'abcd', 'zz' * 32, 'nsec1garbage'):
        with pytest.raises(ConfigurationError):
            config.load_secret(bad)


def test_load_targets(tmp_path):
    keys = [encode_identifier(A), 'npub1garbage', 42, encode_identifier(B), encode_identifier(A)]

    filename = tmp_path / 'keys.json'
    filename.write_text(json.dumps(keys))

    # Undecodable entries are skipped, duplicates are dropped, order is kept.
    assert config.load_targets(str(filename)) == (A, B)


def test_load_targets_errors(tmp_path):

    with pytest.raises(ConfigurationError):
        config.load_targets(str(tmp_path / 'missing.json'))

    filename = tmp_path / 'broken.json'
    filename.write_text('[not json')
    with pytest.raises(ConfigurationError):
        config.load_targets(str(filename))

    filename = tmp_path / 'object.json'
    filename.write_text('{"npub": "x"}')
    with pytest.raises(ConfigurationError):
        config.load_targets(str(filename))


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
