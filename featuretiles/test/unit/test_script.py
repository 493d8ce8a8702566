# This file is part of the FeatureTiles project.
# Copyright (C) 2024 FeatureTiles developers
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import json

import pytest
import yaml

from featuretiles.config.loader import load_configuration
from featuretiles.script.util import (
    create_command,
    features_command,
    parse_bind_address,
    parse_size,
    render_tile_command,
)
from featuretiles.test.image import img_from_buf, is_png
from featuretiles.wsgiapp import make_wsgi_app


FEATURES = {
    'type': 'FeatureCollection',
    'features': [
        {'type': 'Feature', 'id': 1, 'properties': {},
         'geometry': {'type': 'Point', 'coordinates': [385000, 6675000]}},
    ],
}


@pytest.fixture
def config_file(tmpdir):
    fname = tmpdir.join('featuretiles.yaml')
    fname.write(yaml.safe_dump({
        'globals': {'srs': {'default_srs': 'EPSG:3067'}},
        'layers': [{'id': 1, 'source': {'type': 'geojson', 'data': FEATURES,
                                        'srs': 'EPSG:3067'}}],
    }))
    return fname.strpath


class TestRenderTileCommand(object):

    def test_render(self, config_file, tmpdir):
        out = tmpdir.join('tile.png')
        render_tile_command(['featuretiles-util', '-f', config_file, '-l', '1', '-q',
                             '--bbox', '370000,6660000,400000,6690000', '--size', '128x64',
                             out.strpath])
        data = out.read_binary()
        assert is_png(data)
        assert img_from_buf(data).size == (128, 64)

    def test_missing_output(self, config_file):
        with pytest.raises(SystemExit) as exc_info:
            render_tile_command(['featuretiles-util', '-f', config_file, '-l', '1',
                                 '--bbox', '370000,6660000,400000,6690000'])
        assert exc_info.value.code == 1

    def test_unknown_layer(self, config_file, tmpdir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            render_tile_command(['featuretiles-util', '-f', config_file, '-l', '2', '-q',
                                 '--bbox', '370000,6660000,400000,6690000',
                                 tmpdir.join('tile.png').strpath])
        assert exc_info.value.code == 2
        assert 'unknown layer 2' in capsys.readouterr().err

    def test_invalid_bbox(self, config_file, tmpdir, capsys):
        with pytest.raises(SystemExit) as exc_info:
            render_tile_command(['featuretiles-util', '-f', config_file, '-l', '1', '-q',
                                 '--bbox', '1,2,3', tmpdir.join('tile.png').strpath])
        assert exc_info.value.code == 2
        assert 'Invalid bbox' in capsys.readouterr().err


class TestFeaturesCommand(object):

    def test_features(self, config_file, capsys):
        features_command(['featuretiles-util', '-f', config_file, '-l', '1', '-q',
                          '--bbox', '370000,6660000,400000,6690000'])
        doc = json.loads(capsys.readouterr().out)
        assert doc['features'][0]['geometry']['coordinates'] == [385000.0, 6675000.0]

    def test_missing_args(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            features_command(['featuretiles-util', '-l', '1'])
        assert exc_info.value.code == 1


def test_parse_size():
    assert parse_size('256x256') == (256, 256)
    assert parse_size('512X128') == (512, 128)
    with pytest.raises(ValueError):
        parse_size('foo')


def test_parse_bind_address():
    assert parse_bind_address('0.0.0.0:8081') == ('0.0.0.0', 8081)
    assert parse_bind_address('80') == ('localhost', 80)


class TestCreateCommand(object):

    def test_base_config(self, tmpdir):
        with pytest.raises(SystemExit) as exc_info:
            create_command(['featuretiles-util', '-t', 'base-config', tmpdir.join('etc').strpath])
        assert exc_info.value.code == 0
        conf = load_configuration(tmpdir.join('etc', 'featuretiles.yaml').strpath,
                                  ignore_warnings=False)
        assert list(conf.layers) == ['1']

    def test_existing_file(self, tmpdir):
        tmpdir.join('log.ini').write('')
        with pytest.raises(SystemExit) as exc_info:
            create_command(['featuretiles-util', '-t', 'log-ini', tmpdir.join('log.ini').strpath])
        assert exc_info.value.code == 1
        with pytest.raises(SystemExit) as exc_info:
            create_command(['featuretiles-util', '-t', 'log-ini', '--force',
                            tmpdir.join('log.ini').strpath])
        assert exc_info.value.code == 0
        assert '[loggers]' in tmpdir.join('log.ini').read()

    def test_wsgi_app(self, config_file, tmpdir):
        with pytest.raises(SystemExit) as exc_info:
            create_command(['featuretiles-util', '-t', 'wsgi-app', '-f', config_file,
                            tmpdir.join('app').strpath])
        assert exc_info.value.code == 0
        content = tmpdir.join('app.py').read()
        assert "make_wsgi_app(r'%s', log_conf=log_conf)" % config_file in content

    def test_wsgi_app_requires_conf(self, tmpdir):
        with pytest.raises(SystemExit) as exc_info:
            create_command(['featuretiles-util', '-t', 'wsgi-app', tmpdir.join('app').strpath])
        assert exc_info.value.code == 1

    def test_unknown_template(self, tmpdir):
        with pytest.raises(SystemExit) as exc_info:
            create_command(['featuretiles-util', '-t', 'foo', tmpdir.strpath])
        assert exc_info.value.code == 1


def test_init_logging_system(config_file, tmpdir):
    import logging
    with pytest.raises(SystemExit):
        create_command(['featuretiles-util', '-t', 'log-ini', tmpdir.join('log.ini').strpath])
    root = logging.getLogger()
    handlers = list(root.handlers)
    requests_log = logging.getLogger('featuretiles.source.request')
    requests_state = (list(requests_log.handlers), requests_log.propagate, requests_log.level)
    level = root.level
    disabled = dict((name, l.disabled) for name, l in logging.Logger.manager.loggerDict.items()
                    if isinstance(l, logging.Logger))
    try:
        make_wsgi_app(config_file, log_conf='log.ini')
        assert any(getattr(h, 'baseFilename', '').endswith('featuretiles.log')
                   for h in root.handlers)
    finally:
        for h in root.handlers:
            if h not in handlers:
                h.close()
        root.handlers[:] = handlers
        root.setLevel(level)
        for h in requests_log.handlers:
            if h not in requests_state[0]:
                h.close()
        requests_log.handlers[:], requests_log.propagate, requests_log.level = requests_state
        for name, value in disabled.items():
            logging.getLogger(name).disabled = value
