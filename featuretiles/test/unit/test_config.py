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

import pytest
import yaml

from featuretiles.cache.base import MemoryCacheStore
from featuretiles.cache.redis import RedisCacheStore
from featuretiles.config import base_config, local_base_config
from featuretiles.config.config import load_default_config, Options
from featuretiles.config.loader import (
    ConfigurationError,
    load_configuration,
    merge_dict,
    ProxyConfiguration,
)
from featuretiles.config.validator import validate
from featuretiles.service.features import FeatureService
from featuretiles.service.tile import TileService
from featuretiles.source.geojson import GeoJSONSource
from featuretiles.source.http import HTTPFeatureSource


SLD = """<StyledLayerDescriptor><UserStyle><FeatureTypeStyle><Rule>
<LineSymbolizer><Stroke><CssParameter name="stroke">#ff0000</CssParameter></Stroke></LineSymbolizer>
</Rule></FeatureTypeStyle></UserStyle></StyledLayerDescriptor>"""

GEOJSON = {'type': 'FeatureCollection', 'features': []}


def geojson_layer(id, **kw):
    layer = {'id': id, 'source': {'type': 'geojson', 'data': GEOJSON}}
    layer.update(kw)
    return layer


class TestOptions(object):

    def test_defaults(self):
        conf = load_default_config()
        assert conf.cache.prefix == 'WFSImage'
        assert conf.cache.persistent_ttl == 86400
        assert conf.cache.temporary_ttl == 3600
        assert conf.custom_style.prefix == 'oskari_custom'
        assert conf.image.tile_size == (256, 256)

    def test_update(self):
        conf = Options(cache=Options(prefix='a', type='memory'))
        conf.update({'cache': {'prefix': 'b'}})
        assert conf.cache.prefix == 'b'
        assert conf.cache.type == 'memory'

    def test_local_base_config(self):
        conf = load_default_config()
        conf.cache.prefix = 'Other'
        with local_base_config(conf):
            assert base_config().cache.prefix == 'Other'
        assert base_config() is not conf


class TestValidator(object):

    def test_valid(self):
        conf = {
            'globals': {'cache': {'type': 'redis', 'host': 'redis', 'port': 6379}},
            'services': {'tile': None, 'features': {}},
            'layers': [
                geojson_layer(1, styles={'default': {'sld': SLD}}),
                {'id': 'remote', 'source': {'type': 'http', 'url': 'http://localhost/items',
                                            'protocol': 'wfs'}},
            ],
        }
        assert validate(conf) == []

    def test_unknown_keys(self):
        errors = validate({'globals': {'cache': {'foo': 1}}})
        assert len(errors) == 1
        assert 'foo' in errors[0]

    def test_missing_source(self):
        errors = validate({'layers': [{'id': 1}]})
        assert errors
        assert "'source' is a required property" in errors[0]

    def test_invalid_source(self):
        errors = validate({'layers': [{'id': 1, 'source': {'type': 'geojson'}}]})
        assert errors

    def test_duplicate_layer_ids(self):
        errors = validate({'layers': [geojson_layer(1), geojson_layer('1')]})
        assert errors == ['Layer 1 is configured more than once']


class TestProxyConfiguration(object):

    def test_layers(self):
        conf = ProxyConfiguration({
            'layers': [
                geojson_layer(1, title='One', styles={'night': {'sld': SLD}},
                              selection_style={'sld': SLD}, geometry_property='geom'),
                {'id': 'remote', 'source': {'type': 'http', 'url': 'http://localhost/items'}},
            ],
        })
        layer = conf.layers['1']
        assert layer.title == 'One'
        assert layer.geometry_property == 'geom'
        assert layer.styles['night'].name == 'night'
        assert layer.selection_style.name == 'selection'
        assert isinstance(layer.source, GeoJSONSource)
        assert isinstance(conf.layers['remote'].source, HTTPFeatureSource)
        assert conf.layers['remote'].source.protocol == 'ogcapi'

    def test_services(self):
        conf = ProxyConfiguration({'layers': [geojson_layer(1)]})
        services = conf.configured_services()
        assert [type(s) for s in services] == [TileService, FeatureService]
        conf = ProxyConfiguration({'services': {'features': None}})
        assert [type(s) for s in conf.configured_services()] == [FeatureService]

    def test_memory_cache(self):
        conf = ProxyConfiguration({'globals': {'cache': {'prefix': 'Tiles', 'temporary_ttl': 60}}})
        assert isinstance(conf.cache_store, MemoryCacheStore)
        assert conf.tile_cache.prefix == 'Tiles'
        assert conf.tile_cache.temporary_ttl == 60
        assert conf.tile_cache.persistent_ttl == 86400
        assert conf.custom_style_store.store is conf.cache_store

    def test_redis_cache(self):
        conf = ProxyConfiguration({'globals': {'cache': {'type': 'redis', 'host': 'localhost'}}})
        assert isinstance(conf.cache_store, RedisCacheStore)

    def test_globals(self):
        conf = ProxyConfiguration({'globals': {'image': {'tile_size': [512, 512]},
                                               'custom_style': {'prefix': 'mycustom'}}})
        assert conf.base_config.image.tile_size == (512, 512)
        assert conf.resolver.custom_prefix == 'mycustom'
        # defaults are kept
        assert conf.base_config.cache.prefix == 'WFSImage'

    def test_style_file(self, tmpdir):
        tmpdir.join('roads.sld').write(SLD)
        conf = ProxyConfiguration({'layers': [geojson_layer(1, styles={'default': {'file': 'roads.sld'}})]},
                                  conf_base_dir=tmpdir.strpath)
        assert conf.layers['1'].styles['default'].rules

    @pytest.mark.parametrize('layer', [
        geojson_layer(1, styles={'default': {'sld': '<foo'}}),
        geojson_layer(1, styles={'default': {'file': 'missing.sld'}}),
        {'id': 1, 'source': {'type': 'foo'}},
        {'id': 1, 'source': {'type': 'geojson'}},
    ])
    def test_invalid_layer(self, layer):
        with pytest.raises(ConfigurationError):
            ProxyConfiguration({'layers': [layer]})

    def test_memory_cache_limits(self):
        conf = ProxyConfiguration({'globals': {
            'cache': {'max_entries': 5},
            'image': {'max_size': [512, 512]},
        }})
        assert isinstance(conf.cache_store, MemoryCacheStore)
        assert conf.cache_store.max_entries == 5
        assert conf.base_config.cache.persistent_ttl == 86400
        assert tuple(conf.base_config.image.max_size) == (512, 512)

    def test_default_memory_cache_limit(self):
        conf = ProxyConfiguration({})
        assert conf.cache_store.max_entries == 10000

    def test_unknown_cache(self):
        with pytest.raises(ConfigurationError):
            ProxyConfiguration({'globals': {'cache': {'type': 'foo'}}})


class TestLoadConfiguration(object):

    def test_load(self, tmpdir):
        fname = tmpdir.join('featuretiles.yaml')
        fname.write(yaml.safe_dump({'layers': [geojson_layer(1)]}))
        conf = load_configuration(fname.strpath)
        assert list(conf.layers) == ['1']
        assert conf.base_config.conf_base_dir == tmpdir.strpath

    def test_base(self, tmpdir):
        tmpdir.join('base.yaml').write(yaml.safe_dump({
            'globals': {'cache': {'prefix': 'Base', 'temporary_ttl': 10}},
            'layers': [geojson_layer(1, title='base'), geojson_layer(2)],
        }))
        fname = tmpdir.join('featuretiles.yaml')
        fname.write(yaml.safe_dump({
            'base': 'base.yaml',
            'globals': {'cache': {'prefix': 'Main'}},
            'layers': [geojson_layer(1, title='main')],
        }))
        conf = load_configuration(fname.strpath)
        assert conf.base_config.cache.prefix == 'Main'
        assert conf.base_config.cache.temporary_ttl == 10
        assert sorted(conf.layers) == ['1', '2']
        assert conf.layers['1'].title == 'main'

    def test_invalid_yaml(self, tmpdir):
        fname = tmpdir.join('featuretiles.yaml')
        fname.write('layers: [foo')
        with pytest.raises(ConfigurationError):
            load_configuration(fname.strpath)

    def test_missing_file(self, tmpdir):
        with pytest.raises(ConfigurationError):
            load_configuration(tmpdir.join('missing.yaml').strpath)

    def test_strict(self, tmpdir):
        fname = tmpdir.join('featuretiles.yaml')
        fname.write(yaml.safe_dump({'foo': 1}))
        load_configuration(fname.strpath)
        with pytest.raises(ConfigurationError):
            load_configuration(fname.strpath, ignore_warnings=False)


def test_merge_dict():
    base = {'a': {'b': 1, 'c': [1]}, 'd': 1}
    conf = {'a': {'b': 2, 'c': [2]}, 'e': 3}
    assert merge_dict(conf, base) == {'a': {'b': 2, 'c': [1, 2]}, 'd': 1, 'e': 3}
