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

from PIL import Image

from featuretiles.cache.base import CacheBackendError, CacheStore, MemoryCacheStore
from featuretiles.cache.tile import TileCache, TileKey
from featuretiles.test.image import is_png


class FakeTimer(object):
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FailingStore(CacheStore):
    def __init__(self):
        self.calls = 0

    def get(self, key):
        self.calls += 1
        raise CacheBackendError('connection refused')

    def set(self, key, value, ttl):
        self.calls += 1
        raise CacheBackendError('connection refused')


class TestMemoryCacheStore(object):

    def setup_method(self):
        self.timer = FakeTimer()
        self.store = MemoryCacheStore(timer=self.timer)

    def test_missing(self):
        assert self.store.get(b'foo') is None

    def test_set_get(self):
        self.store.set(b'foo', b'bar', 10)
        assert self.store.get(b'foo') == b'bar'
        assert len(self.store) == 1

    def test_replace(self):
        self.store.set(b'foo', b'bar', 10)
        self.store.set(b'foo', b'baz', 10)
        assert self.store.get(b'foo') == b'baz'

    def test_expire(self):
        self.store.set(b'foo', b'bar', 10)
        self.timer.now += 9
        assert self.store.get(b'foo') == b'bar'
        self.timer.now += 1
        assert self.store.get(b'foo') is None
        assert len(self.store) == 0

    def test_no_ttl(self):
        self.store.set(b'foo', b'bar', 0)
        self.timer.now += 10 ** 9
        assert self.store.get(b'foo') == b'bar'

    def test_expired_entries_purged_on_set(self):
        for i in range(100):
            self.store.set(b'tile%d' % i, b'data', 10)
        assert len(self.store) == 100
        self.timer.now += 10
        self.store.set(b'new', b'data', 10)
        assert len(self.store) == 1
        assert self.store.get(b'new') == b'data'

    def test_max_entries(self):
        store = MemoryCacheStore(max_entries=10, timer=self.timer)
        for i in range(1000):
            store.set(b'tile%d' % i, b'data', 3600)
            assert len(store) <= 10
        assert len(store) == 10
        assert store.get(b'tile0') is None
        assert store.get(b'tile999') == b'data'

    def test_max_entries_replace(self):
        store = MemoryCacheStore(max_entries=2, timer=self.timer)
        store.set(b'a', b'1', 10)
        store.set(b'b', b'2', 10)
        store.set(b'b', b'3', 10)
        assert store.get(b'a') == b'1'
        assert store.get(b'b') == b'3'


class TestTileKey(object):

    def setup_method(self):
        self.cache = TileCache(MemoryCacheStore(), prefix='WFSImage', persistent_ttl=86400,
                               temporary_ttl=3600, custom_prefix='oskari_custom')

    def test_persistent_key(self):
        key = self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5)
        assert key.key == 'WFSImage_1_default_EPSG:3857_1.0-2.0-3.0-4.0_5'
        assert key.as_bytes() == b'WFSImage_1_default_EPSG:3857_1.0-2.0-3.0-4.0_5'
        assert str(key) == key.key

    def test_temporary_key(self):
        key = self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5,
                                   persistent=False)
        assert key.key == 'WFSImage_1_default_EPSG:3857_1.0-2.0-3.0-4.0_5_temp'

    def test_deterministic(self):
        key1 = self.cache.build_key(7, 'night', 'EPSG:3067', (370000.5, 6670000, 380000, 6680000.25), 9)
        key2 = self.cache.build_key('7', 'night', 'EPSG:3067', ('370000.5', '6670000', '380000', '6680000.25'), '9')
        assert key1 == key2
        assert key1.key == key2.key
        assert key1.key == 'WFSImage_7_night_EPSG:3067_370000.5-6670000.0-380000.0-6680000.25_9'

    def test_float_precision_kept(self):
        key1 = self.cache.build_key('1', 'default', 'EPSG:4326', (0.1, 0, 1, 1), 5)
        key2 = self.cache.build_key('1', 'default', 'EPSG:4326', (0.1000000001, 0, 1, 1), 5)
        assert key1.key != key2.key

    @pytest.mark.parametrize('a,b', [
        (('a_b', 'c'), ('a', 'b_c')),
        (('1', 'default'), ('1', 'highlight')),
        (('1', 'a%5Fb'), ('1', 'a_b')),
    ])
    def test_distinct_fields_distinct_keys(self, a, b):
        key1 = self.cache.build_key(a[0], a[1], 'EPSG:3857', (1, 2, 3, 4), 5)
        key2 = self.cache.build_key(b[0], b[1], 'EPSG:3857', (1, 2, 3, 4), 5)
        assert key1.key != key2.key

    def test_zoom_and_persistence_distinct(self):
        keys = set([
            self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5).key,
            self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 6).key,
            self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5, persistent=False).key,
            self.cache.build_key('1', 'default', 'EPSG:4326', (1, 2, 3, 4), 5).key,
        ])
        assert len(keys) == 4

    @pytest.mark.parametrize('layer_id,style,srs,bbox,zoom', [
        (None, 'default', 'EPSG:3857', (1, 2, 3, 4), 5),
        ('', 'default', 'EPSG:3857', (1, 2, 3, 4), 5),
        ('1', None, 'EPSG:3857', (1, 2, 3, 4), 5),
        ('1', 'default', None, (1, 2, 3, 4), 5),
        ('1', 'default', 'EPSG:3857', None, 5),
        ('1', 'default', 'EPSG:3857', (1, 2, 3), 5),
        ('1', 'default', 'EPSG:3857', (1, 2, 3, 'x'), 5),
        ('1', 'default', 'EPSG:3857', (1, 2, 3, float('nan')), 5),
        ('1', 'default', 'EPSG:3857', (1, 2, 3, 4), None),
        ('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 'z'),
    ])
    def test_invalid_fields(self, layer_id, style, srs, bbox, zoom):
        assert self.cache.build_key(layer_id, style, srs, bbox, zoom) is None


class TestTileCache(object):

    def setup_method(self):
        self.store = MemoryCacheStore()
        self.cache = TileCache(self.store, prefix='WFSImage', persistent_ttl=86400,
                               temporary_ttl=3600, custom_prefix='oskari_custom')
        self.key = self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5)

    def test_miss(self):
        assert self.cache.get(self.key) is None

    def test_set_get(self):
        assert self.cache.set(self.key, b'tile')
        assert self.cache.get(self.key) == b'tile'
        assert self.store.get(self.key.as_bytes()) == b'tile'

    def test_none_key(self):
        assert self.cache.get(None) is None
        assert not self.cache.set(None, b'tile')
        assert len(self.store) == 0

    def test_ttl(self):
        temp_key = self.key._replace(persistent=False)
        assert self.cache.ttl_for(self.key) == 86400
        assert self.cache.ttl_for(temp_key) == 3600

    def test_custom_style_bypass(self):
        key = self.cache.build_key('1', 'oskari_custom', 'EPSG:3857', (1, 2, 3, 4), 5)
        assert self.cache.is_custom_style('oskari_custom')
        assert not self.cache.is_custom_style('default')
        assert not self.cache.set(key, b'tile')
        assert len(self.store) == 0
        self.store.set(key.as_bytes(), b'tile', 10)
        assert self.cache.get(key) is None

    def test_custom_style_with_highlight_bypass(self):
        key = self.cache.build_key('1', 'oskari_custom', 'EPSG:3857', (1, 2, 3, 4), 5,
                                   highlight_style_name='selected')
        assert key.style_name == 'selected'
        assert key.custom
        shared = self.cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5,
                                      highlight_style_name='selected')
        assert not shared.custom
        assert shared.key == key.key
        assert self.cache.set(shared, b'shared tile')
        assert self.cache.get(key) is None
        assert not self.cache.set(key, b'custom tile')
        assert self.cache.get(shared) == b'shared tile'

    def test_store_errors_are_misses(self):
        store = FailingStore()
        cache = TileCache(store, prefix='WFSImage', persistent_ttl=1, temporary_ttl=1,
                          custom_prefix='oskari_custom')
        assert cache.get(self.key) is None
        assert not cache.set(self.key, b'tile')
        assert store.calls == 2

    def test_store_and_load_image(self):
        img = Image.new('RGBA', (16, 16), (255, 0, 0, 255))
        data = self.cache.store_image(self.key, img)
        assert is_png(data)
        loaded = self.cache.load_image(self.key)
        assert loaded.size == (16, 16)
        assert loaded.getpixel((0, 0)) == (255, 0, 0, 255)

    def test_store_image_custom_style(self):
        key = self.cache.build_key('1', 'oskari_custom_1', 'EPSG:3857', (1, 2, 3, 4), 5)
        img = Image.new('RGBA', (16, 16))
        assert is_png(self.cache.store_image(key, img))
        assert len(self.store) == 0
        assert self.cache.load_image(key) is None


def test_tile_key_namedtuple():
    key = TileKey('P', 'l', 's', 'EPSG:4326', (0.5, 1.0, 2.0, 3.0), 0, True)
    assert key.key == 'P_l_s_EPSG:4326_0.5-1.0-2.0-3.0_0'
    assert not key.custom


def test_tile_key_escapes_underscores():
    key = TileKey('P', 'my_layer', 's', 'EPSG:4326', (0.5, 1.0, 2.0, 3.0), 0, True)
    assert key.key == 'P_my%5Flayer_s_EPSG:4326_0.5-1.0-2.0-3.0_0'
