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

import os
import time

import pytest

try:
    import redis
except ImportError:
    redis = None

from featuretiles.cache.base import CacheBackendError
from featuretiles.cache.redis import RedisCacheStore
from featuretiles.cache.tile import TileCache


class FakeRedis(object):
    def __init__(self, fail=False):
        self.data = {}
        self.ttls = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise ConnectionError('Connection refused')

    def get(self, key):
        self._check()
        return self.data.get(key)

    def set(self, key, value):
        self._check()
        self.data[key] = value
        self.ttls.pop(key, None)

    def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl


class TestRedisCacheStoreClient(object):

    def setup_method(self):
        self.client = FakeRedis()
        self.store = RedisCacheStore(None, None, client=self.client)

    def test_set_with_ttl(self):
        self.store.set(b'foo', b'bar', 3600.0)
        assert self.client.data[b'foo'] == b'bar'
        assert self.client.ttls[b'foo'] == 3600
        assert self.store.get(b'foo') == b'bar'

    def test_set_without_ttl(self):
        self.store.set(b'foo', b'bar', None)
        assert b'foo' not in self.client.ttls
        assert self.store.get(b'foo') == b'bar'

    def test_errors(self):
        self.client.fail = True
        with pytest.raises(CacheBackendError):
            self.store.get(b'foo')
        with pytest.raises(CacheBackendError) as exc_info:
            self.store.set(b'foo', b'bar', 10)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_tile_cache_on_failing_redis(self):
        self.client.fail = True
        cache = TileCache(self.store, prefix='WFSImage', persistent_ttl=10, temporary_ttl=5,
                          custom_prefix='oskari_custom')
        key = cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5)
        assert cache.get(key) is None
        assert not cache.set(key, b'tile')


@pytest.mark.skipif(not redis or not os.environ.get('FEATURETILES_TEST_REDIS'),
                    reason="redis package and FEATURETILES_TEST_REDIS env required")
class TestRedisCacheStore(object):

    def setup_method(self):
        redis_host = os.environ['FEATURETILES_TEST_REDIS']
        self.host, self.port = redis_host.split(':')
        self.store = RedisCacheStore(self.host, int(self.port), db=1)

    def teardown_method(self):
        for k in self.store.r.keys('featuretiles-test-*'):
            self.store.r.delete(k)

    def test_set_get(self):
        self.store.set(b'featuretiles-test-foo', b'bar', 10)
        assert self.store.get(b'featuretiles-test-foo') == b'bar'

    def test_missing(self):
        assert self.store.get(b'featuretiles-test-missing') is None

    def test_expire(self):
        self.store.set(b'featuretiles-test-foo', b'bar', 1)
        time.sleep(1.5)
        assert self.store.get(b'featuretiles-test-foo') is None

    def test_tile_cache(self):
        cache = TileCache(self.store, prefix='featuretiles-test', persistent_ttl=10,
                          temporary_ttl=5, custom_prefix='oskari_custom')
        key = cache.build_key('1', 'default', 'EPSG:3857', (1, 2, 3, 4), 5)
        assert cache.set(key, b'tile')
        assert cache.get(key) == b'tile'
