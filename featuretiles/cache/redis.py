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

from featuretiles.cache.base import CacheStore, CacheBackendError

try:
    import redis  # type: ignore
except ImportError:
    redis = None  # type: ignore


import logging
log = logging.getLogger(__name__)


class RedisCacheStore(CacheStore):
    def __init__(
            self, host, port, db=0, username=None, password=None, ssl_certfile=None,
            ssl_keyfile=None, ssl_ca_certs=None, client=None):
        if client is not None:
            self.r = client
            return

        if redis is None:
            raise ImportError("Redis backend requires 'redis' package.")

        # Enable SSL only if certificate and key are provided (CA certificates are not mandatory, but if provided use
        # them)
        ssl_enabled = all([ssl_certfile, ssl_keyfile])
        self.r = redis.StrictRedis(
            host=host,
            port=port,
            username=username,
            password=password,
            db=db,
            ssl_certfile=ssl_certfile if ssl_enabled else None,
            ssl_keyfile=ssl_keyfile if ssl_enabled else None,
            ssl_ca_certs=ssl_ca_certs if ssl_enabled and ssl_ca_certs else None,
            ssl=ssl_enabled
        )

    def get(self, key):
        try:
            log.debug('get_key, key: %s', key)
            return self.r.get(key)
        except Exception as e:
            raise CacheBackendError('REDIS:get_key error %s' % e) from e

    def set(self, key, value, ttl):
        try:
            log.debug('store_key, key: %s', key)
            if ttl:
                self.r.setex(key, int(ttl), value)
            else:
                self.r.set(key, value)
        except Exception as e:
            raise CacheBackendError('REDIS:store_key error %s' % e) from e
