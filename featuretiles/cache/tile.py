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

"""
Cache keys and caching policy for rendered tiles.
"""

import math
from collections import namedtuple

from featuretiles.config import base_config
from featuretiles.image import encode_image, decode_image

import logging
log = logging.getLogger('featuretiles.cache')

TEMP_SUFFIX = '_temp'


def _escape(value):
    # '_' separates the key fields, keep ids with underscores distinct
    return str(value).replace('%', '%25').replace('_', '%5F')


class TileKey(namedtuple('TileKey', ['prefix', 'layer_id', 'style_name', 'srs_code',
                                     'bbox', 'zoom', 'persistent', 'custom'])):
    """
    Identifies one rendered tile. ``key`` is the string under which the
    tile is stored::

        <prefix>_<layerId>_<styleName>_<crsCode>_<minX>-<minY>-<maxX>-<maxY>_<zoom>[_temp]

    ``_`` and ``%`` in the layer, style and CRS fields are stored as
    ``%5F`` and ``%25``. Keys of ids with underscores therefore differ
    from unescaped keys written by other applications sharing the store.

    ``custom`` marks tiles of client specific styles. These keys are
    never read from or written to the store.
    """

    @property
    def key(self):
        parts = [
            self.prefix,
            _escape(self.layer_id),
            _escape(self.style_name),
            _escape(self.srs_code),
            '-'.join(repr(v) for v in self.bbox),
            str(self.zoom),
        ]
        key = '_'.join(parts)
        if not self.persistent:
            key += TEMP_SUFFIX
        return key

    def as_bytes(self):
        return self.key.encode('utf-8')

    def __str__(self):
        return self.key


TileKey.__new__.__defaults__ = (False,)


class TileCache(object):
    """
    Stores encoded tiles in a `CacheStore`.

    Tiles of custom (client specific) styles are never read from or
    written to the store. Errors of the store are logged and handled as
    a cache miss, so a broken store only slows down responses.
    """
    def __init__(self, store, prefix=None, persistent_ttl=None, temporary_ttl=None,
                 custom_prefix=None):
        conf = base_config()
        self.store = store
        self.prefix = prefix or conf.cache.prefix
        self.persistent_ttl = persistent_ttl or conf.cache.persistent_ttl
        self.temporary_ttl = temporary_ttl or conf.cache.temporary_ttl
        self.custom_prefix = custom_prefix or conf.custom_style.prefix

    def build_key(self, layer_id, style_name, srs_code, bbox, zoom, persistent=True,
                  highlight_style_name=None):
        """
        Return the `TileKey` for the request or ``None`` if a field is missing
        or invalid. The key contains `highlight_style_name` in place of
        `style_name` for highlighted tiles. Whether the tile is cacheable
        is decided by the requested `style_name`.
        """
        if layer_id is None or layer_id == '' or not style_name or not srs_code:
            log.error('failed to create cache key, missing layer (%r), style (%r) or srs (%r)',
                      layer_id, style_name, srs_code)
            return None
        if bbox is None or len(bbox) != 4:
            log.error('failed to create cache key, invalid bbox %r', bbox)
            return None
        try:
            bbox = tuple(float(v) for v in bbox)
            zoom = int(zoom)
        except (TypeError, ValueError):
            log.error('failed to create cache key, invalid bbox %r or zoom %r', bbox, zoom)
            return None
        if not all(math.isfinite(v) for v in bbox):
            log.error('failed to create cache key, invalid bbox %r', bbox)
            return None
        return TileKey(self.prefix, str(layer_id), highlight_style_name or style_name,
                       srs_code, bbox, zoom, bool(persistent),
                       self.is_custom_style(style_name))

    def is_custom_style(self, style_name):
        return bool(style_name) and style_name.startswith(self.custom_prefix)

    def _cacheable(self, key):
        return key is not None and not key.custom and not self.is_custom_style(key.style_name)

    def ttl_for(self, key):
        return self.persistent_ttl if key.persistent else self.temporary_ttl

    def get(self, key):
        """
        Return the cached data for `key` or ``None``.
        """
        if not self._cacheable(key):
            return None
        try:
            data = self.store.get(key.as_bytes())
        except Exception as ex:
            log.warning('cache unavailable, could not load %s: %s', key, ex)
            return None
        if data:
            log.debug('cache hit for %s', key)
            return data
        return None

    def set(self, key, data, ttl=None):
        """
        Store `data` for `key`. Returns ``True`` if the data was stored.
        """
        if not self._cacheable(key) or not data:
            return False
        if ttl is None:
            ttl = self.ttl_for(key)
        try:
            self.store.set(key.as_bytes(), data, ttl)
        except Exception as ex:
            log.warning('cache unavailable, could not store %s: %s', key, ex)
            return False
        return True

    def load_image(self, key):
        """
        Return the cached tile for `key` as image or ``None``.
        """
        data = self.get(key)
        if data is None:
            return None
        return decode_image(data)

    def store_image(self, key, img, format=None):
        """
        Encode `img` and store it for `key`. Returns the encoded image or
        ``None`` if encoding failed.
        """
        data = encode_image(img, format=format)
        if data is not None:
            self.set(key, data)
        return data
