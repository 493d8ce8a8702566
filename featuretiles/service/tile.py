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
Rendered tiles of feature layers.
"""
from featuretiles.config import base_config
from featuretiles.exception import EncodingFailure, InvalidInput, RequestError
from featuretiles.image import image_to_base64
from featuretiles.image.render import ViewportSpec
from featuretiles.response import Response
from featuretiles.service.base import Server

import logging
log = logging.getLogger('featuretiles.service.tile')


def _bool_param(value, default=True):
    if value is None:
        return default
    return value.lower() not in ('false', '0', 'no', 'off')


class TileService(Server):
    """
    Renders tiles of a layer and caches the encoded images.

    Request parameters: ``layer``, ``bbox``, ``zoom``, ``srs``, ``style``,
    ``highlight``, ``client``, ``user``, ``width``, ``height``,
    ``persistent`` and ``format`` (``png`` or ``base64``).
    """
    names = ('tile',)

    def __init__(self, layers, tile_cache, resolver, gateway, rasterizer):
        Server.__init__(self, layers)
        self.tile_cache = tile_cache
        self.resolver = resolver
        self.gateway = gateway
        self.rasterizer = rasterizer

    def handle_request(self, req):
        layer = self.layer(req)
        args = req.args
        out_format = args.get('format', 'png').lower()
        if out_format not in ('png', 'base64'):
            raise InvalidInput('unsupported format %s' % out_format)

        srs = args.get('srs') or layer.srs or base_config().srs.default_srs
        query = self.gateway.validate_bbox(self.required_param(req, 'bbox'), srs)
        zoom = args.get('zoom', type_func=int)
        if zoom is None:
            raise InvalidInput('missing or invalid parameter zoom')
        default_width, default_height = base_config().image.tile_size
        width = args.get('width', default_width, type_func=int)
        height = args.get('height', default_height, type_func=int)

        data, custom = self.render_tile(
            layer,
            query,
            zoom=zoom,
            size=(width, height),
            style_name=args.get('style') or 'default',
            highlight_style_name=args.get('highlight') or None,
            client_id=args.get('client') or None,
            user_id=args.get('user') or None,
            persistent=_bool_param(args.get('persistent')),
        )

        if out_format == 'base64':
            resp = Response(image_to_base64(data), mimetype='text/plain')
        else:
            resp = Response(data, content_type='image/png')
        if custom:
            resp.cache_headers(no_cache=True)
        return resp

    def render_tile(self, layer, query, zoom, size, style_name='default',
                    highlight_style_name=None, client_id=None, user_id=None,
                    persistent=True):
        """
        Return the encoded tile and whether it was rendered with a
        client specific style.

        :raises RequestError: if the tile could not be rendered
        """
        max_width, max_height = base_config().image.max_size
        if size[0] > max_width or size[1] > max_height:
            raise InvalidInput('tile size %dx%d exceeds maximum of %dx%d'
                               % (size[0], size[1], max_width, max_height))
        try:
            viewport = ViewportSpec(query.srs, size[0], size[1], query.bbox)
        except ValueError as ex:
            raise InvalidInput('invalid tile request: %s' % ex)

        style = self.resolver.resolve(layer, style_name, highlight_style_name, client_id)
        if style is None:
            raise RequestError('failed to render tile: no style %s for layer %s'
                               % (style_name, layer.id), status=500)

        key = self.tile_cache.build_key(layer.id, style_name, query.srs.srs_code,
                                        query.bbox, zoom, persistent=persistent,
                                        highlight_style_name=highlight_style_name)
        custom = self.tile_cache.is_custom_style(style_name)
        data = self.tile_cache.get(key)
        if data is not None:
            return data, custom

        features = self.gateway.fetch_features(layer.id, user_id, layer, query, query.srs)
        img = self.rasterizer.draw(viewport, features, style)
        if img is None:
            raise RequestError('failed to render tile for layer %s' % layer.id, status=500)
        try:
            data = self.tile_cache.store_image(key, img)
        finally:
            img.close()
        if data is None:
            raise EncodingFailure('failed to encode tile')
        return data, custom
