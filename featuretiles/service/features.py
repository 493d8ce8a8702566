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
Features of a layer as GeoJSON.
"""
from featuretiles.config import base_config
from featuretiles.exception import EncodingFailure
from featuretiles.precision import decimals_for
from featuretiles.response import Response
from featuretiles.service.base import Server

import logging
log = logging.getLogger('featuretiles.service.features')


class FeatureService(Server):
    """
    Returns the features of a layer within a bbox. Request parameters:
    ``layer``, ``bbox``, ``srs`` and ``user``.
    """
    names = ('features',)

    def __init__(self, layers, gateway):
        Server.__init__(self, layers)
        self.gateway = gateway

    def handle_request(self, req):
        layer = self.layer(req)
        srs = req.args.get('srs') or base_config().srs.default_srs
        query = self.gateway.validate_bbox(self.required_param(req, 'bbox'), srs)
        user_id = req.args.get('user') or None
        data = self.features(layer, query, user_id=user_id)
        return Response(data, content_type=base_config().features.content_type)

    def features(self, layer, query, user_id=None, content_processor=None):
        """
        Return the features of `query` as GeoJSON document (bytes).
        """
        features = self.gateway.fetch_features(layer.id, user_id, layer, query, query.srs,
                                               content_processor=content_processor)
        if features.is_empty():
            log.debug('no features for layer %s', layer.id)
        try:
            return features.to_geojson(decimals_for(query.srs))
        except (TypeError, ValueError) as ex:
            raise EncodingFailure('Failed to write GeoJSON') from ex
