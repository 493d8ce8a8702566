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
Validation of feature queries and retrieval of features.
"""

from featuretiles.exception import InvalidInput, OutOfExtent, RetrievalFailure
from featuretiles.features import FeatureCollection
from featuretiles.source import SourceError
from featuretiles.srs import SRS, SRSError
from featuretiles.util.bbox import bbox_tuple

import logging
log = logging.getLogger('featuretiles.query')


class FeatureQuery(object):
    """
    Internal query for the features of a bbox in a specific SRS.
    """
    def __init__(self, bbox, srs):
        self.bbox = bbox
        self.srs = srs

    def __repr__(self):
        return 'FeatureQuery(bbox=%r, srs=%r)' % (self.bbox, self.srs)


class FeatureQueryGateway(object):
    def validate_bbox(self, bbox, srs):
        """
        Parse the comma separated `bbox` and check it against the valid
        extent of `srs`.

        :raises InvalidInput: if bbox is not four numbers or srs is unknown
        :raises OutOfExtent: if bbox does not intersect the extent of srs
        """
        try:
            bbox = bbox_tuple(bbox)
        except (TypeError, ValueError):
            raise InvalidInput('Invalid bbox')
        try:
            srs = SRS(srs)
        except SRSError:
            raise InvalidInput('Invalid srs')
        if not srs.is_within(bbox):
            raise OutOfExtent('bbox not within CRS extent')
        return FeatureQuery(bbox, srs)

    def fetch_features(self, layer_id, user_id, layer, bbox, srs, content_processor=None):
        """
        Return the features of `layer` for `bbox`.

        :raises RetrievalFailure: for all errors of the feature source, the
            original exception is available as ``__cause__``
        """
        query = bbox if isinstance(bbox, FeatureQuery) else FeatureQuery(bbox, SRS(srs))
        if layer is None or layer.source is None:
            raise RetrievalFailure('Failed to retrieve features') from SourceError(
                'no feature source for layer %s' % layer_id)
        try:
            features = layer.source.get_features(query, layer=layer, user_id=user_id,
                                                 content_processor=content_processor)
            if not isinstance(features, FeatureCollection):
                raise SourceError('source returned %r, not a feature collection'
                                  % type(features).__name__)
        except SourceError as ex:
            raise RetrievalFailure('Failed to retrieve features') from ex
        except Exception as ex:
            log.debug('unexpected error of source for layer %s', layer_id, exc_info=True)
            raise RetrievalFailure('Failed to retrieve features') from ex
        if features.is_empty():
            log.debug('no features for layer %s in %r', layer_id, query)
        return features
