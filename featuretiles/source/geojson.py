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
Features from GeoJSON files or inline GeoJSON documents.
"""
import json
import threading

from featuretiles.config import abspath
from featuretiles.features import FeatureCollection
from featuretiles.source import FeatureSource, SourceError
from featuretiles.srs import SRSError

import logging
log = logging.getLogger('featuretiles.source.geojson')


class GeoJSONSource(FeatureSource):
    """
    Serves features of a GeoJSON document. The document is read once,
    features are reprojected and filtered for each query.

    :param filename: GeoJSON file, relative to the configuration directory
    :param data: already parsed GeoJSON document
    :param srs: SRS of the coordinates in the document
    """
    def __init__(self, filename=None, data=None, srs='EPSG:4326'):
        if filename is None and data is None:
            raise ValueError('GeoJSONSource requires filename or data')
        self.filename = filename
        self.srs = srs
        self._doc = data
        self._lock = threading.Lock()

    def _document(self):
        with self._lock:
            if self._doc is None:
                fname = abspath(self.filename)
                log.debug('loading GeoJSON from %s', fname)
                try:
                    with open(fname, 'rb') as f:
                        self._doc = json.load(f)
                except (OSError, ValueError) as ex:
                    raise SourceError('unable to load %s: %s' % (fname, ex))
            return self._doc

    def load_features(self, query, layer=None, user_id=None):
        doc = self._document()
        try:
            features = FeatureCollection.from_geojson(doc, self.srs)
            features = features.transform_to(query.srs)
        except (SRSError, ValueError, TypeError, AttributeError) as ex:
            raise SourceError('invalid GeoJSON source %s: %s' % (self.filename or '<inline>', ex))
        return features.filter_bbox(query.bbox)

    def __repr__(self):
        return 'GeoJSONSource(%r)' % (self.filename or '<inline>', )
