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
Features from OGC API Features or WFS services with GeoJSON output.
"""

from featuretiles.client.http import HTTPClient, HTTPClientError
from featuretiles.features import FeatureCollection
from featuretiles.source import FeatureSource, SourceError
from featuretiles.srs import get_epsg_num, SRSError

import logging
log = logging.getLogger('featuretiles.source.http')


def crs_uri(srs):
    """
    >>> crs_uri('EPSG:3067')
    'http://www.opengis.net/def/crs/EPSG/0/3067'
    """
    epsg = get_epsg_num(srs.srs_code if hasattr(srs, 'srs_code') else srs)
    if epsg is None:
        return str(srs)
    return 'http://www.opengis.net/def/crs/EPSG/0/%d' % epsg


class HTTPFeatureSource(FeatureSource):
    """
    Requests features of the query bbox from a remote service.

    :param url: the ``items`` URL (OGC API) or the WFS endpoint
    :param protocol: ``ogcapi`` or ``wfs``
    :param params: additional request parameters (e.g. ``typeNames``)
    """
    def __init__(self, url, protocol='ogcapi', params=None, client=None):
        if protocol not in ('ogcapi', 'wfs'):
            raise ValueError('unsupported protocol %r' % protocol)
        self.url = url
        self.protocol = protocol
        self.params = params or {}
        self.client = client or HTTPClient(url)

    def request_params(self, query):
        bbox = ','.join(repr(v) for v in query.bbox)
        params = dict(self.params)
        if self.protocol == 'wfs':
            params.update({
                'service': 'WFS',
                'version': '2.0.0',
                'request': 'GetFeature',
                'outputFormat': 'application/json',
                'srsName': query.srs.srs_code,
                'bbox': bbox + ',' + query.srs.srs_code,
            })
        else:
            uri = crs_uri(query.srs)
            params.update({
                'bbox': bbox,
                'bbox-crs': uri,
                'crs': uri,
                'f': 'json',
            })
        return params

    def load_features(self, query, layer=None, user_id=None):
        try:
            doc = self.client.open_json(self.url, params=self.request_params(query))
        except HTTPClientError as ex:
            raise SourceError(ex.args[0])
        if not isinstance(doc, dict):
            raise SourceError('unexpected response from %s' % self.url)
        try:
            features = FeatureCollection.from_geojson(doc, query.srs)
        except (SRSError, ValueError, TypeError, AttributeError) as ex:
            raise SourceError('invalid GeoJSON from %s: %s' % (self.url, ex))
        log.debug('retrieved %d features from %s', len(features), self.url)
        return features

    def __repr__(self):
        return 'HTTPFeatureSource(%r)' % (self.url, )
