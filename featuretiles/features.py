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
Feature collections and their GeoJSON representation.
"""
import json

import shapely.geometry
import shapely.ops
from shapely.errors import ShapelyError
from shapely.geometry import box

from featuretiles.srs import SRS

import logging
log = logging.getLogger(__name__)

EMPTY_GEOJSON_FEATURE_COLLECTION = b'{"type": "FeatureCollection", "features": []}'


class Feature(object):
    def __init__(self, geometry, properties=None, id=None):
        self.geometry = geometry
        self.properties = properties or {}
        self.id = id

    def __repr__(self):
        return 'Feature(%r, id=%r)' % (self.geometry.geom_type, self.id)


class FeatureCollection(object):
    """
    Ordered list of features that share one SRS.
    """
    def __init__(self, features, srs):
        self.features = list(features)
        self.srs = SRS(srs)

    def __len__(self):
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def __bool__(self):
        return bool(self.features)

    def is_empty(self):
        return not self.features

    @classmethod
    def from_geojson(cls, doc, srs):
        """
        Create a collection from a parsed GeoJSON document (``FeatureCollection``,
        ``Feature`` or bare geometry). Features without geometry are skipped.
        """
        t = doc.get('type')
        if t == 'FeatureCollection':
            items = doc.get('features') or []
        elif t == 'Feature':
            items = [doc]
        elif t:
            items = [{'type': 'Feature', 'geometry': doc, 'properties': {}}]
        else:
            raise ValueError('not a GeoJSON document')

        features = []
        for item in items:
            geom = item.get('geometry')
            if not geom:
                log.debug('skipping feature %s without geometry', item.get('id'))
                continue
            try:
                geometry = shapely.geometry.shape(geom)
            except (ShapelyError, KeyError, TypeError, ValueError) as ex:
                raise ValueError('invalid geometry in feature %s: %s' % (item.get('id'), ex))
            features.append(Feature(geometry, properties=item.get('properties'),
                                    id=item.get('id')))
        return cls(features, srs)

    def transform_to(self, srs):
        srs = SRS(srs)
        if srs == self.srs:
            return self
        transf = self.srs.transform_func(srs)
        return FeatureCollection(
            [Feature(shapely.ops.transform(transf, f.geometry), f.properties, f.id)
             for f in self.features],
            srs,
        )

    def filter_bbox(self, bbox):
        """
        Return a new collection with all features that intersect `bbox`.
        """
        bbox_geom = box(*bbox)
        return FeatureCollection(
            [f for f in self.features if f.geometry.intersects(bbox_geom)],
            self.srs,
        )

    def as_geojson_dict(self, decimals=None):
        features = []
        for f in self.features:
            feature = {
                'type': 'Feature',
                'geometry': _round_geometry(shapely.geometry.mapping(f.geometry), decimals),
                'properties': f.properties,
            }
            if f.id is not None:
                feature['id'] = f.id
            features.append(feature)
        return {'type': 'FeatureCollection', 'features': features}

    def to_geojson(self, decimals=None):
        """
        Serialize the collection as GeoJSON (UTF-8 encoded bytes). Coordinates
        are rounded to `decimals` places. Empty collections serialize to
        ``EMPTY_GEOJSON_FEATURE_COLLECTION``.
        """
        if self.is_empty():
            return EMPTY_GEOJSON_FEATURE_COLLECTION
        doc = self.as_geojson_dict(decimals)
        return json.dumps(doc, separators=(',', ':'), default=str).encode('utf-8')


def _round_coords(coords, decimals):
    if isinstance(coords, (int, float)):
        if decimals is None:
            return coords
        return round(coords, decimals)
    return [_round_coords(c, decimals) for c in coords]


def _round_geometry(geom, decimals):
    geom = dict(geom)
    if geom['type'] == 'GeometryCollection':
        geom['geometries'] = [_round_geometry(g, decimals) for g in geom['geometries']]
    else:
        geom['coordinates'] = _round_coords(geom['coordinates'], decimals)
    return geom
