# -*- coding: utf-8 -*-
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
Spatial reference systems and transformation of coordinates.
"""
import math
import threading

from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from featuretiles.util.bbox import calculate_bbox, bbox_intersects

import logging
log_proj = logging.getLogger('featuretiles.proj')


class SRSError(ValueError):
    pass


def get_epsg_num(epsg_code):
    """
    >>> get_epsg_num('ePsG:4326')
    4326
    >>> get_epsg_num(4313)
    4313
    >>> get_epsg_num('31466')
    31466
    >>> get_epsg_num('IGNF:ETRS89UTM28') is None
    True
    """
    if isinstance(epsg_code, str):
        if ':' in epsg_code and epsg_code.upper().startswith('EPSG'):
            code = epsg_code.split(':')[1]
            if not code.isdigit():
                return
            epsg_code = int(code)
        elif epsg_code.isdigit():
            epsg_code = int(epsg_code)
        else:
            return
    return epsg_code


def get_authority(srs_code):
    """
    >>> get_authority('IAU:1000')
    ('IAU', '1000')
    """
    if isinstance(srs_code, str) and ':' in srs_code:
        auth_name, auth_id = srs_code.rsplit(':', 1)
        return auth_name, auth_id


def _clean_srs_code(code):
    """
    >>> _clean_srs_code(4326)
    'EPSG:4326'
    >>> _clean_srs_code('31466')
    'EPSG:31466'
    >>> _clean_srs_code('crs:84')
    'CRS:84'
    """
    if isinstance(code, str) and ':' in code:
        return code.upper()
    else:
        return 'EPSG:' + str(code)


_thread_local = threading.local()


def SRS(srs_code):
    """
    Return the (thread-local cached) SRS for `srs_code`.
    Raises `SRSError` for unknown codes.
    """
    if isinstance(srs_code, _SRS):
        return srs_code

    srs_code = _clean_srs_code(srs_code)

    if not hasattr(_thread_local, 'srs_cache'):
        _thread_local.srs_cache = {}

    if srs_code in _thread_local.srs_cache:
        return _thread_local.srs_cache[srs_code]
    else:
        srs = _SRS(srs_code)
        _thread_local.srs_cache[srs_code] = srs
        return srs


WEBMERCATOR_EPSG = set(('EPSG:900913', 'EPSG:3857',
                        'EPSG:102100', 'EPSG:102113'))

ANGULAR_UNITS = set(('degree', 'degree minute second', 'degree minute second hemisphere',
                     'grad', 'gon', 'radian', 'arc-second', 'arc-minute',
                     'microradian', 'sexagesimal dms'))


class _SRS(object):
    """
    This class represents a Spatial Reference System.

    Abstracts transformations between different projections and exposes
    the axis units and the area of validity of the CRS.
    """

    def __init__(self, srs_code):
        """
        Create a new SRS with the given `srs_code` code.
        """
        self.srs_code = srs_code

        if srs_code in WEBMERCATOR_EPSG:
            epsg_num = 3857
        elif srs_code == 'CRS:84':
            epsg_num = 4326
        else:
            epsg_num = get_epsg_num(srs_code)

        try:
            if epsg_num is not None:
                self.proj = CRS.from_epsg(epsg_num)
            else:
                auth = get_authority(srs_code)
                if auth is None:
                    raise SRSError('unknown SRS %s' % srs_code)
                self.proj = CRS.from_authority(*auth)
        except CRSError as ex:
            raise SRSError('unknown SRS %s: %s' % (srs_code, ex))

        self._transformers = {}
        self._valid_extent = None

    def _transformer(self, other_srs):
        if other_srs in self._transformers:
            return self._transformers[other_srs]

        t = Transformer.from_crs(self.proj, other_srs.proj, always_xy=True)
        self._transformers[other_srs] = t
        return t

    def transform_to(self, other_srs, points):
        """
        :type points: ``(x, y)`` or ``[(x1, y1), (x2, y2), …]``

        >>> srs1 = SRS(4326)
        >>> srs2 = SRS(900913)
        >>> [str(round(x, 5)) for x in srs1.transform_to(srs2, (8.22, 53.15))]
        ['915046.21432', '7010792.20171']
        >>> srs1.transform_to(srs1, (8.25, 53.5))
        (8.25, 53.5)
        """
        if self == other_srs:
            return points

        transformer = self._transformer(other_srs)
        if isinstance(points[0], (int, float)) and 2 <= len(points) <= 3:
            return transformer.transform(*points)

        x = [p[0] for p in points]
        y = [p[1] for p in points]
        transf_pts = transformer.transform(x, y)
        return zip(transf_pts[0], transf_pts[1])

    def transform_func(self, other_srs):
        """
        Return a ``func(x, y)`` that transforms coordinates to `other_srs`.
        Suitable for ``shapely.ops.transform``.
        """
        if self == other_srs:
            return lambda x, y, z=None: (x, y)
        return self._transformer(other_srs).transform

    def transform_bbox_to(self, other_srs, bbox, with_points=16):
        """
        :param with_points: the number of points to use for the transformation.
            A bbox transformation with only two or four points may cut off some
            parts due to distortions.

        >>> ['%.5f' % x for x in
        ...  SRS(4326).transform_bbox_to(SRS(3857), (8.2, 53.1, 8.3, 53.2))]
        ['912819.82450', '7001516.67745', '923951.77358', '7020078.53264']
        >>> SRS(4326).transform_bbox_to(SRS(4326), (8.25, 53.0, 8.5, 53.75))
        (8.25, 53.0, 8.5, 53.75)
        """
        if self == other_srs:
            return bbox
        points = generate_envelope_points(bbox, with_points)
        transf_pts = list(self.transform_to(other_srs, points))
        result = calculate_bbox(transf_pts)

        log_proj.debug('transformed from %r to %r (%s -> %s)',
                       self, other_srs, bbox, result)
        return result

    @property
    def is_latlong(self):
        """
        >>> SRS(4326).is_latlong
        True
        >>> SRS(31466).is_latlong
        False
        """
        return self.proj.is_geographic

    @property
    def axis_unit(self):
        """
        The unit name of the first axis.

        >>> SRS(4326).axis_unit
        'degree'
        >>> SRS(3857).axis_unit
        'metre'
        """
        axis_info = self.proj.axis_info
        if not axis_info:
            return None
        return axis_info[0].unit_name

    @property
    def is_angular(self):
        """
        Returns `True` if the first axis is measured in an angular
        (degree based) unit.

        >>> SRS(4326).is_angular
        True
        >>> SRS(3067).is_angular
        False
        """
        unit = self.axis_unit
        if unit is None:
            return self.is_latlong
        unit = unit.lower()
        return unit in ANGULAR_UNITS or unit.startswith('degree')

    @property
    def valid_extent(self):
        """
        The area of use of this SRS in its own (x/y ordered) coordinates.
        Returns ``None`` if the CRS does not declare an area of use.
        """
        if self._valid_extent is None:
            area = self.proj.area_of_use
            if area is None:
                return None
            bounds = (area.west, area.south, area.east, area.north)
            if self.is_latlong:
                self._valid_extent = bounds
            else:
                transformer = Transformer.from_crs(CRS.from_epsg(4326), self.proj,
                                                   always_xy=True)
                extent = transformer.transform_bounds(*bounds, densify_pts=21)
                if not all(math.isfinite(v) for v in extent):
                    log_proj.warning('could not transform area of use of %r', self)
                    return None
                self._valid_extent = tuple(extent)
        return self._valid_extent

    def is_within(self, bbox):
        """
        Returns `True` if `bbox` lies (at least partially) within the
        valid extent of this SRS. SRS without a declared extent accept
        every bbox.

        >>> SRS(4326).is_within((8, 53, 9, 54))
        True
        >>> SRS(4326).is_within((200, 100, 210, 110))
        False
        """
        extent = self.valid_extent
        if extent is None:
            return True
        return bbox_intersects(extent, bbox)

    def __eq__(self, other):
        """
        >>> SRS(4326) == SRS("EpsG:4326")
        True
        >>> SRS(4326) == SRS(3857)
        False
        """
        if isinstance(other, _SRS):
            return self.proj.srs == other.proj.srs
        else:
            return NotImplemented

    def __ne__(self, other):
        equal_result = self.__eq__(other)
        if equal_result is NotImplemented:
            return NotImplemented
        else:
            return not equal_result

    def __str__(self):
        return "SRS %s ('%s')" % (self.srs_code, self.proj.srs)

    def __repr__(self):
        """
        >>> repr(SRS(4326))
        "SRS('EPSG:4326')"
        """
        return "SRS('%s')" % (self.srs_code,)

    def __hash__(self):
        return hash(self.proj.srs)


def generate_envelope_points(bbox, n):
    """
    Generates points that form a linestring around a given bbox.

    @param bbox: bbox to generate linestring for
    @param n: the number of points to generate around the bbox

    >>> generate_envelope_points((10.0, 5.0, 20.0, 15.0), 4)
    [(10.0, 5.0), (20.0, 5.0), (20.0, 15.0), (10.0, 15.0)]
    """
    (minx, miny, maxx, maxy) = bbox
    if n <= 4:
        n = 0
    else:
        n = int(math.ceil((n - 4) / 4.0))

    width = maxx - minx
    height = maxy - miny

    minx, maxx = min(minx, maxx), max(minx, maxx)
    miny, maxy = min(miny, maxy), max(miny, maxy)

    n += 1
    xstep = width / n
    ystep = height / n
    result = []
    for i in range(n+1):
        result.append((minx + i*xstep, miny))
    for i in range(1, n):
        result.append((maxx, miny + i*ystep))
    for i in range(n, -1, -1):
        result.append((minx + i*xstep, maxy))
    for i in range(n-1, 0, -1):
        result.append((minx, miny + i*ystep))
    return result


def make_lin_transf(src_bbox, dst_bbox):
    """
    Create a transformation function that transforms linear between two
    plane coordinate systems.
    One needs to be cartesian (0, 0 at the lower left, x goes up) and one
    needs to be an image coordinate system (0, 0 at the top left, x goes down).

    :return: function that takes src x/y and returns dest x/y coordinates

    >>> transf = make_lin_transf((7, 50, 8, 51), (0, 0, 500, 400))
    >>> transf((7.5, 50.5))
    (250.0, 200.0)
    >>> transf((7.0, 50.0))
    (0.0, 400.0)
    """
    def func(x_y): return (dst_bbox[0] + (x_y[0] - src_bbox[0]) *
                           (dst_bbox[2]-dst_bbox[0]) / (src_bbox[2] - src_bbox[0]),
                           dst_bbox[1] + (src_bbox[3] - x_y[1]) *
                           (dst_bbox[3]-dst_bbox[1]) / (src_bbox[3] - src_bbox[1]))
    return func
