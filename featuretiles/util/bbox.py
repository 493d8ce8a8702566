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

import math


class TransformationError(Exception):
    pass


def calculate_bbox(points):
    """
    Calculates the bbox of a list of points.

    >>> calculate_bbox([(-5, 20), (3, 8), (99, 0)])
    (-5, 0, 99, 20)

    @param points: list of points [(x0, y0), (x1, y2), ...]
    @returns: bbox of the input points.
    """
    points = list(points)
    # points can be INF for invalid transformations, filter out
    try:
        minx = min(p[0] for p in points if math.isfinite(p[0]))
        miny = min(p[1] for p in points if math.isfinite(p[1]))
        maxx = max(p[0] for p in points if math.isfinite(p[0]))
        maxy = max(p[1] for p in points if math.isfinite(p[1]))
        return (minx, miny, maxx, maxy)
    except ValueError:  # min/max are called with empty list when everything is inf
        raise TransformationError()


def bbox_tuple(bbox):
    """
    Parse a bbox from a comma separated string or a sequence.
    Raises ``ValueError`` if the bbox does not consist of exactly
    four numbers.

    >>> bbox_tuple('20,-30,40,-10')
    (20.0, -30.0, 40.0, -10.0)
    >>> bbox_tuple([20,-30,40,-10])
    (20.0, -30.0, 40.0, -10.0)
    >>> bbox_tuple('1,2,3')
    Traceback (most recent call last):
    ...
    ValueError: bbox requires four values, got 3
    """
    if isinstance(bbox, str):
        bbox = bbox.split(',')
    bbox = tuple(map(float, bbox))
    if len(bbox) != 4:
        raise ValueError('bbox requires four values, got %d' % len(bbox))
    if not all(math.isfinite(v) for v in bbox):
        raise ValueError('bbox values must be finite')
    return bbox


def bbox_width(bbox):
    return bbox[2] - bbox[0]


def bbox_height(bbox):
    return bbox[3] - bbox[1]


def bbox_size(bbox):
    return bbox_width(bbox), bbox_height(bbox)


def bbox_is_degenerate(bbox):
    """
    >>> bbox_is_degenerate((0, 0, 10, 10))
    False
    >>> bbox_is_degenerate((0, 10, 10, 10))
    True
    """
    return not (bbox[0] < bbox[2] and bbox[1] < bbox[3])


def bbox_intersects(one, two):
    """
    >>> bbox_intersects((0, 0, 10, 10), (5, 5, 15, 15))
    True
    >>> bbox_intersects((0, 0, 10, 10), (20, 20, 30, 30))
    False
    """
    a_x0, a_y0, a_x1, a_y1 = one
    b_x0, b_y0, b_x1, b_y1 = two

    if (
            a_x0 < b_x1 and
            a_x1 > b_x0 and
            a_y0 < b_y1 and
            a_y1 > b_y0
    ):
        return True

    return False


def fit_bbox_to_size(bbox, size):
    """
    Expand `bbox` around its center so that its aspect ratio matches
    the pixel `size`.

    >>> fit_bbox_to_size((0, 0, 10, 10), (200, 100))
    (-5.0, 0.0, 15.0, 10.0)
    >>> fit_bbox_to_size((0, 0, 10, 10), (100, 200))
    (0.0, -5.0, 10.0, 15.0)
    >>> fit_bbox_to_size((0, 0, 20, 10), (200, 100))
    (0.0, 0.0, 20.0, 10.0)
    """
    width, height = bbox_size(bbox)
    x_res = width / size[0]
    y_res = height / size[1]
    res = max(x_res, y_res)
    cx = bbox[0] + width / 2.0
    cy = bbox[1] + height / 2.0
    half_w = res * size[0] / 2.0
    half_h = res * size[1] / 2.0
    return (cx - half_w, cy - half_h, cx + half_w, cy + half_h)
