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
Rasterization of feature collections into tile images.

Each `Rasterizer.draw` call works on its own image buffers. Features are
drawn at ``antialias_factor`` times the requested size and scaled down
with a Lanczos filter, which smooths the edges of geometries. Labels
are rendered with FreeType and anti-aliased as well.
"""

import math

from PIL import Image, ImageChops, ImageDraw, ImageFont
from shapely.geometry import (
    GeometryCollection,
    LinearRing,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)

from featuretiles.config import base_config, abspath
from featuretiles.image.opts import create_image, ImageOptions
from featuretiles.srs import SRS, make_lin_transf
from featuretiles.style import (
    LineSymbolizer,
    PointSymbolizer,
    PolygonSymbolizer,
    TextSymbolizer,
)
from featuretiles.util.bbox import bbox_is_degenerate, bbox_tuple, fit_bbox_to_size

import logging
log = logging.getLogger('featuretiles.render')

# standardized rendering pixel size of 0.28 mm (OGC SE)
PIXEL_SIZE = 0.00028
METERS_PER_DEGREE = 6378137 * 2 * math.pi / 360


class ViewportSpec(object):
    """
    The area and pixel size of an image to render.

    :raises ValueError: for a size <= 0 or a degenerate bbox
    """
    def __init__(self, srs, width, height, bbox, maintain_aspect_ratio=True):
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise ValueError('invalid image size %dx%d' % (width, height))
        bbox = bbox_tuple(bbox)
        if bbox_is_degenerate(bbox):
            raise ValueError('degenerate bbox %r' % (bbox, ))
        self.srs = SRS(srs)
        self.width = width
        self.height = height
        self.bbox = bbox
        self.maintain_aspect_ratio = maintain_aspect_ratio

    @property
    def size(self):
        return (self.width, self.height)

    @property
    def effective_bbox(self):
        """
        The rendered bbox, expanded to the aspect ratio of the image
        if ``maintain_aspect_ratio`` is set.
        """
        if self.maintain_aspect_ratio:
            return fit_bbox_to_size(self.bbox, self.size)
        return self.bbox

    @property
    def scale_denominator(self):
        bbox = self.effective_bbox
        res = (bbox[2] - bbox[0]) / self.width
        if self.srs.is_angular:
            res *= METERS_PER_DEGREE
        return res / PIXEL_SIZE

    def __repr__(self):
        return 'ViewportSpec(%r, %d, %d, %r)' % (self.srs, self.width, self.height, self.bbox)


def _flatten(geom, types):
    """
    Return all parts of `geom` that are instances of `types`.
    """
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, (MultiPolygon, MultiLineString, MultiPoint, GeometryCollection)):
        parts = []
        for g in geom.geoms:
            parts.extend(_flatten(g, types))
        return parts
    if isinstance(geom, types):
        return [geom]
    return []


def _rgba(fill):
    r, g, b = fill.color[:3]
    return (r, g, b, int(round(255 * max(0.0, min(1.0, fill.opacity)))))


def dash_segments(points, pattern):
    """
    Split the polyline `points` into the "on" segments of the dash `pattern`.

    >>> dash_segments([(0, 0), (10, 0)], (4, 2))
    [[(0, 0), (4.0, 0.0)], [(6.0, 0.0), (10.0, 0.0)]]
    """
    if not pattern or sum(pattern) <= 0:
        return [points]
    segments = []
    current = []
    idx = 0
    remaining = pattern[0]
    on = True
    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        seg_len = math.hypot(x1 - x0, y1 - y0)
        if seg_len == 0:
            continue
        pos = 0.0
        if on and not current:
            current = [(x0, y0)]
        while seg_len - pos > remaining:
            pos += remaining
            t = pos / seg_len
            pt = (x0 + (x1 - x0) * t, y0 + (y1 - y0) * t)
            if on:
                current.append(pt)
                segments.append(current)
                current = []
            else:
                current = [pt]
            on = not on
            idx = (idx + 1) % len(pattern)
            remaining = pattern[idx]
        remaining -= seg_len - pos
        if on:
            current.append((x1, y1))
    if on and len(current) > 1:
        segments.append(current)
    return segments


def mark_outline(mark, x, y, size):
    """
    Return the outline of a well-known mark centered at `x`, `y` as
    list of points, or ``None`` for circles.
    """
    r = size / 2.0
    if mark == 'circle':
        return None
    if mark == 'triangle':
        return [(x, y - r), (x + r, y + r), (x - r, y + r)]
    if mark == 'star':
        points = []
        for i in range(10):
            radius = r if i % 2 == 0 else r * 0.4
            angle = math.pi / 5 * i - math.pi / 2
            points.append((x + radius * math.cos(angle), y + radius * math.sin(angle)))
        return points
    if mark in ('cross', 'x'):
        t = r / 4.0
        points = [
            (-t, -r), (t, -r), (t, -t), (r, -t), (r, t), (t, t),
            (t, r), (-t, r), (-t, t), (-r, t), (-r, -t), (-t, -t),
        ]
        if mark == 'x':
            c = s = math.sqrt(0.5)
            points = [(px * c - py * s, px * s + py * c) for px, py in points]
        return [(x + px, y + py) for px, py in points]
    # square and unknown marks
    return [(x - r, y - r), (x + r, y - r), (x + r, y + r), (x - r, y + r)]


class Rasterizer(object):
    """
    Draws styled features into images.

    :param antialias_factor: features are drawn at this multiple of the
        image size, ``1`` disables anti-aliasing
    """
    def __init__(self, antialias_factor=None, font_size=None, font_file=None):
        conf = base_config().image
        self.antialias_factor = max(1, int(antialias_factor or conf.antialias_factor))
        self.font_size = font_size or conf.font_size
        self.font_file = font_file or conf.font_file
        self._fonts = {}

    def _font(self, size):
        size = max(1, int(round(size)))
        if size not in self._fonts:
            if self.font_file:
                self._fonts[size] = ImageFont.truetype(abspath(self.font_file), size)
            else:
                self._fonts[size] = ImageFont.load_default(size=size)
        return self._fonts[size]

    def draw(self, viewport, features, style):
        """
        Draw `features` with `style` into a transparent image of the
        viewport size.

        Returns ``None`` if the viewport (size or location) or the style
        is missing. An empty feature collection results in a blank image.
        """
        if not self._check_prerequisites(viewport, style):
            return None

        size = viewport.size
        if features is None or len(features) == 0:
            log.debug('no features for %r, rendering blank image', viewport)
            return create_image(size, ImageOptions(transparent=True))

        if features.srs != viewport.srs:
            features = features.transform_to(viewport.srs)

        f = self.antialias_factor
        render_size = (size[0] * f, size[1] * f)
        transf = make_lin_transf(viewport.effective_bbox, (0, 0) + render_size)
        scale = viewport.scale_denominator

        matches = [
            (feature, set(id(r) for r in style.rules_for(feature.properties, scale)))
            for feature in features
        ]

        img = create_image(render_size, ImageOptions(transparent=True))
        try:
            labels = []
            for rule in style.rules:
                rule_features = [feat for feat, rules in matches if id(rule) in rules]
                if not rule_features:
                    continue
                for symbolizer in rule.symbolizers:
                    if isinstance(symbolizer, TextSymbolizer):
                        labels.append((symbolizer, rule_features))
                    else:
                        self._draw_symbolizer(img, symbolizer, rule_features, transf)
            for symbolizer, rule_features in labels:
                self._draw_labels(img, symbolizer, rule_features, transf)

            if f == 1:
                result = img.copy()
            else:
                result = img.resize(size, Image.Resampling.LANCZOS)
        finally:
            img.close()
        log.debug('rendered %d features for %r', len(features), viewport)
        return result

    def _check_prerequisites(self, viewport, style):
        ok = True
        width = getattr(viewport, 'width', None)
        height = getattr(viewport, 'height', None)
        if not width or width <= 0:
            log.error('cannot draw features: no image width')
            ok = False
        if not height or height <= 0:
            log.error('cannot draw features: no image height')
            ok = False
        if getattr(viewport, 'bbox', None) is None or getattr(viewport, 'srs', None) is None:
            log.error('cannot draw features: no location')
            ok = False
        if style is None:
            log.error('cannot draw features: no style')
            ok = False
        return ok

    def _draw_symbolizer(self, img, symbolizer, features, transf):
        overlay = Image.new('RGBA', img.size, (0, 0, 0, 0))
        try:
            if isinstance(symbolizer, PolygonSymbolizer):
                self._draw_polygons(overlay, symbolizer, features, transf)
            elif isinstance(symbolizer, LineSymbolizer):
                self._draw_lines(overlay, symbolizer, features, transf)
            elif isinstance(symbolizer, PointSymbolizer):
                self._draw_points(overlay, symbolizer, features, transf)
            img.alpha_composite(overlay)
        finally:
            overlay.close()

    def _stroke_lines(self, draw, stroke, lines):
        f = self.antialias_factor
        color = _rgba(stroke)
        width = max(1, int(round(stroke.width * f)))
        joint = 'curve' if stroke.linejoin == 'round' else None
        pattern = None
        if stroke.dasharray:
            pattern = [v * f for v in stroke.dasharray]
        for points in lines:
            if len(points) < 2:
                continue
            parts = dash_segments(points, pattern) if pattern else [points]
            for part in parts:
                draw.line(part, fill=color, width=width, joint=joint)
                if stroke.linecap == 'round' and width > 2:
                    r = width / 2.0
                    for x, y in (part[0], part[-1]):
                        draw.ellipse((x - r, y - r, x + r, y + r), fill=color)

    def _draw_polygons(self, overlay, symbolizer, features, transf):
        polygons = []
        for feature in features:
            polygons.extend(_flatten(feature.geometry, Polygon))
        if not polygons:
            return

        if symbolizer.fill is not None:
            mask = Image.new('L', overlay.size, 0)
            draw = ImageDraw.Draw(mask)
            for p in polygons:
                if not p.interiors:
                    draw.polygon([transf(c) for c in p.exterior.coords], fill=255)
                    continue
                poly_mask = Image.new('L', overlay.size, 0)
                poly_draw = ImageDraw.Draw(poly_mask)
                poly_draw.polygon([transf(c) for c in p.exterior.coords], fill=255)
                for ring in p.interiors:
                    poly_draw.polygon([transf(c) for c in ring.coords], fill=0)
                mask = ImageChops.lighter(mask, poly_mask)
                draw = ImageDraw.Draw(mask)
                poly_mask.close()
            color = _rgba(symbolizer.fill)
            alpha = mask.point(lambda v: v * color[3] // 255)
            fill_layer = Image.new('RGBA', overlay.size, color[:3] + (0, ))
            fill_layer.putalpha(alpha)
            overlay.alpha_composite(fill_layer)
            fill_layer.close()
            alpha.close()
            mask.close()

        if symbolizer.stroke is not None:
            rings = []
            for p in polygons:
                rings.append([transf(c) for c in p.exterior.coords])
                rings.extend([transf(c) for c in ring.coords] for ring in p.interiors)
            self._stroke_lines(ImageDraw.Draw(overlay), symbolizer.stroke, rings)

    def _draw_lines(self, overlay, symbolizer, features, transf):
        lines = []
        for feature in features:
            for line in _flatten(feature.geometry, (LineString, LinearRing)):
                lines.append([transf(c) for c in line.coords])
        if lines and symbolizer.stroke is not None:
            self._stroke_lines(ImageDraw.Draw(overlay), symbolizer.stroke, lines)

    def _draw_points(self, overlay, symbolizer, features, transf):
        f = self.antialias_factor
        draw = ImageDraw.Draw(overlay)
        size = symbolizer.size * f
        fill = _rgba(symbolizer.fill) if symbolizer.fill is not None else None
        outline = None
        width = 0
        if symbolizer.stroke is not None:
            outline = _rgba(symbolizer.stroke)
            width = max(1, int(round(symbolizer.stroke.width * f)))
        for feature in features:
            for point in _flatten(feature.geometry, Point):
                x, y = transf((point.x, point.y))
                shape = mark_outline(symbolizer.mark, x, y, size)
                if shape is None:
                    r = size / 2.0
                    draw.ellipse((x - r, y - r, x + r, y + r), fill=fill,
                                 outline=outline, width=width)
                else:
                    draw.polygon(shape, fill=fill, outline=outline, width=width)

    def _draw_labels(self, img, symbolizer, features, transf):
        f = self.antialias_factor
        font = self._font((symbolizer.font_size or self.font_size) * f)
        draw = ImageDraw.Draw(img)
        fill = _rgba(symbolizer.fill) if symbolizer.fill is not None else (0, 0, 0, 255)
        halo_width = 0
        halo_fill = None
        if symbolizer.halo is not None:
            halo_width = max(1, int(round(symbolizer.halo.radius * f)))
            halo_fill = _rgba(symbolizer.halo.fill)
        for feature in features:
            label = feature.properties.get(symbolizer.label)
            if label is None or label == '':
                continue
            anchor = _label_point(feature.geometry)
            if anchor is None:
                continue
            draw.text(transf(anchor), str(label), font=font, fill=fill, anchor='mm',
                      stroke_width=halo_width, stroke_fill=halo_fill)


def _label_point(geom):
    if geom is None or geom.is_empty:
        return None
    if isinstance(geom, (LineString, MultiLineString)):
        if isinstance(geom, MultiLineString):
            geom = max(geom.geoms, key=lambda g: g.length)
        pt = geom.interpolate(0.5, normalized=True)
    else:
        pt = geom.representative_point()
    return (pt.x, pt.y)
