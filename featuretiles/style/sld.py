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
Parser for Styled Layer Descriptor (SLD 1.0 and SE 1.1) documents.

Only the first ``UserStyle`` of a document is used. Namespaces are
ignored, elements are matched by their local name.
"""
from io import BytesIO

from lxml import etree
from PIL import ImageColor

from featuretiles.style import (
    Fill,
    Halo,
    LineSymbolizer,
    LogicalFilter,
    PointSymbolizer,
    PolygonSymbolizer,
    PropertyFilter,
    Rule,
    Stroke,
    StyleDescriptor,
    TextSymbolizer,
)

import logging
log = logging.getLogger('featuretiles.style')


class SLDParseError(Exception):
    pass


_comparison_ops = {
    'PropertyIsEqualTo': 'eq',
    'PropertyIsNotEqualTo': 'ne',
    'PropertyIsLessThan': 'lt',
    'PropertyIsLessThanOrEqualTo': 'le',
    'PropertyIsGreaterThan': 'gt',
    'PropertyIsGreaterThanOrEqualTo': 'ge',
    'PropertyIsNull': 'null',
}

_logical_ops = {
    'And': 'and',
    'Or': 'or',
    'Not': 'not',
}


def _local(el):
    return etree.QName(el).localname


def _child(el, name):
    if el is None:
        return None
    for c in el:
        if isinstance(c.tag, str) and _local(c) == name:
            return c
    return None


def _children(el, name):
    return [c for c in el if isinstance(c.tag, str) and _local(c) == name]


def _descendants(el, name):
    return [c for c in el.iter() if isinstance(c.tag, str) and _local(c) == name]


def _text(el):
    if el is None:
        return None
    text = ''.join(el.itertext()).strip()
    return text or None


def _params(el):
    """
    Return CssParameter/SvgParameter values of `el` as dict.
    """
    params = {}
    if el is None:
        return params
    for c in el:
        if not isinstance(c.tag, str):
            continue
        if _local(c) in ('CssParameter', 'SvgParameter'):
            params[c.get('name')] = _text(c)
    return params


def parse_color(value, default=(128, 128, 128)):
    if not value:
        return default
    try:
        return ImageColor.getrgb(value)[:3]
    except ValueError:
        raise SLDParseError('invalid color %r' % value)


def _float(value, default):
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise SLDParseError('invalid number %r' % value)


def _parse_fill(el):
    if el is None:
        return None
    params = _params(el)
    return Fill(
        color=parse_color(params.get('fill')),
        opacity=_float(params.get('fill-opacity'), 1.0),
    )


def _parse_stroke(el):
    if el is None:
        return None
    params = _params(el)
    dasharray = params.get('stroke-dasharray')
    if dasharray:
        try:
            dasharray = tuple(float(v) for v in dasharray.replace(',', ' ').split())
        except ValueError:
            raise SLDParseError('invalid stroke-dasharray %r' % dasharray)
    return Stroke(
        color=parse_color(params.get('stroke'), default=(0, 0, 0)),
        width=_float(params.get('stroke-width'), 1.0),
        opacity=_float(params.get('stroke-opacity'), 1.0),
        dasharray=dasharray or None,
        linejoin=params.get('stroke-linejoin') or 'miter',
        linecap=params.get('stroke-linecap') or 'butt',
    )


def _geometry_property(el):
    geom = _child(el, 'Geometry')
    if geom is None:
        return None
    return _text(_child(geom, 'PropertyName'))


def _parse_polygon_symbolizer(el):
    return PolygonSymbolizer(
        fill=_parse_fill(_child(el, 'Fill')),
        stroke=_parse_stroke(_child(el, 'Stroke')),
        geometry=_geometry_property(el),
    )


def _parse_line_symbolizer(el):
    return LineSymbolizer(
        stroke=_parse_stroke(_child(el, 'Stroke')) or Stroke(),
        geometry=_geometry_property(el),
    )


def _parse_point_symbolizer(el):
    graphic = _child(el, 'Graphic')
    mark = _child(graphic, 'Mark')
    name = _text(_child(mark, 'WellKnownName')) or 'square'
    size = _float(_text(_child(graphic, 'Size')), 6.0)
    fill = _parse_fill(_child(mark, 'Fill')) if mark is not None else None
    stroke = _parse_stroke(_child(mark, 'Stroke')) if mark is not None else None
    if mark is None or _child(mark, 'Fill') is None and _child(mark, 'Stroke') is None:
        fill = Fill()
    return PointSymbolizer(
        mark=name.lower(),
        size=size,
        fill=fill,
        stroke=stroke,
        geometry=_geometry_property(el),
    )


def _parse_text_symbolizer(el):
    label = _child(el, 'Label')
    if label is None:
        raise SLDParseError('TextSymbolizer without Label')
    prop = _child(label, 'PropertyName')
    if prop is None:
        raise SLDParseError('only PropertyName labels are supported')
    font = _params(_child(el, 'Font'))
    halo = _child(el, 'Halo')
    if halo is not None:
        halo = Halo(
            radius=_float(_text(_child(halo, 'Radius')), 1.0),
            fill=_parse_fill(_child(halo, 'Fill')) or Fill((255, 255, 255), 1.0),
        )
    return TextSymbolizer(
        label=_text(prop),
        font_size=_float(font.get('font-size'), 10.0),
        fill=_parse_fill(_child(el, 'Fill')) or Fill((0, 0, 0), 1.0),
        halo=halo,
        geometry=_geometry_property(el),
    )


_symbolizer_parsers = {
    'PolygonSymbolizer': _parse_polygon_symbolizer,
    'LineSymbolizer': _parse_line_symbolizer,
    'PointSymbolizer': _parse_point_symbolizer,
    'TextSymbolizer': _parse_text_symbolizer,
}


def _parse_filter_op(el):
    name = _local(el)
    if name in _comparison_ops:
        prop = _text(_child(el, 'PropertyName'))
        if prop is None:
            raise SLDParseError('%s without PropertyName' % name)
        return PropertyFilter(_comparison_ops[name], prop, _text(_child(el, 'Literal')))
    if name in _logical_ops:
        filters = [_parse_filter_op(c) for c in el if isinstance(c.tag, str)]
        if not filters:
            raise SLDParseError('empty %s filter' % name)
        return LogicalFilter(_logical_ops[name], tuple(filters))
    raise SLDParseError('unsupported filter %s' % name)


def _parse_filter(el):
    if el is None:
        return None
    ops = [c for c in el if isinstance(c.tag, str)]
    if len(ops) != 1:
        raise SLDParseError('Filter requires exactly one operator')
    return _parse_filter_op(ops[0])


def _parse_rule(el):
    symbolizers = []
    for c in el:
        if not isinstance(c.tag, str):
            continue
        parser = _symbolizer_parsers.get(_local(c))
        if parser is not None:
            symbolizers.append(parser(c))
    min_scale = _text(_child(el, 'MinScaleDenominator'))
    max_scale = _text(_child(el, 'MaxScaleDenominator'))
    return Rule(
        name=_text(_child(el, 'Name')),
        filter=_parse_filter(_child(el, 'Filter')),
        min_scale=_float(min_scale, None),
        max_scale=_float(max_scale, None),
        symbolizers=tuple(symbolizers),
        else_filter=_child(el, 'ElseFilter') is not None,
    )


def parse_sld(doc, name=None):
    """
    Parse the SLD `doc` (bytes, str or file object) into a `StyleDescriptor`.

    :raises SLDParseError: if the document is not a valid SLD
    """
    if isinstance(doc, str):
        doc = doc.encode('utf-8')
    if isinstance(doc, bytes):
        doc = BytesIO(doc)
    try:
        tree = etree.parse(doc, parser=etree.XMLParser(resolve_entities=False, no_network=True))
    except etree.XMLSyntaxError as ex:
        raise SLDParseError('invalid SLD: %s' % ex)

    styles = _descendants(tree.getroot(), 'UserStyle')
    if not styles:
        raise SLDParseError('no UserStyle found')
    style = styles[0]

    rules = []
    for fts in _children(style, 'FeatureTypeStyle'):
        for rule in _children(fts, 'Rule'):
            rules.append(_parse_rule(rule))

    if not rules:
        raise SLDParseError('no rules found')

    if name is None:
        name = _text(_child(style, 'Name'))
    log.debug('parsed SLD style %s with %d rules', name, len(rules))
    return StyleDescriptor(name, rules)
