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
Rendering rules for feature layers.

A `StyleDescriptor` is the parsed form of an SLD document: an ordered
list of rules, each with an optional filter, an optional scale range and
the symbolizers that draw the matching features. All parts are immutable.
"""
from collections import namedtuple


Fill = namedtuple('Fill', ['color', 'opacity'])
Fill.__new__.__defaults__ = ((128, 128, 128), 1.0)

Stroke = namedtuple('Stroke', ['color', 'width', 'opacity', 'dasharray', 'linejoin', 'linecap'])
Stroke.__new__.__defaults__ = ((0, 0, 0), 1.0, 1.0, None, 'miter', 'butt')

PolygonSymbolizer = namedtuple('PolygonSymbolizer', ['fill', 'stroke', 'geometry'])
PolygonSymbolizer.__new__.__defaults__ = (None, None, None)

LineSymbolizer = namedtuple('LineSymbolizer', ['stroke', 'geometry'])
LineSymbolizer.__new__.__defaults__ = (None, None)

PointSymbolizer = namedtuple('PointSymbolizer', ['mark', 'size', 'fill', 'stroke', 'geometry'])
PointSymbolizer.__new__.__defaults__ = ('square', 6.0, None, None, None)

TextSymbolizer = namedtuple('TextSymbolizer', ['label', 'font_size', 'fill', 'halo', 'geometry'])
TextSymbolizer.__new__.__defaults__ = (10.0, None, None, None)

Halo = namedtuple('Halo', ['radius', 'fill'])


class PropertyFilter(namedtuple('PropertyFilter', ['op', 'property', 'value'])):
    """
    Comparison of a feature property against a literal.
    """
    def matches(self, properties):
        value = properties.get(self.property)
        if self.op == 'null':
            return value is None
        if value is None:
            return False
        literal = self.value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                literal = float(literal)
            except (TypeError, ValueError):
                value = str(value)
        else:
            value = str(value)
        if self.op == 'eq':
            return value == literal
        if self.op == 'ne':
            return value != literal
        try:
            if self.op == 'lt':
                return value < literal
            if self.op == 'le':
                return value <= literal
            if self.op == 'gt':
                return value > literal
            if self.op == 'ge':
                return value >= literal
        except TypeError:
            return False
        raise ValueError('unknown filter operator %s' % self.op)


class LogicalFilter(namedtuple('LogicalFilter', ['op', 'filters'])):
    def matches(self, properties):
        if self.op == 'and':
            return all(f.matches(properties) for f in self.filters)
        if self.op == 'or':
            return any(f.matches(properties) for f in self.filters)
        if self.op == 'not':
            return not self.filters[0].matches(properties)
        raise ValueError('unknown logical operator %s' % self.op)


class Rule(namedtuple('Rule', ['name', 'filter', 'min_scale', 'max_scale',
                               'symbolizers', 'else_filter'])):
    def applies_to_scale(self, scale):
        if scale is None:
            return True
        if self.min_scale is not None and scale < self.min_scale:
            return False
        if self.max_scale is not None and scale >= self.max_scale:
            return False
        return True


Rule.__new__.__defaults__ = (None, None, None, (), False)


class StyleDescriptor(object):
    """
    Named, immutable set of rendering rules.
    """
    __slots__ = ('name', 'rules')

    def __init__(self, name, rules):
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'rules', tuple(rules))

    def __setattr__(self, name, value):
        raise AttributeError('StyleDescriptor is immutable')

    def rules_for(self, properties, scale=None):
        """
        Return the rules that apply to a feature with `properties`.
        Else-rules apply when no other rule matched.
        """
        matched = []
        else_rules = []
        for rule in self.rules:
            if not rule.applies_to_scale(scale):
                continue
            if rule.else_filter:
                else_rules.append(rule)
            elif rule.filter is None or rule.filter.matches(properties):
                matched.append(rule)
        return matched or else_rules

    def __repr__(self):
        return 'StyleDescriptor(%r, rules=%d)' % (self.name, len(self.rules))
