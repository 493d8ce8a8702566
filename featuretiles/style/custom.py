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
Client specific ("custom") styles.

Clients store their own colors and line settings for a layer. These
values are substituted into the built-in ``sld_custom.xml`` template
and parsed into a `StyleDescriptor` for each request.
"""
import json
from importlib import resources as importlib_resources

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from jinja2.exceptions import TemplateError
from jsonschema.exceptions import ValidationError
from jsonschema.validators import Draft202012Validator

from featuretiles.cache.base import CacheBackendError
from featuretiles.config import base_config
from featuretiles.style.sld import parse_sld, SLDParseError

import logging
log = logging.getLogger('featuretiles.style')

CUSTOM_SLD = 'sld_custom.xml'

_color = {'type': 'string', 'pattern': '^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$'}
_dasharray = {'type': ['string', 'null'], 'pattern': r'^[0-9.]+([ ,]+[0-9.]+)*$'}
_linejoin = {'enum': ['miter', 'round', 'bevel', 'mitre']}
_linecap = {'enum': ['butt', 'round', 'square']}

custom_style_schema = {
    'type': 'object',
    'additionalProperties': False,
    'properties': {
        'fill_color': _color,
        'fill_opacity': {'type': 'number', 'minimum': 0, 'maximum': 1},
        'fill_pattern': {'enum': ['solid', 'none']},
        'border_color': _color,
        'border_width': {'type': 'number', 'minimum': 0, 'maximum': 50},
        'border_linejoin': _linejoin,
        'border_dasharray': _dasharray,
        'stroke_color': _color,
        'stroke_width': {'type': 'number', 'minimum': 0, 'maximum': 50},
        'stroke_linejoin': _linejoin,
        'stroke_linecap': _linecap,
        'stroke_dasharray': _dasharray,
        'dot_color': _color,
        'dot_shape': {'enum': ['circle', 'square', 'triangle', 'star', 'cross', 'x']},
        'dot_size': {'type': 'number', 'exclusiveMinimum': 0, 'maximum': 100},
    },
}

DEFAULT_CUSTOM_STYLE = {
    'fill_color': '#ffde00',
    'fill_opacity': 0.7,
    'fill_pattern': 'solid',
    'border_color': '#000000',
    'border_width': 1,
    'border_linejoin': 'miter',
    'border_dasharray': None,
    'stroke_color': '#3233ff',
    'stroke_width': 1,
    'stroke_linejoin': 'miter',
    'stroke_linecap': 'butt',
    'stroke_dasharray': None,
    'dot_color': '#000000',
    'dot_shape': 'square',
    'dot_size': 6,
}


class CustomStyleError(Exception):
    pass


def validate_custom_style(values):
    """
    Validate `values` against the custom style schema and return them
    merged with `DEFAULT_CUSTOM_STYLE`.

    :raises CustomStyleError: for invalid values
    """
    validator = Draft202012Validator(schema=custom_style_schema)
    errors = sorted(validator.iter_errors(values), key=lambda e: e.json_path)
    if errors:
        msgs = ['%s in %s' % (e.message, e.json_path.replace('$', 'root')) for e in errors]
        raise CustomStyleError('; '.join(msgs))
    style = dict(DEFAULT_CUSTOM_STYLE)
    style.update(values)
    return style


class CustomStyleContext(object):
    """
    Per-request state of a custom style: who asked for which layer and
    how the geometry property of that layer is called.
    """
    def __init__(self, client_id, layer_id, geometry_property, is_highlight=False,
                 values=None):
        self.client_id = client_id
        self.layer_id = layer_id
        self.geometry_property = geometry_property
        self.is_highlight = is_highlight
        self.values = values if values is not None else {}

    def __repr__(self):
        return 'CustomStyleContext(client=%r, layer=%r, geometry=%r, highlight=%r)' % (
            self.client_id, self.layer_id, self.geometry_property, self.is_highlight)


class CustomStyleStore(object):
    """
    Stores the custom style values of a client for a layer as JSON in
    a `CacheStore`.
    """
    def __init__(self, store, prefix=None, ttl=None):
        self.store = store
        self.prefix = prefix or base_config().custom_style.store_prefix
        self.ttl = ttl or base_config().custom_style.store_ttl

    def _key(self, client_id, layer_id):
        return ('%s_%s_%s' % (self.prefix, client_id, layer_id)).encode('utf-8')

    def save(self, client_id, layer_id, values):
        values = validate_custom_style(values)
        self.store.set(self._key(client_id, layer_id),
                       json.dumps(values).encode('utf-8'), self.ttl)

    def load(self, client_id, layer_id):
        """
        Return the stored values or ``None``.

        :raises CustomStyleError: if the stored document is not valid JSON
        """
        try:
            data = self.store.get(self._key(client_id, layer_id))
        except CacheBackendError as ex:
            log.warning('could not load custom style for %s/%s: %s', client_id, layer_id, ex)
            return None
        if data is None:
            return None
        try:
            values = json.loads(data.decode('utf-8'))
        except ValueError as ex:
            raise CustomStyleError('JSON parsing failed for custom style: %s' % ex)
        if not isinstance(values, dict):
            raise CustomStyleError('custom style is not a JSON object')
        return values


def _template_env():
    template_dir = importlib_resources.files('featuretiles.style').joinpath('templates')
    return Environment(
        loader=FileSystemLoader([str(template_dir)]),
        autoescape=select_autoescape(['xml']),
        undefined=StrictUndefined,
    )


class CustomStyleTemplater(object):
    """
    Builds a `StyleDescriptor` from the custom SLD template.
    """
    def __init__(self, template_name=CUSTOM_SLD, highlight_color=None):
        self.template_name = template_name
        self._highlight_color = highlight_color
        self._env = None

    @property
    def highlight_color(self):
        return self._highlight_color or base_config().custom_style.highlight_color

    @property
    def env(self):
        if self._env is None:
            self._env = _template_env()
        return self._env

    def render(self, context, style_name=None):
        """
        Return the SLD document for `context`.

        :raises CustomStyleError: if the template or the values are invalid
        """
        if not context.geometry_property:
            raise CustomStyleError('no geometry property for layer %s' % context.layer_id)
        style = validate_custom_style(context.values)
        try:
            template = self.env.get_template(self.template_name)
            return template.render(
                layer_id=context.layer_id,
                client_id=context.client_id,
                style_name=style_name or base_config().custom_style.prefix,
                geometry=context.geometry_property,
                highlight=context.is_highlight,
                highlight_color=self.highlight_color,
                style=style,
            )
        except TemplateError as ex:
            raise CustomStyleError('failed to render %s: %s' % (self.template_name, ex))

    def build(self, context, style_name=None):
        """
        Return the custom `StyleDescriptor` for `context` or ``None``
        if it could not be built.
        """
        try:
            xml = self.render(context, style_name=style_name)
            return parse_sld(xml, name=style_name)
        except (CustomStyleError, SLDParseError, ValidationError) as ex:
            log.error('failed to create custom style for %r: %s', context, ex)
            return None
