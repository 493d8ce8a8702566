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
Selection of the style for a layer request.

The precedence of the three style kinds is kept in one table,
`StyleResolver.handlers`:

1. ``CUSTOM``: the style name starts with the custom style prefix and the
   request belongs to a client. Built from the client's stored values.
2. ``HIGHLIGHT``: a highlight style was requested. The selection style of
   the layer or the built-in highlight style.
3. ``DEFAULT``: the named style of the layer, the ``default`` style of the
   layer or the built-in default style.
"""
import enum
import threading
from importlib import resources as importlib_resources

from featuretiles.config import base_config
from featuretiles.exception import StyleUnresolved
from featuretiles.style import StyleDescriptor
from featuretiles.style.custom import CustomStyleContext, CustomStyleError
from featuretiles.style.sld import parse_sld, SLDParseError

import logging
log = logging.getLogger('featuretiles.style')

DEFAULT_STYLE_NAME = 'default'
HIGHLIGHT_STYLE_NAME = 'highlight'

_builtin_styles = {}
_builtin_lock = threading.Lock()


def builtin_style(name):
    """
    Return the built-in style `name` (``default`` or ``highlight``).
    Built-in styles are parsed once, `StyleDescriptor` is immutable.
    """
    with _builtin_lock:
        if name not in _builtin_styles:
            sld = importlib_resources.files('featuretiles.style').joinpath(
                'templates', 'sld_%s.xml' % name).read_bytes()
            _builtin_styles[name] = parse_sld(sld, name=name)
        return _builtin_styles[name]


class StyleKind(enum.Enum):
    DEFAULT = 'default'
    HIGHLIGHT = 'highlight'
    CUSTOM = 'custom'


class StyleResolver(object):
    """
    Returns a complete `StyleDescriptor` for a layer request or ``None``.

    :param templater: `CustomStyleTemplater` for custom styles
    :param custom_store: `CustomStyleStore` with the stored client values,
        custom styles of clients without stored values are unresolved
    """
    def __init__(self, templater=None, custom_store=None, custom_prefix=None):
        self.templater = templater
        self.custom_store = custom_store
        self.custom_prefix = custom_prefix or base_config().custom_style.prefix
        self.handlers = {
            StyleKind.CUSTOM: self._custom_style,
            StyleKind.HIGHLIGHT: self._highlight_style,
            StyleKind.DEFAULT: self._default_style,
        }

    def style_kind(self, style_name, highlight_style_name=None, client_id=None):
        if style_name and style_name.startswith(self.custom_prefix) and client_id:
            return StyleKind.CUSTOM
        if highlight_style_name is not None:
            return StyleKind.HIGHLIGHT
        return StyleKind.DEFAULT

    def resolve(self, layer, style_name, highlight_style_name=None, client_id=None):
        kind = self.style_kind(style_name, highlight_style_name, client_id)
        try:
            style = self.handlers[kind](layer, style_name, highlight_style_name, client_id)
        except StyleUnresolved as ex:
            log.error('no %s style for layer %s (style %r, client %r): %s',
                      kind.value, layer.id, style_name, client_id, ex)
            return None
        if not isinstance(style, StyleDescriptor):
            log.error('no %s style for layer %s (style %r)', kind.value, layer.id, style_name)
            return None
        log.debug('resolved %s style %s for layer %s', kind.value, style.name, layer.id)
        return style

    def _custom_style(self, layer, style_name, highlight_style_name, client_id):
        if self.templater is None:
            raise StyleUnresolved('custom styles not configured')
        if self.custom_store is None:
            raise StyleUnresolved('no custom style store configured')
        try:
            values = self.custom_store.load(client_id, layer.id)
        except CustomStyleError as ex:
            raise StyleUnresolved(str(ex))
        if values is None:
            raise StyleUnresolved('no custom style stored for client %s' % client_id)
        context = CustomStyleContext(
            client_id=client_id,
            layer_id=layer.id,
            geometry_property=layer.geometry_property,
            is_highlight=highlight_style_name is not None,
            values=values,
        )
        style = self.templater.build(context, style_name=style_name)
        if style is None:
            raise StyleUnresolved('failed to build custom style')
        return style

    def _highlight_style(self, layer, style_name, highlight_style_name, client_id):
        if layer.selection_style is not None:
            return layer.selection_style
        return self._builtin(HIGHLIGHT_STYLE_NAME)

    def _default_style(self, layer, style_name, highlight_style_name, client_id):
        styles = layer.styles or {}
        if style_name in styles:
            return styles[style_name]
        if DEFAULT_STYLE_NAME in styles:
            return styles[DEFAULT_STYLE_NAME]
        return self._builtin(DEFAULT_STYLE_NAME)

    def _builtin(self, name):
        try:
            return builtin_style(name)
        except (OSError, SLDParseError) as ex:
            raise StyleUnresolved('built-in %s style: %s' % (name, ex))
