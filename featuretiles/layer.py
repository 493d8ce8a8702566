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
Feature layers.
"""


class LayerDescriptor(object):
    """
    A configured feature layer.

    :param styles: dict with style name -> `StyleDescriptor`
    :param selection_style: `StyleDescriptor` for highlighted features or ``None``
    :param source: the `FeatureSource` of this layer
    """
    def __init__(self, id, title=None, srs=None, geometry_property='geometry',
                 styles=None, selection_style=None, source=None):
        self.id = str(id)
        self.title = title or self.id
        self.srs = srs
        self.geometry_property = geometry_property
        self.styles = styles or {}
        self.selection_style = selection_style
        self.source = source

    def __repr__(self):
        return 'LayerDescriptor(%r, styles=%r)' % (self.id, sorted(self.styles))
