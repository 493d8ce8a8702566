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
Feature sources for layers.
"""

import logging
log = logging.getLogger('featuretiles.source')


class SourceError(Exception):
    pass


class FeatureSource(object):
    """
    Base class of all feature sources.

    Subclasses implement `load_features` and return the features of the
    query bbox in the query SRS.
    """

    def get_features(self, query, layer=None, user_id=None, content_processor=None):
        """
        Return a `FeatureCollection` for `query`.

        :param content_processor: optional callable that receives and
            returns the retrieved `FeatureCollection`
        :raises SourceError: if the features could not be retrieved
        """
        features = self.load_features(query, layer=layer, user_id=user_id)
        if content_processor is not None:
            features = content_processor(features)
        return features

    def load_features(self, query, layer=None, user_id=None):
        raise NotImplementedError
