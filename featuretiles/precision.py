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
Number of decimal places used when writing out feature coordinates.
"""
from featuretiles.config import base_config
from featuretiles.srs import SRS

# degrees: ~11mm at the equator, more precise elsewhere
NUM_DECIMAL_PLACES_DEGREE = 7
# metres, feet, what have you: 10mm
NUM_DECIMAL_PLACES_OTHER = 2


def decimals_for(srs):
    """
    Return the maximum number of decimal places for coordinates in `srs`.

    The number depends on the unit of measure of the first axis:
    ``NUM_DECIMAL_PLACES_DEGREE`` for angular units, ``NUM_DECIMAL_PLACES_OTHER``
    for everything else.

    >>> decimals_for('EPSG:4326')
    7
    >>> decimals_for('EPSG:3857')
    2
    """
    srs = SRS(srs)
    conf = base_config().features
    if srs.is_angular:
        return conf.get('decimals_degree', NUM_DECIMAL_PLACES_DEGREE)
    return conf.get('decimals_other', NUM_DECIMAL_PLACES_OTHER)
