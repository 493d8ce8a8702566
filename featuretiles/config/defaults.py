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

debug_mode = False

srs = dict(
    default_srs = 'EPSG:3857',
)

image = dict(
    format = 'png',
    jpeg_quality = 90,
    # drawing happens at size * antialias_factor and is scaled down afterwards
    antialias_factor = 4,
    tile_size = (256, 256),
    font_size = 11,
    font_file = None,
    # largest tile that is rendered, before antialiasing
    max_size = (2048, 2048),
)

cache = dict(
    type = 'memory',
    prefix = 'WFSImage',
    persistent_ttl = 86400,
    temporary_ttl = 3600,
    # memory cache only
    max_entries = 10000,
    host = 'localhost',
    port = 6379,
    db = 0,
)

custom_style = dict(
    prefix = 'oskari_custom',
    store_prefix = 'WFSCustomStyle',
    highlight_color = '#ffde00',
    store_ttl = 86400,
)

features = dict(
    content_type = 'application/vnd.geo+json',
    decimals_degree = 7,
    decimals_other = 2,
)

http = dict(
    client_timeout = 60,
    ssl_no_cert_checks = False,
)

