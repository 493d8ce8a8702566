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
Caching of rendered tile images.

.. digraph:: Schematic Call Graph

    ranksep = 0.1;
    node [shape="box", height="0", width="0"]

    ts  [label="TileService" href="<featuretiles.service.tile.TileService>"]
    tc  [label="TileCache",  href="<featuretiles.cache.tile.TileCache>"];
    cs  [label="CacheStore", href="<featuretiles.cache.base.CacheStore>"];
    r   [label="Rasterizer", href="<featuretiles.image.render.Rasterizer>"];

    {
        ts -> tc [label="get\\nstore_image"];
        tc -> cs [label="get\\nset"];
        ts -> r  [label="draw"]
    }

"""
