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

import pytest

from featuretiles.config import local_base_config
from featuretiles.config.config import load_default_config


def pytest_configure(config):
    import sys
    sys._called_from_pytest = True


def pytest_unconfigure(config):
    import sys
    del sys._called_from_pytest


@pytest.fixture
def base_config(tmpdir):
    """
    Fresh default configuration, active for the test.
    """
    conf = load_default_config()
    conf.conf_base_dir = tmpdir.strpath
    with local_base_config(conf):
        yield conf
