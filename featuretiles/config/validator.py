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

import json
import os.path
from typing import Iterable

from jsonschema.exceptions import ValidationError
from jsonschema.validators import Draft202012Validator

import logging
log = logging.getLogger('featuretiles.config')


with open(os.path.join(os.path.dirname(__file__), 'config-schema.json')) as schema_file:
    schema = json.load(schema_file)


def get_error_messages(errors: Iterable[ValidationError]) -> list[str]:
    msgs = []
    for error in errors:
        path = error.json_path.replace('$', 'root')
        msg = f'{error.message} in {path}'
        msgs.append(msg)
        if error.context is not None:
            msgs += get_error_messages(error.context)
    return msgs


def validate(conf_dict: dict) -> list[str]:
    validator = Draft202012Validator(schema=schema)
    errors_iter = validator.iter_errors(conf_dict)
    errors = [] if errors_iter is None else get_error_messages(errors_iter)

    layers_conf = conf_dict.get('layers')

    if not isinstance(layers_conf, list):
        return errors
    return errors + _validate_layer_ids(layers_conf)


def _validate_layer_ids(layers_conf: list) -> list[str]:
    errors = []
    seen = set()
    for layer in layers_conf:
        if not isinstance(layer, dict) or 'id' not in layer:
            continue
        layer_id = str(layer['id'])
        if layer_id in seen:
            errors.append(f'Layer {layer_id} is configured more than once')
        seen.add(layer_id)
    return errors
