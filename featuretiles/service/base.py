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
Service handler (tiles, features).
"""
from featuretiles.exception import RequestError, InvalidInput

import logging
log = logging.getLogger('featuretiles.service')


class Server(object):
    names = tuple()

    def __init__(self, layers):
        self.layers = layers

    def handle(self, req):
        try:
            return self.handle_request(req)
        except RequestError as e:
            if e.internal:
                log.error('%s request failed: %s', self.names[0], e.msg,
                          exc_info=e.__cause__ or e)
            else:
                log.info('invalid %s request: %s', self.names[0], e.msg)
            return e.render()

    def handle_request(self, req):
        raise NotImplementedError

    def required_param(self, req, name):
        value = req.args.get(name)
        if value is None or value == '':
            raise InvalidInput('missing parameter %s' % name)
        return value

    def layer(self, req):
        layer_id = self.required_param(req, 'layer')
        layer = self.layers.get(layer_id)
        if layer is None:
            raise RequestError('unknown layer: %s' % layer_id, status=404)
        return layer
