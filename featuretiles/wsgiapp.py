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
The WSGI application.
"""
import os
import re
import sys

from werkzeug.debug import DebuggedApplication

from featuretiles.request.base import Request
from featuretiles.response import Response
from featuretiles.config import local_base_config
from featuretiles.config.loader import load_configuration, ConfigurationError
from featuretiles.version import version

import logging
log = logging.getLogger('featuretiles.config')
log_wsgiapp = logging.getLogger('featuretiles.wsgiapp')


def init_logging_system(log_conf, base_dir):
    import logging.config
    if log_conf:
        if not os.path.exists(log_conf):
            print('ERROR: log configuration %s not found.' % log_conf, file=sys.stderr)
            return
        logging.config.fileConfig(log_conf, dict(here=base_dir))


def make_wsgi_app(services_conf=None, debug=False, log_conf=None):
    """
    Create a FeatureTilesApp with the given services conf.

    :param services_conf: the file name of the featuretiles.yaml configuration
    :param log_conf: optional logging configuration (INI), relative paths
        are resolved against the directory of `services_conf`
    """
    if log_conf:
        base_dir = os.path.abspath(os.path.dirname(services_conf))
        init_logging_system(os.path.join(base_dir, log_conf), base_dir)

    try:
        conf = load_configuration(services_conf)
        services = conf.configured_services()
    except ConfigurationError as e:
        log.fatal(e)
        raise

    app = FeatureTilesApp(services, conf.base_config)
    if debug:
        conf.base_config.debug_mode = True
        app = DebuggedApplication(app, evalex=True)
    return app


class FeatureTilesApp(object):
    """
    The FeatureTiles WSGI application.
    """
    handler_path_re = re.compile(r'^/(\w+)')

    def __init__(self, services, base_config):
        self.handlers = {}
        self.base_config = base_config
        for service in services:
            for name in service.names:
                self.handlers[name] = service

    def __call__(self, environ, start_response):
        resp = None
        req = Request(environ)

        with local_base_config(self.base_config):
            match = self.handler_path_re.match(req.path)
            if match:
                handler_name = match.group(1)
                if handler_name in self.handlers:
                    try:
                        resp = self.handlers[handler_name].handle(req)
                    except Exception:
                        if self.base_config.debug_mode:
                            raise
                        else:
                            log_wsgiapp.fatal('fatal error in %s for %s %s',
                                handler_name, environ.get('PATH_INFO'), environ.get('QUERY_STRING'), exc_info=True)
                            resp = Response('internal error', status=500)
            if resp is None:
                if req.path in ('', '/'):
                    resp = self.welcome_response(req.script_url)
                else:
                    resp = Response('not found', mimetype='text/plain', status=404)
            return resp(environ, start_response)

    def welcome_response(self, script_url):
        html = "<html><body><h1>Welcome to FeatureTiles %s</h1>" % version
        for name in sorted(self.handlers):
            html += '<p><a href="%s/%s">%s</a></p>' % (script_url, name, name)
        html += "</body></html>"
        return Response(html, mimetype='text/html')
