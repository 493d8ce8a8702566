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
HTTP access to remote feature services.
"""
import time

import requests

from featuretiles.config import base_config
from featuretiles.version import version
from featuretiles.client.log import log_request


class HTTPClientError(Exception):
    def __init__(self, arg, response_code=None, full_msg=None):
        Exception.__init__(self, arg)
        self.response_code = response_code
        self.full_msg = full_msg


class HTTPClient(object):
    def __init__(self, url=None, username=None, password=None, insecure=None,
                 ssl_ca_certs=None, timeout=None, headers=None, hide_error_details=False,
                 session=None):
        http_conf = base_config().http
        self._timeout = timeout if timeout is not None else http_conf.client_timeout
        if insecure is None:
            insecure = http_conf.ssl_no_cert_checks
        self.session = session or requests.Session()
        self.session.headers['User-Agent'] = 'FeatureTiles-%s' % (version, )
        if headers:
            self.session.headers.update(headers)
        if username is not None and password is not None:
            self.session.auth = (username, password)
        if insecure:
            self.session.verify = False
        elif ssl_ca_certs:
            self.session.verify = ssl_ca_certs
        self.hide_error_details = hide_error_details

    def open(self, url, params=None, data=None):
        code = None
        result = None
        method = 'POST' if data is not None else 'GET'
        start_time = time.time()
        try:
            result = self.session.request(method, url, params=params, data=data,
                                          timeout=self._timeout)
            code = result.status_code
            result.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise self.handle_url_exception(url, 'HTTP Error', str(code), response_code=code) from e
        except requests.exceptions.SSLError as e:
            raise self.handle_url_exception(url, 'Could not verify connection to URL', e) from e
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise self.handle_url_exception(url, 'No response from URL', e) from e
        except (requests.exceptions.InvalidURL, requests.exceptions.MissingSchema,
                ValueError) as e:
            raise self.handle_url_exception(url, 'URL not correct', e) from e
        except requests.exceptions.RequestException as e:
            raise self.handle_url_exception(url, 'Internal HTTP error', repr(e)) from e
        else:
            if code == 204:
                raise HTTPClientError('HTTP Error "204 No Content"', response_code=204)
            return result
        finally:
            log_url = result.url if result is not None else url
            log_request(log_url, code, result, duration=time.time()-start_time, method=method)

    def open_json(self, url, params=None):
        resp = self.open(url, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise self.handle_url_exception(url, 'Invalid JSON response', e) from e

    def handle_url_exception(self, url, message, reason, response_code=None):
        full_msg = '%s "%s": %s' % (message, url, reason)
        if self.hide_error_details:
            return HTTPClientError(
                '{} (see logs for URL and reason).'.format(message),
                response_code=response_code,
                full_msg=full_msg,
            )
        else:
            return HTTPClientError(
                full_msg,
                response_code=response_code,
            )
