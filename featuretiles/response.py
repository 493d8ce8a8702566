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
Service responses.
"""

import hashlib


class Response(object):
    charset = 'utf-8'
    default_content_type = 'text/plain'

    def __init__(self, response, status=None, content_type=None, mimetype=None):
        self.response = response
        if status is None:
            status = 200
        self.status = status
        self.headers = {}
        if mimetype:
            if mimetype.startswith('text/'):
                content_type = mimetype + '; charset=' + self.charset
            else:
                content_type = mimetype
        if content_type is None:
            content_type = self.default_content_type
        self.headers['Content-type'] = content_type

    def _status_set(self, status):
        if isinstance(status, int):
            status = status_code(status)
        self._status = status

    def _status_get(self):
        return self._status

    status = property(_status_get, _status_set)

    @property
    def status_code(self):
        return int(self._status.split(' ', 1)[0])

    def _etag_set(self, value):
        self.headers['ETag'] = value

    def _etag_get(self):
        return self.headers.get('ETag', None)

    etag = property(_etag_get, _etag_set)

    def cache_headers(self, etag_data=None, max_age=None, no_cache=False):
        """
        Set cache-related headers.

        :param etag_data: list that will be used to build an ETag hash.
            calls the str function on each item.
        :param max_age: the maximum cache age in seconds
        :param no_cache: forbid any caching (client specific responses)
        """
        if no_cache:
            assert not max_age
            self.headers['Cache-Control'] = 'no-cache, no-store'
            self.headers['Pragma'] = 'no-cache'
            self.headers['Expires'] = '-1'
            return

        if etag_data:
            hash_src = ''.join((str(x) for x in etag_data)).encode('utf-8')
            self.etag = hashlib.md5(hash_src, usedforsecurity=False).hexdigest()

        if max_age is not None:
            self.headers['Cache-control'] = 'public, max-age=%d, s-maxage=%d' % (max_age, max_age)

    @property
    def content_type(self):
        return self.headers['Content-type']

    @property
    def data(self):
        if isinstance(self.response, bytes):
            return self.response
        if isinstance(self.response, str):
            return self.response.encode(self.charset)
        return b''.join(self.iter_encode(self.response))

    @property
    def fixed_headers(self):
        return [(key, str(value)) for key, value in self.headers.items()]

    def __call__(self, environ, start_response):
        if not self.response:
            resp_iter = iter([])
        elif isinstance(self.response, (str, bytes)):
            data = self.data
            self.headers['Content-length'] = str(len(data))
            resp_iter = iter([data])
        else:
            resp_iter = self.iter_encode(self.response)

        start_response(self.status, self.fixed_headers)
        return resp_iter

    def iter_encode(self, chunks):
        for chunk in chunks:
            if isinstance(chunk, str):
                chunk = chunk.encode(self.charset)
            yield chunk


_status_codes = {
    200: 'OK',
    204: 'No Content',
    304: 'Not Modified',
    400: 'Bad Request',
    403: 'Forbidden',
    404: 'Not Found',
    405: 'Method Not Allowed',
    500: 'Internal Server Error',
    502: 'Bad Gateway',
    503: 'Service Unavailable',
    504: 'Gateway Time-out',
}


def status_code(code):
    return str(code) + ' ' + _status_codes[code]
