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

import pytest
import requests

from featuretiles.client.http import HTTPClient, HTTPClientError
from featuretiles.query import FeatureQuery
from featuretiles.source import SourceError
from featuretiles.source.http import crs_uri, HTTPFeatureSource
from featuretiles.srs import SRS


class FakeResponse(object):
    def __init__(self, url, status_code=200, body=b''):
        self.url = url
        self.status_code = status_code
        self.body = body
        self.headers = {'Content-length': str(len(body))}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError('%d error' % self.status_code)

    def json(self):
        return json.loads(self.body)


class FakeSession(object):
    def __init__(self, status_code=200, body=b'', exc=None):
        self.headers = {}
        self.auth = None
        self.verify = True
        self.status_code = status_code
        self.body = body
        self.exc = exc
        self.requests = []

    def request(self, method, url, params=None, data=None, timeout=None):
        self.requests.append((method, url, params, timeout))
        if self.exc is not None:
            raise self.exc
        return FakeResponse(url, self.status_code, self.body)


class TestHTTPClient(object):

    def test_open_json(self):
        session = FakeSession(body=b'{"type": "FeatureCollection"}')
        client = HTTPClient(timeout=5, session=session, headers={'X-Test': '1'})
        assert client.open_json('http://localhost/items', params={'f': 'json'}) == {
            'type': 'FeatureCollection'}
        assert session.requests == [('GET', 'http://localhost/items', {'f': 'json'}, 5)]
        assert session.headers['User-Agent'].startswith('FeatureTiles-')
        assert session.headers['X-Test'] == '1'

    def test_default_timeout(self, base_config):
        base_config.http.client_timeout = 12
        session = FakeSession(body=b'{}')
        HTTPClient(session=session).open('http://localhost/')
        assert session.requests[0][3] == 12

    def test_auth_and_insecure(self):
        session = FakeSession()
        HTTPClient(username='user', password='secret', insecure=True, session=session)
        assert session.auth == ('user', 'secret')
        assert session.verify is False

    def test_http_error(self):
        client = HTTPClient(session=FakeSession(status_code=500))
        with pytest.raises(HTTPClientError) as exc_info:
            client.open('http://localhost/items')
        assert exc_info.value.response_code == 500
        assert 'HTTP Error' in exc_info.value.args[0]

    def test_no_content(self):
        client = HTTPClient(session=FakeSession(status_code=204))
        with pytest.raises(HTTPClientError) as exc_info:
            client.open('http://localhost/items')
        assert exc_info.value.response_code == 204

    def test_connection_error(self):
        session = FakeSession(exc=requests.exceptions.ConnectionError('refused'))
        client = HTTPClient(session=session)
        with pytest.raises(HTTPClientError) as exc_info:
            client.open('http://localhost/items')
        assert 'No response from URL' in exc_info.value.args[0]
        assert isinstance(exc_info.value.__cause__, requests.exceptions.ConnectionError)

    def test_hide_error_details(self):
        session = FakeSession(exc=requests.exceptions.Timeout('timeout'))
        client = HTTPClient(session=session, hide_error_details=True)
        with pytest.raises(HTTPClientError) as exc_info:
            client.open('http://secret.example/items')
        assert 'secret.example' not in exc_info.value.args[0]
        assert 'secret.example' in exc_info.value.full_msg

    def test_invalid_json(self):
        client = HTTPClient(session=FakeSession(body=b'<html>'))
        with pytest.raises(HTTPClientError) as exc_info:
            client.open_json('http://localhost/items')
        assert 'Invalid JSON response' in exc_info.value.args[0]


class TestHTTPFeatureSource(object):
    doc = {
        'type': 'FeatureCollection',
        'features': [{'type': 'Feature', 'id': 'a', 'properties': {'name': 'A'},
                      'geometry': {'type': 'Point', 'coordinates': [385000, 6675000]}}],
    }

    def source(self, protocol='ogcapi', **kw):
        session = FakeSession(body=json.dumps(self.doc).encode('utf-8'), **kw)
        client = HTTPClient(session=session)
        return HTTPFeatureSource('http://localhost/items', protocol=protocol,
                                 params={'limit': 1000}, client=client), session

    def test_ogcapi(self):
        source, session = self.source()
        query = FeatureQuery((370000.0, 6660000.0, 400000.0, 6690000.0), SRS(3067))
        features = source.get_features(query)
        assert [f.id for f in features] == ['a']
        assert features.srs == SRS(3067)
        params = session.requests[0][2]
        assert params == {
            'limit': 1000,
            'bbox': '370000.0,6660000.0,400000.0,6690000.0',
            'bbox-crs': 'http://www.opengis.net/def/crs/EPSG/0/3067',
            'crs': 'http://www.opengis.net/def/crs/EPSG/0/3067',
            'f': 'json',
        }

    def test_wfs(self):
        source, session = self.source(protocol='wfs')
        query = FeatureQuery((370000.0, 6660000.0, 400000.0, 6690000.0), SRS(3067))
        source.get_features(query)
        params = session.requests[0][2]
        assert params['request'] == 'GetFeature'
        assert params['srsName'] == 'EPSG:3067'
        assert params['bbox'] == '370000.0,6660000.0,400000.0,6690000.0,EPSG:3067'

    def test_error(self):
        source, _ = self.source(status_code=503)
        query = FeatureQuery((370000.0, 6660000.0, 400000.0, 6690000.0), SRS(3067))
        with pytest.raises(SourceError):
            source.get_features(query)

    def test_unsupported_protocol(self):
        with pytest.raises(ValueError):
            HTTPFeatureSource('http://localhost/', protocol='wms')


def test_crs_uri():
    assert crs_uri(SRS(4326)) == 'http://www.opengis.net/def/crs/EPSG/0/4326'
    assert crs_uri('CRS:84') == 'CRS:84'
