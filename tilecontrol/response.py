# This file is part of the TileControl project.
# Copyright (C) 2026 Omniscale <http://omniscale.de>
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
import json

from tilecontrol.util.times import format_httpdate


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

    def _last_modified_set(self, timestamp):
        if timestamp is None:
            return
        self.headers['Last-Modified'] = format_httpdate(timestamp)

    def _last_modified_get(self):
        return self.headers.get('Last-Modified', None)

    last_modified = property(_last_modified_get, _last_modified_set)

    def cache_headers(self, max_age, persistent=False, timestamp=None, no_cache=True):
        """
        Set the cache-related headers of a cacheable response.

        :param max_age: the maximum cache age in seconds for non
            persistent responses
        :param persistent: cache the response for one year
        :param timestamp: unix timestamp of the last modification,
            defaults to now
        :param no_cache: force the front cache to revalidate non
            persistent responses
        """
        if persistent:
            self.headers['Cache-Control'] = 'public,max-age=31536000'
        elif no_cache:
            self.headers['Cache-Control'] = 'no-cache,max-age=%d,must-revalidate, public' % max_age
        else:
            self.headers['Cache-Control'] = 'public,max-age=%d,must-revalidate' % max_age
        self.headers['Last-Modified'] = format_httpdate(timestamp)

    @property
    def content_type(self):
        return self.headers['Content-type']

    @property
    def data(self):
        if isinstance(self.response, bytes):
            return self.response
        if isinstance(self.response, str):
            return self.response.encode(self.charset)
        return b''.join(self.response)

    @property
    def fixed_headers(self):
        return [(key, str(value)) for key, value in self.headers.items()]

    def __call__(self, environ, start_response):
        if not self.response:
            resp_iter = iter([])
        elif isinstance(self.response, str):
            self.response = self.response.encode(self.charset)
            self.headers['Content-length'] = str(len(self.response))
            resp_iter = iter([self.response])
        elif isinstance(self.response, bytes):
            self.headers['Content-length'] = str(len(self.response))
            resp_iter = iter([self.response])
        else:
            resp_iter = self.response

        if self.status_code in (204, 304):
            # no content
            self.headers.pop('Content-type', None)

        start_response(self.status, self.fixed_headers)
        return resp_iter


def json_response(doc, status=200):
    return Response(json.dumps(doc), status=status, mimetype='application/json')


_status_codes = {
    200: 'OK',
    201: 'Created',
    204: 'No Content',
    304: 'Not Modified',
    400: 'Bad Request',
    401: 'Unauthorized',
    403: 'Forbidden',
    404: 'Not Found',
    405: 'Method Not Allowed',
    409: 'Conflict',
    500: 'Internal Server Error',
    502: 'Bad Gateway',
    503: 'Service Unavailable',
}


def status_code(code):
    return str(code) + ' ' + _status_codes[code]
