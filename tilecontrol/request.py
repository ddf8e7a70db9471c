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
Service requests.
"""
import json
from functools import cached_property
from urllib.parse import parse_qsl


def url_decode(qs, charset='utf-8'):
    """
    Parse query string `qs` into a dict. The last value wins for
    repeated keys.

    >>> url_decode('api_key=1234&auth_token=a&auth_token=b')
    {'api_key': '1234', 'auth_token': 'b'}
    """
    return dict(parse_qsl(qs, keep_blank_values=True, encoding=charset))


class Request(object):
    charset = 'utf-8'

    def __init__(self, environ):
        self.environ = environ
        self.environ['tilecontrol.request'] = self

    @cached_property
    def args(self):
        return url_decode(self.environ.get('QUERY_STRING', ''), self.charset)

    @property
    def method(self):
        return self.environ.get('REQUEST_METHOD', 'GET').upper()

    @property
    def path(self):
        return self.environ.get('PATH_INFO', '')

    def pop_path(self):
        """
        Remove and return the first segment of the path.
        The segment is moved to ``SCRIPT_NAME``.
        """
        segment, _, rest = self.path.lstrip('/').partition('/')
        self.environ['PATH_INFO'] = '/' + rest if rest else ''
        if segment:
            self.environ['SCRIPT_NAME'] = self.environ.get('SCRIPT_NAME', '') + '/' + segment
        return segment

    @cached_property
    def body(self):
        try:
            length = int(self.environ.get('CONTENT_LENGTH') or 0)
        except ValueError:
            length = 0
        if not length:
            return b''
        return self.environ['wsgi.input'].read(length)

    @cached_property
    def json(self):
        """
        The decoded JSON body, ``None`` for empty bodies.

        :raise ValueError: if the body is not valid JSON
        """
        if not self.body:
            return None
        return json.loads(self.body.decode(self.charset))

    @cached_property
    def host(self):
        """
        Host name of the request, without default ports.
        The first ``X-Forwarded-Host`` wins over ``Host``.
        """
        if 'HTTP_X_FORWARDED_HOST' in self.environ:
            return self.environ['HTTP_X_FORWARDED_HOST'].split(',', 1)[0].strip()
        host = self.environ.get('HTTP_HOST') or self.environ.get('SERVER_NAME', '')
        if host.endswith((':80', ':443')):
            host = host.rsplit(':', 1)[0]
        return host
