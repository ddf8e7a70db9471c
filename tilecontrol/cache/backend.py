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
Front cache backends.
"""
import requests

from tilecontrol.cache import CacheBackendError

import logging
log = logging.getLogger(__name__)


class VarnishHttpCacheBackend(object):
    """
    Invalidate Varnish objects by surrogate key with HTTP ``PURGE``
    requests.
    """
    def __init__(self, host='localhost', http_port=6081, timeout=5, session=None):
        self.host = host
        self.http_port = http_port
        self.timeout = timeout
        if session is None:
            session = requests.Session()
        self.req_session = session

    @property
    def url(self):
        return 'http://%s:%s/key' % (self.host, self.http_port)

    def invalidate(self, cache_entry):
        key = cache_entry.key()
        headers = {'Invalidation-Match': '\\b%s\\b' % (key, )}
        try:
            resp = self.req_session.request('PURGE', self.url, headers=headers,
                                            timeout=self.timeout)
        except requests.exceptions.RequestException as ex:
            raise CacheBackendError('Unable to invalidate Varnish object %s: %s' % (key, ex))
        if resp.status_code not in (200, 204):
            raise CacheBackendError('Unable to invalidate Varnish object %s: status %d'
                                    % (key, resp.status_code))
        log.debug('invalidated %s', key)
