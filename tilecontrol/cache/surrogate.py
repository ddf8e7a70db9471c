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
Surrogate keys: tags on cached responses to invalidate all responses of
one named map at once.
"""
import base64
import hashlib


def short_hash_key(value):
    digest = hashlib.sha256(value.encode('utf-8')).digest()
    return base64.b64encode(digest).decode('ascii')[:6]


class NamedMapsCacheEntry(object):
    """
    Cached responses of the named map `template_name` of `owner`.
    """
    namespace = 'n'

    def __init__(self, owner, template_name):
        self.owner = owner
        self.template_name = template_name

    def key(self):
        return self.namespace + ':' + short_hash_key(self.owner + ':' + self.template_name)

    def __eq__(self, other):
        if not isinstance(other, NamedMapsCacheEntry):
            return NotImplemented
        return (self.owner, self.template_name) == (other.owner, other.template_name)

    def __hash__(self):
        return hash((self.owner, self.template_name))

    def __repr__(self):
        return 'NamedMapsCacheEntry(%r, %r)' % (self.owner, self.template_name)


class SurrogateKeysCache(object):
    """
    Tag responses with surrogate keys and invalidate them with the
    front cache `backend`.
    """
    header = 'Surrogate-Key'

    def __init__(self, backend):
        self.backend = backend

    def tag(self, response, cache_entry):
        response.headers[self.header] = cache_entry.key()

    def invalidate(self, cache_entry):
        """
        :raise CacheBackendError: if the backend failed
        """
        self.backend.invalidate(cache_entry)
