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
Storage of instantiated map configurations, addressed by token.
"""
import hashlib
import json
from abc import ABC, abstractmethod

import redis

import logging
log = logging.getLogger(__name__)


class MapStoreError(Exception):
    pass


def config_token(config):
    """
    Token of a map configuration: md5 of its canonical JSON encoding.
    """
    serialized = json.dumps(config, sort_keys=True, separators=(',', ':'))
    return hashlib.md5(serialized.encode('utf-8')).hexdigest()


class MapStoreBase(ABC):
    @abstractmethod
    def save(self, config):
        """
        Store `config` and return its token.
        """
        pass

    @abstractmethod
    def load(self, token):
        """
        Return the configuration stored for `token`.

        :raise MapStoreError: if the token is unknown
        """
        pass


class RedisMapStore(MapStoreBase):
    def __init__(self, client, ttl=7200):
        self.r = client
        self.ttl = ttl

    def _key(self, token):
        return 'map_cfg|%s' % (token, )

    def save(self, config):
        token = config_token(config)
        try:
            self.r.set(self._key(token), json.dumps(config), ex=self.ttl or None)
        except redis.exceptions.RedisError as e:
            raise MapStoreError('storing map configuration %s: %s' % (token, e))
        log.debug('stored map configuration %s', token)
        return token

    def load(self, token):
        try:
            value = self.r.get(self._key(token))
        except redis.exceptions.RedisError as e:
            raise MapStoreError('loading map configuration %s: %s' % (token, e))
        if value is None:
            raise MapStoreError("Invalid or nonexistent map configuration token '%s'" % (token, ))
        return json.loads(value)
