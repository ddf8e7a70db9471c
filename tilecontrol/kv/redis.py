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

import functools

import redis

from tilecontrol.kv.base import HashStoreBase, StoreBackendError

import logging
log = logging.getLogger(__name__)


def create_client(host, port, db=0, username=None, password=None, ssl_certfile=None,
                  ssl_keyfile=None, ssl_ca_certs=None):
    """
    Return a `redis.StrictRedis` client that decodes all responses as text.
    """
    # enable SSL only if certificate and key are provided
    ssl_enabled = all([ssl_certfile, ssl_keyfile])
    return redis.StrictRedis(
        host=host,
        port=port,
        username=username,
        password=password,
        db=db,
        ssl=ssl_enabled,
        ssl_certfile=ssl_certfile if ssl_enabled else None,
        ssl_keyfile=ssl_keyfile if ssl_enabled else None,
        ssl_ca_certs=ssl_ca_certs if ssl_enabled else None,
        decode_responses=True,
    )


def redis_command(func):
    """
    Convert redis client errors into `StoreBackendError`.
    """
    @functools.wraps(func)
    def wrapper(self, *args, **kw):
        try:
            return func(self, *args, **kw)
        except redis.exceptions.RedisError as e:
            log.error('REDIS:%s error %s', func.__name__, e)
            raise StoreBackendError('%s: %s' % (func.__name__, e))
    return wrapper


class RedisHashStore(HashStoreBase):
    def __init__(self, client):
        self.r = client

    @redis_command
    def hget(self, key, field):
        log.debug('hget, key: %s field: %s', key, field)
        return self.r.hget(key, field)

    @redis_command
    def hset(self, key, field, value):
        log.debug('hset, key: %s field: %s', key, field)
        return bool(self.r.hset(key, field, value))

    @redis_command
    def hsetnx(self, key, field, value):
        log.debug('hsetnx, key: %s field: %s', key, field)
        return bool(self.r.hsetnx(key, field, value))

    @redis_command
    def hdel(self, key, field):
        log.debug('hdel, key: %s field: %s', key, field)
        return self.r.hdel(key, field)

    @redis_command
    def hkeys(self, key):
        return list(self.r.hkeys(key))

    @redis_command
    def hlen(self, key):
        return self.r.hlen(key)
