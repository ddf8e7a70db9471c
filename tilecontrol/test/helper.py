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
In-memory doubles of the external collaborators.
"""
import json

from tilecontrol.cache import CacheBackendError
from tilecontrol.client.sqlapi import QueryTablesError
from tilecontrol.kv.base import HashStoreBase, StoreBackendError
from tilecontrol.kv.mapstore import MapStoreBase, MapStoreError, config_token
from tilecontrol.kv.metadata import UserMetadataBase


class DictHashStore(HashStoreBase):
    def __init__(self):
        self.hashes = {}

    def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    def hset(self, key, field, value):
        fields = self.hashes.setdefault(key, {})
        created = field not in fields
        fields[field] = value
        return created

    def hsetnx(self, key, field, value):
        fields = self.hashes.setdefault(key, {})
        if field in fields:
            return False
        fields[field] = value
        return True

    def hdel(self, key, field):
        fields = self.hashes.get(key, {})
        if field in fields:
            del fields[field]
            return 1
        return 0

    def hkeys(self, key):
        return list(self.hashes.get(key, {}).keys())

    def hlen(self, key):
        return len(self.hashes.get(key, {}))


class FailingHashStore(DictHashStore):
    def _fail(self, *args):
        raise StoreBackendError('connection refused')

    hget = hset = hsetnx = hdel = hkeys = hlen = _fail


class FakeUserMetadata(UserMetadataBase):
    """
    `users` maps user names to dicts with the fields of the
    ``rails:users:<user>`` hash, `privacy` maps ``(dbname, table)`` to
    the privacy flag.
    """
    def __init__(self, users=None, privacy=None, fail_mapviews=False):
        self.users = users or {}
        self.privacy = privacy or {}
        self.fail_mapviews = fail_mapviews
        self.mapviews = []
        self.calls = []

    def _field(self, user, field):
        self.calls.append((field, user))
        return self.users.get(user, {}).get(field)

    def get_user_map_key(self, user):
        return self._field(user, 'map_key')

    def get_user_id(self, user):
        user_id = self._field(user, 'id')
        if user_id is None:
            raise StoreBackendError("missing id for user '%s'" % (user, ))
        return user_id

    def get_user_db_pass(self, user):
        return self._field(user, 'database_password')

    def get_user_db_name(self, user):
        return self._field(user, 'database_name')

    def get_user_db_connection_params(self, user):
        params = {}
        for param, field in (('dbname', 'database_name'), ('dbhost', 'database_host'),
                             ('dbuser', 'database_publicuser')):
            value = self.users.get(user, {}).get(field)
            if value is not None:
                params[param] = value
        return params

    def get_table_privacy(self, dbname, table):
        self.calls.append(('privacy', dbname, table))
        return self.privacy.get((dbname, table))

    def inc_mapview_count(self, user, stat_tag=None):
        if self.fail_mapviews:
            raise StoreBackendError('incrementing map views of user %s: timeout' % (user, ))
        self.mapviews.append((user, stat_tag))


class FakeQueryTablesApi(object):
    def __init__(self, tables=None, last_updated_time=0, error=None):
        self.tables = tables or []
        self.last_updated_time = last_updated_time
        self.error = error
        self.calls = []

    def get_affected_tables_in_query(self, username, db_params, sql):
        self.calls.append(('tables', username, db_params, sql))
        if self.error:
            raise QueryTablesError(self.error)
        return list(self.tables)

    def get_affected_tables_and_last_updated_time(self, username, db_params, sql):
        self.calls.append(('tables_and_last_update', username, db_params, sql))
        if self.error:
            raise QueryTablesError(self.error)
        return {
            'affected_tables': list(self.tables),
            'last_updated_time': self.last_updated_time,
        }


class DictMapStore(MapStoreBase):
    def __init__(self):
        self.configs = {}

    def save(self, config):
        token = config_token(config)
        self.configs[token] = json.dumps(config)
        return token

    def load(self, token):
        if token not in self.configs:
            raise MapStoreError("Invalid or nonexistent map configuration token '%s'" % (token, ))
        return json.loads(self.configs[token])


class RecordingCacheBackend(object):
    def __init__(self, error=None):
        self.invalidated = []
        self.error = error

    def invalidate(self, cache_entry):
        self.invalidated.append(cache_entry)
        if self.error:
            raise CacheBackendError(self.error)
