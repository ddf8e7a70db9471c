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
User metadata: map keys, database credentials, table privacy and usage
counters.
"""
from abc import ABC, abstractmethod

import redis

from tilecontrol.kv.base import StoreBackendError
from tilecontrol.util.times import day_stamp

import logging
log = logging.getLogger(__name__)


class UserMetadataBase(ABC):
    @abstractmethod
    def get_user_map_key(self, user):
        """
        Return the API key of `user`, ``None`` if the user has none.
        """
        pass

    @abstractmethod
    def get_user_id(self, user):
        pass

    @abstractmethod
    def get_user_db_pass(self, user):
        pass

    @abstractmethod
    def get_user_db_name(self, user):
        pass

    @abstractmethod
    def get_user_db_connection_params(self, user):
        """
        Return a dict with ``dbname``, ``dbhost`` and ``dbuser`` (the
        public database user) of `user`. Missing values are omitted.
        """
        pass

    @abstractmethod
    def get_table_privacy(self, dbname, table):
        """
        Return the privacy flag of `table`, ``None`` if it is unknown.
        """
        pass

    @abstractmethod
    def inc_mapview_count(self, user, stat_tag=None):
        pass


class RedisUserMetadata(UserMetadataBase):
    """
    User metadata stored in redis.

    ``rails:users:<user>`` hash with ``map_key``, ``id``,
    ``database_name``, ``database_password``, ``database_host`` and
    ``database_publicuser``; ``rails:<dbname>:<table>`` hash with the
    table ``privacy``; daily map view counters in the
    ``user:<user>:mapviews:global`` and
    ``user:<user>:mapviews:stat_tag:<tag>`` sorted sets.
    """
    def __init__(self, client):
        self.r = client

    def _user_key(self, user):
        return 'rails:users:%s' % (user, )

    def _user_field(self, user, field):
        try:
            return self.r.hget(self._user_key(user), field)
        except redis.exceptions.RedisError as e:
            raise StoreBackendError('reading %s of user %s: %s' % (field, user, e))

    def get_user_map_key(self, user):
        return self._user_field(user, 'map_key')

    def get_user_id(self, user):
        user_id = self._user_field(user, 'id')
        if user_id is None:
            raise StoreBackendError("missing id for user '%s'" % (user, ))
        return user_id

    def get_user_db_pass(self, user):
        return self._user_field(user, 'database_password')

    def get_user_db_name(self, user):
        dbname = self._user_field(user, 'database_name')
        if dbname is None:
            raise StoreBackendError("missing database name for user '%s'" % (user, ))
        return dbname

    def get_user_db_connection_params(self, user):
        try:
            values = self.r.hmget(self._user_key(user),
                                  ['database_name', 'database_host', 'database_publicuser'])
        except redis.exceptions.RedisError as e:
            raise StoreBackendError('reading database params of user %s: %s' % (user, e))
        params = {}
        for param, value in zip(('dbname', 'dbhost', 'dbuser'), values):
            if value is not None:
                params[param] = value
        return params

    def get_table_privacy(self, dbname, table):
        try:
            return self.r.hget('rails:%s:%s' % (dbname, table), 'privacy')
        except redis.exceptions.RedisError as e:
            raise StoreBackendError('reading privacy of %s.%s: %s' % (dbname, table, e))

    def inc_mapview_count(self, user, stat_tag=None):
        day = day_stamp()
        try:
            pipe = self.r.pipeline()
            pipe.zincrby('user:%s:mapviews:global' % (user, ), 1, day)
            if stat_tag:
                pipe.zincrby('user:%s:mapviews:stat_tag:%s' % (user, stat_tag), 1, day)
            pipe.execute()
        except redis.exceptions.RedisError as e:
            raise StoreBackendError('incrementing map views of user %s: %s' % (user, e))
