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
Cache channels: the tables a cached response depends on.

A cache channel has the form ``dbname:table1,table2`` and is sent in the
``X-Cache-Channel`` header, so that the front cache can invalidate all
responses of a table.

`CacheChannelGenerator.add_cache_channel` is the entry point for the tile
server, which sets the cache headers of map and tile responses with it.
"""
import hashlib
import re

from tilecontrol.cache import CacheChannelError
from tilecontrol.util.async_ import starcall
from tilecontrol.util.times import isoformat_millis, timestamp_from_millis

import logging
log = logging.getLogger('tilecontrol.cache')


# SQL as wrapped by the renderer
SQL_WRAPPER_RE = re.compile(r'\((.*)\)\sas\scdbq')


class ChannelCache(object):
    """
    In-memory store of computed cache channels.

    Entries are never evicted. By-token entries stay valid as long as
    the layergroup exists, the SQL of a layergroup is only known at
    creation time.
    """
    def __init__(self):
        self._channels = {}

    def get(self, key, default=None):
        return self._channels.get(key, default)

    def set(self, key, channel):
        self._channels[key] = channel

    def __contains__(self, key):
        return key in self._channels

    def __len__(self):
        return len(self._channels)


def build_cache_channel(dbname, table_names):
    """
    >>> build_cache_channel('db', ['t1', 't2'])
    'db:t1,t2'
    """
    return dbname + ':' + ','.join(table_names)


def generate_md5(data):
    return hashlib.md5(data.encode('utf-8')).hexdigest()


def unwrap_sql(sql):
    """
    Strip the ``(<sql>) as cdbq`` wrapper of the renderer.

    >>> unwrap_sql('(select * from t) as cdbq')
    'select * from t'
    """
    match = SQL_WRAPPER_RE.fullmatch(sql)
    if match:
        return match.group(1)
    return sql


def layers_sql(mapconfig):
    """
    The SQL of all layers of `mapconfig`, joined with ``;``.
    """
    sql = []
    for layer in mapconfig.get('layers') or []:
        sql.append((layer.get('options') or {}).get('sql') or '')
    return ';'.join(sql)


def query_db_params(params, api_key=None):
    """
    Database credentials for the affected tables queries.
    """
    if api_key is None:
        api_key = params.get('map_key') or params.get('api_key')
    return {
        'user': params.get('dbuser'),
        'pass': params.get('dbpassword'),
        'host': params.get('dbhost'),
        'port': params.get('dbport'),
        'dbname': params.get('dbname'),
        'api_key': api_key,
    }


class CacheChannelGenerator(object):
    """
    Compute the cache channel of map requests and set the cache headers
    of their responses.

    :param channel_cache: `ChannelCache` for computed channels
    :param map_store: `MapStoreBase` to load layergroups by token
    :param query_tables_api: `QueryTablesApi` for the affected tables
    :param user_metadata: `UserMetadataBase` for map keys and map view
        counters
    :param ttl: max-age of non-persistent responses
    :param layergroup_ttl: max-age of layergroup creation responses
    :param server_metadata: dict added to every layergroup response
    """
    def __init__(self, channel_cache, map_store, query_tables_api, user_metadata,
                 ttl=86400, layergroup_ttl=86400, server_metadata=None):
        self.channel_cache = channel_cache
        self.map_store = map_store
        self.query_tables_api = query_tables_api
        self.user_metadata = user_metadata
        self.ttl = ttl
        self.layergroup_ttl = layergroup_ttl
        self.server_metadata = server_metadata or {}

    def cache_key(self, params):
        key = [params.get('dbname') or '']
        if params.get('token'):
            key.append(params['token'])
        elif params.get('sql'):
            key.append(generate_md5(params['sql']))
        return ':'.join(key)

    def extract_sql(self, params):
        """
        The SQL a request depends on: the layer SQL of its layergroup
        token or its ``sql`` parameter. ``None`` if there is none.
        """
        if params.get('token'):
            mapconfig = self.map_store.load(params['token'])
            return layers_sql(mapconfig)
        if not params.get('sql'):
            return None
        return unwrap_sql(params['sql'])

    def affected_tables(self, user, params, sql):
        signer = params.get('_authorized_by_signer')
        if signer:
            user = signer
            api_key = self.user_metadata.get_user_map_key(signer)
        else:
            api_key = None
        return self.query_tables_api.get_affected_tables_in_query(
            user, query_db_params(params, api_key), sql)

    def generate_cache_channel(self, user, params):
        """
        Return the cache channel of the request with `params` on the
        database of `user`, ``None`` if the request needs no channel.

        Errors of the map store or the SQL API are raised.
        """
        cache_key = self.cache_key(params)
        channel = self.channel_cache.get(cache_key)
        if channel is not None:
            return channel

        table = params.get('table')
        sql = self.extract_sql(params)
        if not sql:
            if not table:
                log.debug('no cache channel needed for %s', cache_key)
                return None
            table_names = [table]
        else:
            table_names = self.affected_tables(user, params, sql)

        channel = build_cache_channel(params.get('dbname') or '', table_names)
        # not worth it for single tables
        if not table:
            self.channel_cache.set(cache_key, channel)
        return channel

    def add_cache_channel(self, user, params, response, method='GET'):
        """
        Set ``Cache-Control``, ``Last-Modified`` and ``X-Cache-Channel`` of
        `response`. Only GET responses are cacheable.

        :returns: the cache channel, ``None`` if no channel was added
        """
        if method != 'GET' or response is None:
            return None

        persistent = params.get('cache_policy') == 'persist' or bool(params.get('token'))
        timestamp = None
        if params.get('cache_buster'):
            timestamp = timestamp_from_millis(params['cache_buster'])
        response.cache_headers(self.ttl, persistent=persistent, timestamp=timestamp)

        try:
            channel = self.generate_cache_channel(user, params)
        except Exception as ex:
            log.error('ERROR generating cache channel: %s', ex)
            return None
        if channel is None:
            return None
        response.headers['X-Cache-Channel'] = channel
        return channel

    def _inc_mapview_count(self, user, stat_tag):
        try:
            self.user_metadata.inc_mapview_count(user, stat_tag)
        except Exception as ex:
            log.error("failed to increment mapview count for user '%s': %s", user, ex)

    def _affected_tables_and_last_update(self, user, params, sql):
        return self.query_tables_api.get_affected_tables_and_last_updated_time(
            user, query_db_params(params), sql)

    def after_layergroup_create(self, user, params, mapconfig, layergroup, token=None,
                                response=None):
        """
        Finish the `layergroup` response of a newly created layergroup.

        Increments the map view counter of `user` and queries the
        affected tables and their last modification concurrently. The
        cache channel is stored under the layergroup `token`,
        ``layergroupid`` gets the last modification as cache buster and
        ``last_updated`` is added. Cache headers are set on `response`, if
        given.

        A failed counter increment is only logged.

        :param layergroup: the response document with ``layergroupid``
        :param token: the map store token, defaults to ``layergroupid``
        :raise CacheChannelError: if the affected tables are unavailable
        """
        layergroup.update(self.server_metadata)
        if token is None:
            token = layergroup['layergroupid']
        dbname = params.get('dbname') or ''
        sql = layers_sql(mapconfig)

        inc_result, tables_result = starcall([
            (self._inc_mapview_count, user, mapconfig.get('stat_tag')),
            (self._affected_tables_and_last_update, user, params, sql),
        ], use_result_objects=True)

        errors = []
        for result in (inc_result, tables_result):
            if result.exception:
                errors.append(str(result.exception[1]))
        if errors:
            raise CacheChannelError('\n'.join(errors))

        result = tables_result.result
        channel = build_cache_channel(dbname, result['affected_tables'])
        self.channel_cache.set(dbname + ':' + token, channel)

        if response is not None:
            if params.get('cache_policy') == 'persist':
                response.cache_headers(self.layergroup_ttl, persistent=True)
            else:
                response.cache_headers(self.layergroup_ttl, no_cache=False)
            response.headers['X-Cache-Channel'] = channel

        last_updated = result['last_updated_time']
        layergroup['layergroupid'] = '%s:%s' % (layergroup['layergroupid'], last_updated)
        layergroup['last_updated'] = isoformat_millis(last_updated)
        return channel
