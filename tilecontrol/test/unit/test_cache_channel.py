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

import pytest

from tilecontrol.cache import CacheChannelError
from tilecontrol.cache.channel import (
    CacheChannelGenerator,
    ChannelCache,
    build_cache_channel,
    generate_md5,
    layers_sql,
    query_db_params,
    unwrap_sql,
)
from tilecontrol.kv.mapstore import MapStoreError
from tilecontrol.response import Response
from tilecontrol.test.helper import DictMapStore, FakeQueryTablesApi, FakeUserMetadata


USERS = {
    'jane': {'map_key': '1234'},
    'joe': {'map_key': '5678'},
}

MAPCONFIG = {
    'version': '1.0.1',
    'stat_tag': 'tag1',
    'layers': [
        {'options': {'sql': 'select * from t1', 'cartocss': '#l {}'}},
        {'options': {'sql': 'select * from t2', 'cartocss': '#l {}'}},
    ],
}


def test_build_cache_channel():
    assert build_cache_channel('db', ['t1']) == 'db:t1'
    assert build_cache_channel('db', []) == 'db:'


def test_unwrap_sql():
    assert unwrap_sql('(select * from t) as cdbq') == 'select * from t'
    assert unwrap_sql('select * from t') == 'select * from t'
    assert unwrap_sql('(select 1) as cdbq where true') == '(select 1) as cdbq where true'


def test_layers_sql():
    assert layers_sql(MAPCONFIG) == 'select * from t1;select * from t2'
    assert layers_sql({'layers': [{'options': {}}]}) == ''
    assert layers_sql({}) == ''


def test_query_db_params():
    params = {'dbuser': 'u', 'dbpassword': 'p', 'dbhost': 'h', 'dbport': 5432,
              'dbname': 'db', 'api_key': 'k'}
    assert query_db_params(params) == {
        'user': 'u', 'pass': 'p', 'host': 'h', 'port': 5432, 'dbname': 'db', 'api_key': 'k'}
    assert query_db_params(params, api_key='other')['api_key'] == 'other'


def test_channel_cache():
    cache = ChannelCache()
    assert cache.get('db:x') is None
    cache.set('db:x', 'db:t')
    assert 'db:x' in cache
    assert cache.get('db:x') == 'db:t'
    assert len(cache) == 1


class ChannelTestBase(object):
    def setup_method(self):
        self.channel_cache = ChannelCache()
        self.map_store = DictMapStore()
        self.tables_api = FakeQueryTablesApi(tables=['t1', 't2'], last_updated_time=1400000000000)
        self.metadata = FakeUserMetadata(users=USERS)
        self.generator = CacheChannelGenerator(
            self.channel_cache, self.map_store, self.tables_api, self.metadata,
            ttl=3600, layergroup_ttl=7200,
        )


class TestGenerateCacheChannel(ChannelTestBase):
    def test_table_only(self):
        channel = self.generator.generate_cache_channel('jane', {'dbname': 'X', 'table': 'Y'})
        assert channel == 'X:Y'
        assert self.tables_api.calls == []
        assert len(self.channel_cache) == 0

    def test_no_sql_no_table(self):
        assert self.generator.generate_cache_channel('jane', {'dbname': 'X'}) is None
        assert self.tables_api.calls == []

    def test_sql(self):
        params = {'dbname': 'db', 'sql': '(select * from t1) as cdbq', 'dbuser': 'u'}
        assert self.generator.generate_cache_channel('jane', params) == 'db:t1,t2'
        assert len(self.tables_api.calls) == 1
        kind, user, db_params, sql = self.tables_api.calls[0]
        assert kind == 'tables'
        assert user == 'jane'
        assert sql == 'select * from t1'
        assert db_params['user'] == 'u'

        key = 'db:' + generate_md5('(select * from t1) as cdbq')
        assert self.channel_cache.get(key) == 'db:t1,t2'

        # memoized
        assert self.generator.generate_cache_channel('jane', dict(params)) == 'db:t1,t2'
        assert len(self.tables_api.calls) == 1

    def test_sql_with_table_not_memoized(self):
        params = {'dbname': 'db', 'sql': 'select * from t1', 'table': 't1'}
        assert self.generator.generate_cache_channel('jane', params) == 'db:t1,t2'
        assert len(self.channel_cache) == 0

    def test_token(self):
        token = self.map_store.save(MAPCONFIG)
        params = {'dbname': 'db', 'token': token}
        assert self.generator.generate_cache_channel('jane', params) == 'db:t1,t2'
        assert self.tables_api.calls[0][3] == 'select * from t1;select * from t2'
        assert self.channel_cache.get('db:' + token) == 'db:t1,t2'

    def test_signer_map_key(self):
        token = self.map_store.save(MAPCONFIG)
        params = {'dbname': 'db', 'token': token, '_authorized_by_signer': 'joe',
                  'api_key': '1234'}
        self.generator.generate_cache_channel('jane', params)
        _, user, db_params, _ = self.tables_api.calls[0]
        assert user == 'joe'
        assert db_params['api_key'] == '5678'

    def test_unknown_token(self):
        with pytest.raises(MapStoreError):
            self.generator.generate_cache_channel('jane', {'dbname': 'db', 'token': 'nope'})


class TestAddCacheChannel(ChannelTestBase):
    def test_ttl(self):
        resp = Response('')
        channel = self.generator.add_cache_channel('jane', {'dbname': 'X', 'table': 'Y'}, resp)
        assert channel == 'X:Y'
        assert resp.headers['X-Cache-Channel'] == 'X:Y'
        assert resp.headers['Cache-Control'] == 'no-cache,max-age=3600,must-revalidate, public'
        assert 'Last-Modified' in resp.headers

    def test_persist(self):
        resp = Response('')
        self.generator.add_cache_channel(
            'jane', {'dbname': 'X', 'table': 'Y', 'cache_policy': 'persist'}, resp)
        assert resp.headers['Cache-Control'] == 'public,max-age=31536000'

    def test_token_is_persistent(self):
        token = self.map_store.save(MAPCONFIG)
        resp = Response('')
        self.generator.add_cache_channel('jane', {'dbname': 'db', 'token': token}, resp)
        assert resp.headers['Cache-Control'] == 'public,max-age=31536000'
        assert resp.headers['X-Cache-Channel'] == 'db:t1,t2'

    def test_cache_buster_last_modified(self):
        resp = Response('')
        self.generator.add_cache_channel(
            'jane', {'dbname': 'X', 'table': 'Y', 'cache_buster': '1400000000000'}, resp)
        assert resp.headers['Last-Modified'] == 'Tue, 13 May 2014 16:53:20 GMT'

    def test_not_get(self):
        resp = Response('')
        assert self.generator.add_cache_channel(
            'jane', {'dbname': 'X', 'table': 'Y'}, resp, method='POST') is None
        assert 'Cache-Control' not in resp.headers
        assert 'X-Cache-Channel' not in resp.headers

    def test_no_channel(self):
        resp = Response('')
        assert self.generator.add_cache_channel('jane', {'dbname': 'X'}, resp) is None
        assert 'X-Cache-Channel' not in resp.headers
        assert 'Cache-Control' in resp.headers

    def test_error_logged(self, caplog):
        self.tables_api.error = 'syntax error at or near "selec"'
        resp = Response('')
        assert self.generator.add_cache_channel(
            'jane', {'dbname': 'X', 'sql': 'selec 1'}, resp) is None
        assert 'X-Cache-Channel' not in resp.headers
        assert 'ERROR generating cache channel' in caplog.text


class TestAfterLayergroupCreate(ChannelTestBase):
    def test_layergroup(self):
        layergroup = {'layergroupid': 'jane@f00@abc'}
        params = {'dbname': 'db', 'dbuser': 'u'}
        channel = self.generator.after_layergroup_create(
            'jane', params, MAPCONFIG, layergroup, token='abc')
        assert channel == 'db:t1,t2'
        assert layergroup['layergroupid'] == 'jane@f00@abc:1400000000000'
        assert layergroup['last_updated'] == '2014-05-13T16:53:20.000Z'
        assert self.channel_cache.get('db:abc') == 'db:t1,t2'
        assert self.metadata.mapviews == [('jane', 'tag1')]

        kind, user, _, sql = self.tables_api.calls[0]
        assert kind == 'tables_and_last_update'
        assert user == 'jane'
        assert sql == 'select * from t1;select * from t2'

    def test_default_token(self):
        layergroup = {'layergroupid': 'abc'}
        self.generator.after_layergroup_create('jane', {'dbname': 'db'}, MAPCONFIG, layergroup)
        assert self.channel_cache.get('db:abc') == 'db:t1,t2'

    def test_server_metadata(self):
        self.generator.server_metadata = {'cdn_url': {'http': 'cdn.example.org'}}
        layergroup = {'layergroupid': 'abc'}
        self.generator.after_layergroup_create('jane', {'dbname': 'db'}, MAPCONFIG, layergroup)
        assert layergroup['cdn_url'] == {'http': 'cdn.example.org'}

    def test_mapview_failure_logged(self, caplog):
        self.metadata.fail_mapviews = True
        layergroup = {'layergroupid': 'abc'}
        assert self.generator.after_layergroup_create(
            'jane', {'dbname': 'db'}, MAPCONFIG, layergroup) == 'db:t1,t2'
        assert 'failed to increment mapview count' in caplog.text

    def test_tables_failure(self):
        self.tables_api.error = 'permission denied for relation t1'
        layergroup = {'layergroupid': 'abc'}
        with pytest.raises(CacheChannelError) as excinfo:
            self.generator.after_layergroup_create('jane', {'dbname': 'db'}, MAPCONFIG, layergroup)
        assert 'permission denied for relation t1' in str(excinfo.value)
        assert layergroup['layergroupid'] == 'abc'
        assert len(self.channel_cache) == 0

    def test_response_headers(self):
        resp = Response('')
        self.generator.after_layergroup_create(
            'jane', {'dbname': 'db'}, MAPCONFIG, {'layergroupid': 'abc'}, response=resp)
        assert resp.headers['Cache-Control'] == 'public,max-age=7200,must-revalidate'
        assert resp.headers['X-Cache-Channel'] == 'db:t1,t2'

    def test_response_headers_persist(self):
        resp = Response('')
        self.generator.after_layergroup_create(
            'jane', {'dbname': 'db', 'cache_policy': 'persist'}, MAPCONFIG,
            {'layergroupid': 'abc'}, response=resp)
        assert resp.headers['Cache-Control'] == 'public,max-age=31536000'
