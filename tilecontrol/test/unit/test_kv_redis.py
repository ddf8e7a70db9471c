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

import os

import pytest

from tilecontrol.kv.base import StoreBackendError
from tilecontrol.kv.mapstore import MapStoreError, RedisMapStore, config_token
from tilecontrol.kv.metadata import RedisUserMetadata
from tilecontrol.kv.redis import RedisHashStore, create_client
from tilecontrol.util.times import day_stamp


def unreachable_client():
    return create_client('127.0.0.1', 56499)


class TestUnreachableRedis(object):
    def test_hash_store(self):
        store = RedisHashStore(unreachable_client())
        with pytest.raises(StoreBackendError) as excinfo:
            store.hget('map_tpl|jane', 'tpl')
        assert str(excinfo.value).startswith('hget: ')

    def test_map_store(self):
        with pytest.raises(MapStoreError):
            RedisMapStore(unreachable_client()).load('abc')

    def test_user_metadata(self):
        with pytest.raises(StoreBackendError):
            RedisUserMetadata(unreachable_client()).get_user_map_key('jane')


def test_config_token():
    assert config_token({'a': 1, 'b': [1, 2]}) == config_token({'b': [1, 2], 'a': 1})
    assert config_token({'a': 1}) != config_token({'a': 2})


@pytest.mark.skipif(not os.environ.get('TILECONTROL_TEST_REDIS'),
                    reason="TILECONTROL_TEST_REDIS env required")
class TestRedis(object):
    def setup_method(self):
        redis_host = os.environ['TILECONTROL_TEST_REDIS']
        self.host, self.port = redis_host.split(':')
        self.client = create_client(self.host, int(self.port), db=1)

    def teardown_method(self):
        for pattern in ('tilecontrol-test*', 'map_cfg|*', 'rails:*test*', 'user:tilecontrol-test*'):
            for k in self.client.keys(pattern):
                self.client.delete(k)

    def test_hash_store(self):
        store = RedisHashStore(self.client)
        key = 'tilecontrol-test-tpl'
        assert store.hget(key, 'a') is None
        assert store.hsetnx(key, 'a', '1')
        assert not store.hsetnx(key, 'a', '2')
        assert store.hget(key, 'a') == '1'
        assert not store.hset(key, 'a', '3')
        assert store.hset(key, 'b', '4')
        assert sorted(store.hkeys(key)) == ['a', 'b']
        assert store.hlen(key) == 2
        assert store.hdel(key, 'a') == 1
        assert store.hdel(key, 'a') == 0
        assert store.hkeys(key) == ['b']

    def test_map_store(self):
        store = RedisMapStore(self.client, ttl=60)
        config = {'layers': [{'options': {'sql': 'select 1'}}]}
        token = store.save(config)
        assert token == config_token(config)
        assert store.load(token) == config
        assert 0 < self.client.ttl('map_cfg|' + token) <= 60
        with pytest.raises(MapStoreError):
            store.load('unknown')

    def test_user_metadata(self):
        metadata = RedisUserMetadata(self.client)
        self.client.hset('rails:users:tilecontrol-test', mapping={
            'map_key': '1234', 'id': '7', 'database_name': 'test_db',
            'database_password': 'pw', 'database_host': 'db1',
        })
        self.client.hset('rails:test_db:test_table', 'privacy', '0')

        assert metadata.get_user_map_key('tilecontrol-test') == '1234'
        assert metadata.get_user_id('tilecontrol-test') == '7'
        assert metadata.get_user_db_pass('tilecontrol-test') == 'pw'
        assert metadata.get_user_db_name('tilecontrol-test') == 'test_db'
        assert metadata.get_user_db_connection_params('tilecontrol-test') == {
            'dbname': 'test_db', 'dbhost': 'db1'}
        assert metadata.get_table_privacy('test_db', 'test_table') == '0'
        assert metadata.get_table_privacy('test_db', 'other') is None

        with pytest.raises(StoreBackendError):
            metadata.get_user_id('tilecontrol-test-missing')

    def test_mapviews(self):
        metadata = RedisUserMetadata(self.client)
        metadata.inc_mapview_count('tilecontrol-test', 'tag1')
        metadata.inc_mapview_count('tilecontrol-test')
        day = day_stamp()
        assert self.client.zscore('user:tilecontrol-test:mapviews:global', day) == 2
        assert self.client.zscore('user:tilecontrol-test:mapviews:stat_tag:tag1', day) == 1
