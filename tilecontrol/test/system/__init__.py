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

from webtest import TestApp as _TestApp

from tilecontrol.config.loader import ServiceConfiguration
from tilecontrol.test.helper import (
    DictHashStore,
    DictMapStore,
    FakeQueryTablesApi,
    FakeUserMetadata,
    RecordingCacheBackend,
)
from tilecontrol.wsgiapp import make_wsgi_app


class WSGITestApp(_TestApp):
    """
    Wraps webtest.TestApp and explicitly converts URLs to strings.
    """

    def get(self, url, *args, **kw):
        return _TestApp.get(self, str(url), *args, **kw)


class SysTest(object):
    """
    Baseclass for pytest-based system tests.
    Provides `app` fixture with a configured TileControl instance, wrapped in
    webtest.TestApp. The redis stores, the SQL API and the front cache are
    replaced with in-memory doubles, available as fixtures.

    Each test gets a fresh `app`.
    """
    users = {}
    tables = []
    last_updated_time = 0

    @pytest.fixture
    def conf_dict(self):
        return {}

    @pytest.fixture
    def conf(self, conf_dict):
        conf = ServiceConfiguration(conf_dict)
        conf.hash_store = DictHashStore()
        conf.map_store = DictMapStore()
        conf.user_metadata = FakeUserMetadata(users=self.users)
        conf.query_tables_api = FakeQueryTablesApi(
            tables=self.tables, last_updated_time=self.last_updated_time)
        conf.cache_backend = RecordingCacheBackend()
        conf.named_maps_invalidator.background = False
        return conf

    @pytest.fixture
    def app(self, conf):
        app = make_wsgi_app(conf=conf)
        return WSGITestApp(app, extra_environ={'HTTP_HOST': 'localhost'})
