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

redis = dict(
    host = 'localhost',
    port = 6379,
    # templates and layergroup configurations
    db = 0,
    # user metadata (map keys, database credentials, table privacy)
    metadata_db = 5,
    username = None,
    password = None,
    # seconds, 0 for no expiration
    map_config_ttl = 7200,
)

templates = dict(
    # 0 for no limit
    max_user_templates = 0,
    # milliseconds, templates are not locked during updates
    lock_ttl = 5000,
)

# first group is the user name
user_from_host = r'^([^\.]+)\.'

postgres = dict(
    user = 'publicuser',
    password = 'public',
    host = '127.0.0.1',
    port = 5432,
)

postgres_auth_user = 'tc_user_{{user_id}}'
postgres_auth_pass = 'tc_user_{{user_id}}_pass'

sqlapi = dict(
    url = 'http://{{user}}.localhost.lan:8080/api/v2/sql',
    timeout = 10,
)

varnish = dict(
    host = 'localhost',
    http_port = 6081,
    purge_enabled = False,
    # seconds
    ttl = 86400,
    layergroup_ttl = 86400,
    timeout = 5,
)

server_metadata = {}

log_conf = None
