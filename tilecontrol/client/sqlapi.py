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
Client for the SQL API: affected tables and last modification time of
SQL queries.
"""
import json
import re

import jinja2
import requests

import logging
log = logging.getLogger('tilecontrol.client')


class QueryTablesError(Exception):
    pass


DEFAULT_URL_TEMPLATE = 'http://{{user}}.localhost.lan:8080/api/v2/sql'


def prepare_sql(sql):
    """
    Replace the renderer tokens of `sql` with constants, so that the
    query can be analysed on its own.

    >>> prepare_sql('select * from t where the_geom && !bbox!')
    'select * from t where the_geom && ST_MakeEnvelope(0,0,0,0)'
    """
    sql = sql.replace('!bbox!', 'ST_MakeEnvelope(0,0,0,0)')
    sql = re.sub(r'!pixel_([a-z]+)!', '1', sql)
    sql = sql.replace('!scale_denominator!', '0')
    return sql


def parse_table_names(value):
    """
    Table names from a PostgreSQL text array, either already decoded as
    list or in its literal ``{a,b}`` form.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [name for name in value if name]
    value = value.strip()
    if value.startswith('{') and value.endswith('}'):
        value = value[1:-1]
    return [name.strip('"') for name in value.split(',') if name]


def affected_tables_query(sql):
    return 'SELECT CDB_QueryTables($tilecontrol$%s$tilecontrol$)' % (prepare_sql(sql), )


def last_updated_time_query(sql):
    return ' '.join([
        'WITH querytables AS (',
        'SELECT * FROM CDB_QueryTablesText($tilecontrol$%s$tilecontrol$) as tablenames' % (
            prepare_sql(sql), ),
        ')',
        'SELECT (SELECT tablenames FROM querytables), EXTRACT(EPOCH FROM max(updated_at)) as max',
        'FROM CDB_TableMetadata m',
        'WHERE m.tabname = any ((SELECT tablenames from querytables)::regclass[])',
    ])


class QueryTablesApi(object):
    """
    Query the SQL API of a user for the tables a query depends on.

    :param url_template: Jinja2 template of the SQL API URL, rendered with
        ``user``
    :param timeout: request timeout in seconds
    """
    def __init__(self, url_template=DEFAULT_URL_TEMPLATE, timeout=10, session=None):
        self.url_template = jinja2.Template(url_template)
        self.timeout = timeout
        if session is None:
            session = requests.Session()
        self.req_session = session

    def url(self, username):
        return self.url_template.render(user=username)

    def _query(self, username, db_params, sql):
        url = self.url(username)
        data = {'q': sql}
        api_key = (db_params or {}).get('api_key')
        if api_key:
            data['api_key'] = api_key
        log.debug('querying %s: %s', url, sql)
        try:
            resp = self.req_session.post(url, data=data, timeout=self.timeout)
        except requests.exceptions.RequestException as ex:
            raise QueryTablesError('error querying SQL API of %s: %s' % (username, ex))

        try:
            doc = json.loads(resp.content.decode('utf-8'))
        except ValueError:
            doc = None

        if resp.status_code != 200:
            message = 'SQL API of %s returned %d' % (username, resp.status_code)
            if isinstance(doc, dict) and doc.get('error'):
                error = doc['error']
                if isinstance(error, list):
                    error = '\n'.join(str(e) for e in error)
                message = '%s: %s' % (message, error)
            raise QueryTablesError(message)

        if not isinstance(doc, dict) or not doc.get('rows'):
            raise QueryTablesError('unexpected SQL API response for %s' % (username, ))
        return doc['rows']

    def get_affected_tables_in_query(self, username, db_params, sql):
        """
        Return the list of tables `sql` reads from.
        """
        query = affected_tables_query(sql)
        rows = self._query(username, db_params, query)
        return parse_table_names(rows[0].get('cdb_querytables'))

    def get_affected_tables_and_last_updated_time(self, username, db_params, sql):
        """
        Return a dict with the ``affected_tables`` of `sql` and the
        ``last_updated_time`` (milliseconds since epoch, 0 if unknown) of
        the most recently modified one.
        """
        query = last_updated_time_query(sql)
        rows = self._query(username, db_params, query)
        row = rows[0]
        last_updated = row.get('max') or 0
        return {
            'affected_tables': parse_table_names(row.get('tablenames')),
            'last_updated_time': int(float(last_updated) * 1000),
        }
