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
Authorization of map requests.

Requests are authorized by the API key of the owner, by a signer whose
template grants access to the requested layergroup, or by the privacy of
the requested table, in that order.

`Authorizer.authorize` is the entry point for the tile server, which
checks every map and tile request with it.
"""
import re

import jinja2

import logging
log = logging.getLogger('tilecontrol.auth')


DB_PARAMS = ('dbuser', 'dbpassword', 'dbhost', 'dbport', 'dbname')

# privacy flag as stored at rails:{dbname}:{table} (see
# UserMetadataBase.get_table_privacy): "0" is private, other values and
# missing flags are public
PRIVATE_TABLE = '0'


class AuthorizationDecision(object):
    """
    Result of `Authorizer.authorize`.

    :ivar authorized: True if the request may proceed
    :ivar by_api_key: True if the owner API key was presented
    :ivar by_signer: name of the user whose template signature authorized
        the request, or ``None``
    :ivar db_params: the database credentials set for the request
    """
    def __init__(self, authorized, by_api_key=False, by_signer=None, db_params=None):
        self.authorized = authorized
        self.by_api_key = by_api_key
        self.by_signer = by_signer
        self.db_params = db_params or {}

    def __bool__(self):
        return bool(self.authorized)

    def __repr__(self):
        return 'AuthorizationDecision(authorized=%r, by_api_key=%r, by_signer=%r)' % (
            self.authorized, self.by_api_key, self.by_signer)


def presented_api_key(args, body=None):
    """
    Return the ``api_key`` or ``map_key`` of the query `args`, or of the
    JSON `body` if the query has none.
    """
    key = None
    if args:
        key = args.get('api_key') or args.get('map_key')
    if not key and isinstance(body, dict):
        key = body.get('api_key') or body.get('map_key')
    return key


class Authorizer(object):
    """
    :param user_metadata: `UserMetadataBase` with map keys, user ids and
        database parameters
    :param map_store: `MapStoreBase` to load layergroups by token
    :param template_maps: `TemplateMaps` that decides on template auth
    :param postgres: default connection parameters (``user``,
        ``password``, ``host``, ``port``)
    :param auth_user: Jinja2 template for the database user of an
        authorized user, rendered with ``user_id``
    :param auth_pass: Jinja2 template for the database password, rendered
        with ``user_id`` and ``user_password``
    """
    def __init__(self, user_metadata, map_store, template_maps, postgres=None,
                 auth_user='tc_user_{{user_id}}', auth_pass=None):
        self.user_metadata = user_metadata
        self.map_store = map_store
        self.template_maps = template_maps
        self.postgres = postgres or {}
        self.auth_user = jinja2.Template(auth_user)
        self.auth_pass = jinja2.Template(auth_pass) if auth_pass else None
        self.needs_user_password = bool(auth_pass and re.search(r'\buser_password\b', auth_pass))

    def authorized_by_api_key(self, user, args, body=None):
        given_key = presented_api_key(args, body)
        if not given_key:
            return False
        user_key = self.user_metadata.get_user_map_key(user)
        return bool(user_key) and given_key == user_key

    def authorized_by_signer(self, params):
        """
        Return the signer if the template of the requested layergroup
        accepts the ``auth_token`` of `params`, ``None`` otherwise.
        """
        token = params.get('token')
        signer = params.get('signer')
        if not token or not signer:
            return None

        config = self.map_store.load(token)
        template = config.get('template')
        if self.template_maps.is_authorized(template, params.get('auth_token')):
            return signer
        log.debug('signature of %s rejected for %s', signer, token)
        return None

    def set_db_auth(self, username, params):
        """
        Set ``dbuser`` (and ``dbpassword``) in `params` to the database
        credentials of `username`.
        """
        user_params = {'user_id': self.user_metadata.get_user_id(username)}
        params['dbuser'] = self.auth_user.render(**user_params)

        if self.auth_pass is None:
            return
        user_params['user_password'] = None
        if self.needs_user_password:
            user_params['user_password'] = self.user_metadata.get_user_db_pass(username)
        params['dbpassword'] = self.auth_pass.render(**user_params)

    def set_db_conn(self, dbowner, params):
        """
        Set the connection parameters of the database of `dbowner`.
        Missing parameters default to the configured postgres parameters.
        The public database user of the owner is only taken for
        ``publicuser`` requests.
        """
        params.setdefault('dbuser', self.postgres.get('user'))
        params.setdefault('dbpassword', self.postgres.get('password'))
        params.setdefault('dbhost', self.postgres.get('host'))
        params.setdefault('dbport', self.postgres.get('port'))

        conn_params = dict(self.user_metadata.get_user_db_connection_params(dbowner) or {})
        # don't overwrite a non public user
        if params['dbuser'] != 'publicuser' or not conn_params.get('dbuser'):
            conn_params.pop('dbuser', None)
        params.update(conn_params)

    def _decision(self, authorized, params, by_api_key=False, by_signer=None):
        db_params = dict((k, params[k]) for k in DB_PARAMS if k in params)
        return AuthorizationDecision(authorized, by_api_key=by_api_key,
                                     by_signer=by_signer, db_params=db_params)

    def authorize(self, user, params, args=None, body=None):
        """
        Decide whether the request of `params` on the database of `user`
        is authorized.

        The database credentials of the owner (API key) or the signer are
        set in `params`. ``_authorized_by_api_key`` or
        ``_authorized_by_signer`` mark how the request was authorized.

        :param args: the query arguments of the request
        :param body: the decoded JSON body of the request, if any
        :rtype: `AuthorizationDecision`
        """
        if self.authorized_by_api_key(user, args, body):
            params['_authorized_by_api_key'] = True
            self.set_db_auth(user, params)
            log.debug('request of %s authorized by api key', user)
            return self._decision(True, params, by_api_key=True)

        signer = self.authorized_by_signer(params)
        if signer:
            params['_authorized_by_signer'] = signer
            self.set_db_auth(signer, params)
            log.debug('request on %s authorized by signer %s', user, signer)
            return self._decision(True, params, by_signer=signer)

        table = params.get('table')
        if table:
            dbname = self.user_metadata.get_user_db_name(user)
            privacy = self.user_metadata.get_table_privacy(dbname, table)
            return self._decision(privacy != PRIVATE_TABLE, params)

        if params.get('signer'):
            # a signature was given but not accepted
            return self._decision(False, params)

        # database permissions of the default user decide
        return self._decision(True, params)
