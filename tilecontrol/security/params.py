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
Resolution of the parameters of map requests: query whitelist, owner
from host, layergroup tokens and database connection.

`RequestParamsResolver.resolve` is the entry point for the tile server,
which resolves the parameters of every map and tile request with it.
"""
import re

from tilecontrol.exception import RequestError
from tilecontrol.security import AuthorizationError

import logging
log = logging.getLogger('tilecontrol.auth')


REQUEST_QUERY_PARAMS_WHITELIST = (
    'sql',
    'geom_type',
    'cache_buster',
    'cache_policy',
    'callback',
    'interactivity',
    'map_key',
    'api_key',
    'auth_token',
    'style',
    'style_version',
    'style_convert',
    'config',
    'scale_factor',
)

DEFAULT_USER_FROM_HOST = r'^([^\.]+)\.'

DEFAULT_INTERACTIVITY = 'cartodb_id'


def whitelist_query(args):
    """
    Return the query arguments of `args` that map requests accept.
    """
    return dict((k, v) for k, v in args.items() if k in REQUEST_QUERY_PARAMS_WHITELIST)


def parse_token(token, user):
    """
    Split a layergroup token of the form
    ``[signer@[template_hash@]]token[:cache_buster]``.

    An empty signer stands for `user`.

    >>> sorted(parse_token('@abc@0123:1400000000', 'jane').items())
    [('cache_buster', '1400000000'), ('signer', 'jane'), ('token', '0123')]

    :raise AuthorizationError: if the signer is not `user`
    """
    result = {}
    parts = token.split(':')
    token = parts[0]
    if len(parts) > 1:
        result['cache_buster'] = parts[1]

    parts = token.split('@')
    if len(parts) > 1:
        signer = parts.pop(0)
        if not signer:
            signer = user
        elif signer != user:
            raise AuthorizationError(
                'Cannot use map signature of user "%s" on database of user "%s"'
                % (signer, user))
        result['signer'] = signer
        if len(parts) > 1:
            # template hash, unused
            parts.pop(0)
        token = parts.pop(0)
    result['token'] = token
    return result


class UserFromHost(object):
    """
    Extract the owner from the request host with a regular expression.
    The first group of the match is the user name.
    """
    def __init__(self, pattern=DEFAULT_USER_FROM_HOST):
        self.pattern = pattern
        self.re = re.compile(pattern)

    def __call__(self, host):
        match = self.re.search(host or '')
        if not match or not match.groups():
            log.error("user pattern '%s' does not match hostname '%s'", self.pattern, host)
            return None
        return match.group(1)


class RequestParamsResolver(object):
    """
    Build the parameters of a map request and authorize it.

    :param authorizer: the `Authorizer`
    :param user_from_host: `UserFromHost` or a regular expression
    """
    def __init__(self, authorizer, user_from_host=DEFAULT_USER_FROM_HOST):
        self.authorizer = authorizer
        if not callable(user_from_host):
            user_from_host = UserFromHost(user_from_host)
        self.user_from_host = user_from_host

    def user_by_host(self, host):
        user = self.user_from_host(host)
        if user is None:
            raise RequestError("Unable to determine user from host '%s'" % (host, ), status=404)
        return user

    def resolve(self, host, args, path_params=None, body=None):
        """
        Return the owner and the request parameters of a map request.

        :param host: the request host, names the owner
        :param args: the query arguments, unknown arguments are dropped
        :param path_params: parameters from the request path
            (``token``, ``table``, ...)
        :param body: the decoded JSON body, may carry the API key
        :raise AuthorizationError: for foreign signatures and
            unauthorized requests
        """
        args = whitelist_query(args or {})
        params = dict(path_params or {})
        user = self.user_by_host(host)

        if params.get('token'):
            params.update(parse_token(params['token'], user))

        params.update(args)
        params['interactivity'] = params.get('interactivity') or DEFAULT_INTERACTIVITY

        decision = self.authorizer.authorize(user, params, args, body)
        if not decision:
            raise AuthorizationError('Sorry, you are unauthorized (permission denied)')

        self.authorizer.set_db_conn(user, params)
        return user, params
