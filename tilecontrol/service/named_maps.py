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
Named maps service: management and instantiation of map templates.

::

    POST   /maps/named                  create template (api key)
    GET    /maps/named                  list templates (api key)
    GET    /maps/named/<id>             get template (api key)
    PUT    /maps/named/<id>             update template (api key)
    DELETE /maps/named/<id>             delete template (api key)
    POST   /maps/named/<id>?auth_token  instantiate template

``/tiles/template`` is an alias of ``/maps/named``.
"""
import contextlib

from tilecontrol.cache import CacheChannelError
from tilecontrol.cache.surrogate import NamedMapsCacheEntry
from tilecontrol.client.sqlapi import QueryTablesError
from tilecontrol.exception import ForbiddenError, NotFoundError, RequestError
from tilecontrol.kv.base import StoreBackendError
from tilecontrol.kv.mapstore import MapStoreError
from tilecontrol.response import Response, json_response
from tilecontrol.security import AuthorizationError
from tilecontrol.security.params import whitelist_query
from tilecontrol.service.base import Server
from tilecontrol.template import (
    TemplateConflictError,
    TemplateNotFoundError,
    TemplateParamError,
    TemplateQuotaError,
    TemplateValidationError,
)

import logging
log = logging.getLogger('tilecontrol.templates')


MOUNTS = {
    'maps': 'named',
    'tiles': 'template',
}


def parse_template_id(tpl_id, user):
    """
    Return owner and name of template id ``name`` or ``owner@name``.

    >>> parse_template_id('localhost@acceptance', 'localhost')
    ('localhost', 'acceptance')

    :raise ForbiddenError: if the template belongs to another user
    """
    if '@' in tpl_id:
        owner, name = tpl_id.split('@', 1)
        if owner != user:
            raise ForbiddenError(
                "Cannot use template of user '%s' on database of user '%s'" % (owner, user))
        return owner, name
    return user, tpl_id


@contextlib.contextmanager
def template_errors():
    """
    Convert template and backend errors into `RequestError`.
    """
    try:
        yield
    except (TemplateValidationError, TemplateParamError) as ex:
        raise RequestError(str(ex), status=400)
    except TemplateNotFoundError as ex:
        raise NotFoundError(str(ex))
    except TemplateConflictError as ex:
        raise RequestError(str(ex), status=400)
    except TemplateQuotaError as ex:
        raise ForbiddenError(str(ex))
    except CacheChannelError as ex:
        raise RequestError(str(ex), status=400)
    except (StoreBackendError, MapStoreError, QueryTablesError) as ex:
        log.error('backend error: %s', ex)
        raise RequestError(str(ex), internal=True)


class NamedMapsServer(Server):
    names = tuple(MOUNTS)

    def __init__(self, template_maps, authorizer, params_resolver, map_store,
                 cache_channel_generator, surrogate_keys_cache):
        self.template_maps = template_maps
        self.authorizer = authorizer
        self.params_resolver = params_resolver
        self.map_store = map_store
        self.cache_channel_generator = cache_channel_generator
        self.surrogate_keys_cache = surrogate_keys_cache

    def dispatch(self, req):
        prefix = req.pop_path()
        if MOUNTS.get(prefix) != req.pop_path():
            raise NotFoundError('not found')

        tpl_id = req.path.strip('/')
        if '/' in tpl_id:
            raise NotFoundError('not found')

        user = self.params_resolver.user_by_host(req.host)
        method = req.method

        with template_errors():
            if not tpl_id:
                if method == 'POST':
                    return self.create(req, user)
                if method == 'GET':
                    return self.list(req, user)
            else:
                owner, name = parse_template_id(tpl_id, user)
                if method == 'GET':
                    return self.get(req, owner, name)
                if method == 'PUT':
                    return self.update(req, owner, name)
                if method == 'DELETE':
                    return self.delete(req, owner, name)
                if method == 'POST':
                    return self.instantiate(req, owner, name)
        raise RequestError('method %s not allowed' % (method, ), status=405)

    def _json_body(self, req):
        try:
            return req.json
        except ValueError as ex:
            raise RequestError('invalid JSON body: %s' % (ex, ))

    def _check_api_key(self, req, user, action):
        if not self.authorizer.authorized_by_api_key(user, req.args):
            raise AuthorizationError('Only authenticated users can %s templated maps' % (action, ))

    def create(self, req, user):
        self._check_api_key(req, user, 'create')
        template = self._json_body(req)
        if not isinstance(template, dict):
            raise RequestError('template document expected')
        name = self.template_maps.add_template(user, template)
        return json_response({'template_id': '%s@%s' % (user, name)})

    def list(self, req, user):
        self._check_api_key(req, user, 'list')
        names = self.template_maps.list_templates(user)
        return json_response({'template_ids': ['%s@%s' % (user, name) for name in names]})

    def get(self, req, owner, name):
        self._check_api_key(req, owner, 'get')
        template = self.template_maps.get_template(owner, name)
        if template is None:
            raise NotFoundError("Template '%s' of user '%s' not found" % (name, owner))
        return json_response({'template': template})

    def update(self, req, owner, name):
        self._check_api_key(req, owner, 'update')
        template = self._json_body(req)
        if not isinstance(template, dict):
            raise RequestError('template document expected')
        self.template_maps.upd_template(owner, name, template)
        return json_response({'template_id': '%s@%s' % (owner, name)})

    def delete(self, req, owner, name):
        self._check_api_key(req, owner, 'delete')
        self.template_maps.del_template(owner, name)
        return Response('', status=204)

    def instantiate(self, req, owner, name):
        template = self.template_maps.get_template(owner, name)
        if template is None:
            raise NotFoundError("Template '%s' of user '%s' not found" % (name, owner))

        if not self.template_maps.is_authorized(template, req.args.get('auth_token')):
            raise AuthorizationError('Unauthorized template instanciation')

        template_params = self._json_body(req)
        if template_params is None:
            template_params = {}
        if not isinstance(template_params, dict):
            raise RequestError('Template parameters must be a JSON object')

        layergroup = self.template_maps.instance(template, template_params)

        params = whitelist_query(req.args)
        self.authorizer.set_db_auth(owner, params)
        self.authorizer.set_db_conn(owner, params)

        token = self.map_store.save(layergroup)
        fingerprint = self.template_maps.fingerprint(template)
        body = {'layergroupid': '%s@%s@%s' % (owner, fingerprint, token)}
        self.cache_channel_generator.after_layergroup_create(
            owner, params, layergroup, body, token=token)
        log.info('instantiated template %s@%s as %s', owner, name, token)

        resp = json_response(body)
        self.surrogate_keys_cache.tag(resp, NamedMapsCacheEntry(owner, name))
        return resp
