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
Durable storage of per-owner map templates.

Templates of one owner live in a single hash (``map_tpl|<owner>``) with
one field per template name and the JSON document as value.
"""
import json
from collections import namedtuple

from tilecontrol.template import (
    TemplateConflictError,
    TemplateNotFoundError,
    TemplateQuotaError,
)
from tilecontrol.template import instance as _instance
from tilecontrol.template.validator import template_defaults, validate_template

import logging
log = logging.getLogger('tilecontrol.templates')


TemplateEvent = namedtuple('TemplateEvent', ['type', 'owner', 'name', 'template'])

EVENT_TYPES = ('add', 'update', 'delete')


class TemplateMaps(object):
    """
    CRUD over map templates, backed by a `HashStoreBase`.

    :param store: the hash store holding the templates
    :param max_user_templates: limit on the number of templates per owner,
        0 for no limit
    :param lock_ttl: lock time-to-live in milliseconds. Accepted for
        configuration compatibility; mutations rely on the atomicity of
        the single store commands and take no lock.
    """
    def __init__(self, store, max_user_templates=0, lock_ttl=5000):
        self.store = store
        self.max_user_templates = max_user_templates or 0
        self.lock_ttl = lock_ttl
        self._subscribers = []

    def user_templates_key(self, owner):
        return 'map_tpl|%s' % (owner, )

    def subscribe(self, listener, event_types=EVENT_TYPES):
        """
        Call `listener` with a `TemplateEvent` after every successful
        mutation of one of the given `event_types`.
        """
        for event_type in event_types:
            if event_type not in EVENT_TYPES:
                raise ValueError('unknown template event type: %s' % (event_type, ))
        self._subscribers.append((listener, frozenset(event_types)))

    def unsubscribe(self, listener):
        self._subscribers = [(l, types) for l, types in self._subscribers if l is not listener]

    def _emit(self, event_type, owner, name, template=None):
        event = TemplateEvent(event_type, owner, name, template)
        for listener, event_types in self._subscribers:
            if event_type not in event_types:
                continue
            try:
                listener(event)
            except Exception:
                log.exception('template %s listener failed for %s@%s', event_type, owner, name)

    def add_template(self, owner, template):
        """
        Add a new template.

        :returns: the template name, which identifies the template for
            the given owner
        :raise TemplateValidationError: for invalid templates
        :raise TemplateQuotaError: if the owner reached `max_user_templates`
        :raise TemplateConflictError: if the name already exists
        """
        template = template_defaults(template)
        validate_template(template)

        name = template['name']
        key = self.user_templates_key(owner)

        # best-effort check, concurrent inserts may exceed the limit
        limit = self.max_user_templates
        if limit:
            num_templates = self.store.hlen(key)
            if num_templates >= limit:
                raise TemplateQuotaError(
                    "User '%s' reached limit on number of templates (%d/%d)"
                    % (owner, num_templates, limit))

        if not self.store.hsetnx(key, name, json.dumps(template)):
            raise TemplateConflictError(
                "Template '%s' of user '%s' already exists" % (name, owner))

        log.info('added template %s@%s', owner, name)
        self._emit('add', owner, name, template)
        return name

    def upd_template(self, owner, tpl_id, template):
        """
        Replace an existing template. The template name can't be changed.

        :returns: the stored template (with defaults applied)
        """
        template = template_defaults(template)
        validate_template(template)

        name = template['name']
        if tpl_id != name:
            raise TemplateConflictError(
                "Cannot update name of a map template ('%s' != '%s')" % (tpl_id, name))

        key = self.user_templates_key(owner)
        if self.store.hget(key, tpl_id) is None:
            raise TemplateNotFoundError(
                "Template '%s' of user '%s' does not exist" % (tpl_id, owner))

        if self.store.hset(key, name, json.dumps(template)):
            log.warning('New template created on update operation: %s@%s', owner, name)

        log.info('updated template %s@%s', owner, name)
        self._emit('update', owner, name, template)
        return template

    def del_template(self, owner, tpl_id):
        if not self.store.hdel(self.user_templates_key(owner), tpl_id):
            raise TemplateNotFoundError(
                "Template '%s' of user '%s' does not exist" % (tpl_id, owner))
        log.info('deleted template %s@%s', owner, tpl_id)
        self._emit('delete', owner, tpl_id)

    def list_templates(self, owner):
        """
        Return the names of all templates of `owner`.
        """
        return self.store.hkeys(self.user_templates_key(owner))

    def get_template(self, owner, tpl_id):
        """
        Return the template document, ``None`` if it does not exist.
        """
        value = self.store.hget(self.user_templates_key(owner), tpl_id)
        if value is None:
            return None
        return json.loads(value)

    def is_authorized(self, template, auth_tokens):
        """
        Check whether `auth_tokens` (a single token or a list) grant
        access to instances of `template`.
        """
        if not template:
            return False

        if not isinstance(auth_tokens, (list, tuple)):
            auth_tokens = [auth_tokens]

        auth = template.get('auth')
        if not auth or auth == 'open':
            return True
        if not isinstance(auth, dict):
            return False

        method = auth.get('method')
        if method == 'open':
            return True
        if method == 'token':
            valid_tokens = auth.get('valid_tokens') or []
            return any(token in valid_tokens for token in auth_tokens)
        return False

    def instance(self, template, params):
        return _instance.instance(template, params)

    def fingerprint(self, template):
        return _instance.fingerprint(template)
