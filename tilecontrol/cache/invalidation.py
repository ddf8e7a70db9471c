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
Invalidation of cached named map responses after template changes.
"""
import threading

from tilecontrol.cache.surrogate import NamedMapsCacheEntry

import logging
log = logging.getLogger('tilecontrol.cache')


class NamedMapsInvalidator(object):
    """
    Invalidate the surrogate key of a named map whenever its template is
    updated or deleted.

    Invalidations run in a background thread unless `background` is
    False. Failures are logged and never retried.
    """
    event_types = ('update', 'delete')

    def __init__(self, surrogate_keys_cache, background=True):
        self.surrogate_keys_cache = surrogate_keys_cache
        self.background = background

    def subscribe(self, template_maps):
        template_maps.subscribe(self, self.event_types)

    def __call__(self, event):
        self.invalidate_named_map(event.owner, event.name)

    def invalidate_named_map(self, owner, template_name):
        entry = NamedMapsCacheEntry(owner, template_name)
        if not self.background:
            self._invalidate(entry)
            return
        t = threading.Thread(target=self._invalidate, args=(entry, ))
        t.daemon = True
        t.start()

    def _invalidate(self, entry):
        try:
            self.surrogate_keys_cache.invalidate(entry)
        except Exception as ex:
            log.warning('surrogate key invalidation failed for %r: %s', entry, ex)
