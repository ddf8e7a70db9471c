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
Service configuration options.
"""
import copy


class Options(dict):
    """
    Dictionary with attribute access. `update` merges nested
    `Options` instead of replacing them.

    >>> o = Options(redis=Options(host='localhost', port=6379))
    >>> o.update({'redis': {'port': 6380}})
    >>> o.redis.host, o.redis.port
    ('localhost', 6380)
    """
    def __repr__(self):
        return 'Options(%s)' % dict.__repr__(self)

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    __setattr__ = dict.__setitem__

    def update(self, other=(), **kw):
        if hasattr(other, 'items'):
            other = other.items()
        for key, value in list(other) + list(kw.items()):
            value = to_options(value)
            if isinstance(self.get(key), Options) and isinstance(value, dict):
                self[key].update(value)
            else:
                self[key] = value

    def __deepcopy__(self, memo):
        return Options(copy.deepcopy(dict(self), memo))


def to_options(value):
    """
    Convert all dictionaries in `value` to `Options`.
    """
    if isinstance(value, dict):
        return Options((k, to_options(v)) for k, v in value.items())
    if isinstance(value, list):
        return [to_options(v) for v in value]
    return value


def load_default_config():
    """
    Return the values of `tilecontrol.config.defaults` as `Options`.
    """
    from tilecontrol.config import defaults
    return to_options(dict(
        (key, copy.deepcopy(value)) for key, value in vars(defaults).items()
        if not key.startswith('_')
    ))


def load_config(config, config_dict):
    """
    Merge `config_dict` into the `Options` `config`. Nested sections are
    merged key by key.
    """
    config.update(config_dict or {})
