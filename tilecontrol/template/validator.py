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
Structural and semantic checks of template documents.
"""
import re

from tilecontrol.template import TemplateValidationError

SUPPORTED_VERSION = '0.0.1'

valid_identifier_re = re.compile(r'^[a-zA-Z][0-9a-zA-Z_]*$')


def template_defaults(template):
    """
    Return a copy of `template` with the default ``auth`` method and
    an empty ``placeholders`` mapping applied.

    >>> template_defaults({'name': 'x'})['auth']
    {'method': 'open'}
    """
    template = dict(template)
    auth = template.get('auth') or {}
    # other types are left for check_invalid_template
    if isinstance(auth, dict):
        auth = dict(auth)
        auth.setdefault('method', 'open')
    template['auth'] = auth
    if template.get('placeholders') is None:
        template['placeholders'] = {}
    return template


def json_type(value):
    """
    >>> json_type(['a'])
    'array'
    """
    if isinstance(value, list):
        return 'array'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    return type(value).__name__


def is_valid_identifier(name):
    return isinstance(name, str) and valid_identifier_re.match(name) is not None


def check_invalid_template(template):
    """
    Return the first validation error of `template` as a message,
    or ``None`` if the template is valid.
    """
    if template.get('version') != SUPPORTED_VERSION:
        return "Unsupported template version %s" % (template.get('version'), )

    name = template.get('name')
    if not name:
        return "Missing template name"
    if not is_valid_identifier(name):
        return "Invalid characters in template name '%s'" % (name, )

    layergroup_error = check_invalid_layergroup(template.get('layergroup'))
    if layergroup_error:
        return layergroup_error

    placeholders = template.get('placeholders') or {}
    if not isinstance(placeholders, dict):
        return "Invalid placeholders: expected an object, got %s" % (json_type(placeholders), )
    for key, placeholder in placeholders.items():
        if not is_valid_identifier(key):
            return "Invalid characters in placeholder name '%s'" % (key, )
        if not isinstance(placeholder, dict) or 'default' not in placeholder:
            return "Missing default for placeholder '%s'" % (key, )
        if 'type' not in placeholder:
            return "Missing type for placeholder '%s'" % (key, )

    auth = template.get('auth') or {}
    if not isinstance(auth, dict):
        return "Unsupported authentication method: %s" % (auth, )
    method = auth.get('method')
    if method == 'open':
        pass
    elif method == 'token':
        valid_tokens = auth.get('valid_tokens')
        if not isinstance(valid_tokens, list):
            return "Invalid 'token' authentication: missing valid_tokens"
        if not valid_tokens:
            return "Invalid 'token' authentication: no valid_tokens"
    else:
        return "Unsupported authentication method: %s" % (method, )

    return None


def check_invalid_layergroup(layergroup):
    if not layergroup:
        return 'Missing layergroup'

    layers = layergroup.get('layers') if isinstance(layergroup, dict) else None
    if not isinstance(layers, list) or not layers:
        return 'Missing or empty layers array from layergroup config'

    invalid_layers = [str(idx) for idx, layer in enumerate(layers)
                      if not isinstance(layer, dict) or not isinstance(layer.get('options'), dict)]
    if invalid_layers:
        return 'Missing `options` in layergroup config for layers: ' + ', '.join(invalid_layers)

    for key in ('sql', 'cartocss'):
        invalid_layers = [str(idx) for idx, layer in enumerate(layers)
                          if key in layer['options'] and not isinstance(layer['options'][key], str)]
        if invalid_layers:
            return 'Invalid `%s` in layergroup config for layers: %s (string expected)' % (
                key, ', '.join(invalid_layers))

    return None


def validate_template(template):
    """
    :raise TemplateValidationError: with the first problem found
    """
    error = check_invalid_template(template)
    if error:
        raise TemplateValidationError(error)
