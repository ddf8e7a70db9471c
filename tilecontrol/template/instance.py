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
Template instantiation: placeholder resolution, escaping and substitution.
"""
import copy
import enum
import hashlib
import json
import re

from tilecontrol.template import TemplateParamError

number_re = re.compile(r'[-+]?[\d.]?\d+([eE][+-]?\d+)?')
css_color_name_re = re.compile(r'[a-zA-Z]+')
css_color_value_re = re.compile(r'#[0-9a-fA-F]{3,6}')

# fields of each layer's options that may contain placeholder markers
SUBSTITUTED_OPTIONS = ('cartocss', 'sql')


def _escape_sql_literal(name, value):
    return str(value).replace("'", "''")


def _escape_sql_ident(name, value):
    return str(value).replace('"', '""')


def _check_number(name, value):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and number_re.fullmatch(value):
        return value
    raise TemplateParamError(
        "Invalid number value for template parameter '%s': %s" % (name, value))


def _check_css_color(name, value):
    if isinstance(value, str) and (css_color_name_re.fullmatch(value) or
                                   css_color_value_re.fullmatch(value)):
        return value
    raise TemplateParamError(
        "Invalid css_color value for template parameter '%s': %s" % (name, value))


class PlaceholderType(enum.Enum):
    """
    The closed set of placeholder types. Each type carries the function
    that checks and escapes a value of that type.
    """
    SQL_LITERAL = 'sql_literal'
    SQL_IDENT = 'sql_ident'
    NUMBER = 'number'
    CSS_COLOR = 'css_color'

    @classmethod
    def from_name(cls, type_name):
        try:
            return cls(type_name)
        except ValueError:
            raise TemplateParamError("Invalid placeholder type '%s'" % (type_name, ))

    def escape(self, name, value):
        return _escapers[self](name, value)


_escapers = {
    PlaceholderType.SQL_LITERAL: _escape_sql_literal,
    PlaceholderType.SQL_IDENT: _escape_sql_ident,
    PlaceholderType.NUMBER: _check_number,
    PlaceholderType.CSS_COLOR: _check_css_color,
}


def resolve_params(template, params):
    """
    Return the checked and escaped value of every declared placeholder,
    in declaration order. Values missing from `params` take the declared
    default.
    """
    resolved = {}
    placeholders = template.get('placeholders') or {}
    for name, placeholder in placeholders.items():
        if name in params:
            value = params[name]
        else:
            value = placeholder['default']
        placeholder_type = PlaceholderType.from_name(placeholder.get('type'))
        resolved[name] = placeholder_type.escape(name, value)
    return resolved


def replace_vars(text, params):
    """
    Replace ``<%= name %>`` markers in `text`, one placeholder at a time.

    >>> replace_vars("select '<%= name %>' from t", {'name': 'x'})
    "select 'x' from t"
    """
    for name, value in params.items():
        marker_re = re.compile(r'<%=\s*' + re.escape(name) + r'\s*%>')
        replacement = str(value)
        text = marker_re.sub(lambda _match: replacement, text)
    return text


def instance(template, params):
    """
    Perform placeholder substitutions on a template.

    :param template: a template document (will not be modified)
    :param params: named substitution parameters. Only the ones declared
        in the template's placeholders are used, missing ones take their
        default values.
    :returns: a layergroup configuration annotated with the template
        ``name`` and ``auth``
    :raise TemplateParamError: on an invalid parameter value
    """
    resolved = resolve_params(template, params or {})

    layergroup = copy.deepcopy(template['layergroup'])
    for layer in layergroup['layers']:
        options = layer['options']
        for key in SUBSTITUTED_OPTIONS:
            if options.get(key):
                options[key] = replace_vars(options[key], resolved)

    layergroup['template'] = {
        'name': template.get('name'),
        'auth': copy.deepcopy(template.get('auth')),
    }
    return layergroup


def fingerprint(template):
    """
    Stable md5 hash of the serialized template, usable to detect changes.
    """
    serialized = json.dumps(template, separators=(',', ':'), ensure_ascii=False)
    return hashlib.md5(serialized.encode('utf-8')).hexdigest()
