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

import json
import os.path
from typing import Iterable

from jsonschema.exceptions import ValidationError
from jsonschema.validators import Draft202012Validator

import logging
log = logging.getLogger('tilecontrol.config')


with open(os.path.join(os.path.dirname(__file__), 'config-schema.json')) as schema_file:
    schema = json.load(schema_file)


def get_error_messages(errors: Iterable[ValidationError]) -> list[str]:
    msgs = []
    for error in errors:
        path = error.json_path.replace('$', 'root')
        msg = f'{error.message} in {path}'
        msgs.append(msg)
        if error.context is not None:
            msgs += get_error_messages(error.context)
    return msgs


def validate(conf_dict: dict) -> list[str]:
    """
    Validate `conf_dict` against the configuration schema and return
    the error messages. An empty list means the configuration is valid.
    """
    validator = Draft202012Validator(schema=schema)
    errors_iter = validator.iter_errors(conf_dict)
    errors = [] if errors_iter is None else get_error_messages(errors_iter)
    errors.extend(_validate_templates(conf_dict))
    return errors


def _validate_templates(conf_dict: dict) -> list[str]:
    errors = []
    auth_user = conf_dict.get('postgres_auth_user')
    if isinstance(auth_user, str) and 'user_id' not in auth_user:
        errors.append('postgres_auth_user does not reference user_id in root.postgres_auth_user')
    user_from_host = conf_dict.get('user_from_host')
    if isinstance(user_from_host, str) and '(' not in user_from_host:
        errors.append('user_from_host needs a group for the user name in root.user_from_host')
    return errors
