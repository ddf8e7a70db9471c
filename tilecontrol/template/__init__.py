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
Named map templates (validation, storage and instantiation).
"""


class TemplateError(Exception):
    pass


class TemplateValidationError(TemplateError):
    """
    The template document is malformed. Never persisted.
    """
    pass


class TemplateConflictError(TemplateError):
    """
    The operation conflicts with the stored templates (duplicate name,
    missing template, rename attempt).
    """
    pass


class TemplateNotFoundError(TemplateConflictError):
    pass


class TemplateQuotaError(TemplateError):
    pass


class TemplateParamError(TemplateError):
    """
    A placeholder value failed its type check during instantiation.
    """
    pass
