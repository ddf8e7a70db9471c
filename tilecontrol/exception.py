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
Service exception handling.
"""
import json

from tilecontrol.response import Response


class RequestError(Exception):
    """
    Exception for all request related errors.

    :ivar internal: True if the error was an internal error, ie. the request itself
                    was valid (e.g. the metadata store is unreachable)
    """
    status = 400

    def __init__(self, message, status=None, internal=False):
        Exception.__init__(self, message)
        self.msg = message
        self.internal = internal
        if status is not None:
            self.status = status
        elif internal:
            self.status = 500

    def render(self):
        """
        Return a JSON response with the rendered exception.

        :rtype: `Response`
        """
        body = json.dumps({'errors': [self.msg]})
        return Response(body, status=self.status, mimetype='application/json')

    def __str__(self):
        return self.msg

    def __repr__(self):
        return 'RequestError("%s", status=%r)' % (self.msg, self.status)


class ForbiddenError(RequestError):
    """
    The request was understood but the caller is not allowed to perform it.
    """
    status = 403


class NotFoundError(RequestError):
    status = 404
