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
Service handler.
"""
from tilecontrol.exception import RequestError


class Server(object):
    """
    Base of all services. `names` are the first path segments the
    service is mounted on.
    """
    names = tuple()

    def handle(self, req):
        try:
            return self.dispatch(req)
        except RequestError as e:
            return e.render()

    def dispatch(self, req):
        raise NotImplementedError()
