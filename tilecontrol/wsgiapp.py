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
The WSGI application.
"""
import json
import os
import re
import sys

from tilecontrol.request import Request
from tilecontrol.response import Response
from tilecontrol.config.loader import load_configuration, ConfigurationError

import logging
log = logging.getLogger('tilecontrol.config')
log_wsgiapp = logging.getLogger('tilecontrol.wsgiapp')


def init_logging_system(log_conf, base_dir):
    import logging.config
    if log_conf:
        if not os.path.exists(log_conf):
            print('ERROR: log configuration %s not found.' % log_conf, file=sys.stderr)
            return
        logging.config.fileConfig(log_conf, dict(here=base_dir))


def configured_services(conf):
    """
    Create all services of the `ServiceConfiguration` `conf`.
    """
    from tilecontrol.service.named_maps import NamedMapsServer
    return [
        NamedMapsServer(
            conf.template_maps,
            conf.authorizer,
            conf.params_resolver,
            conf.map_store,
            conf.cache_channel_generator,
            conf.surrogate_keys_cache,
        ),
    ]


def make_wsgi_app(services_conf=None, debug=False, conf=None):
    """
    Create a TileControlApp with the given services conf.

    :param services_conf: the file name of the tilecontrol.yaml configuration
    :param conf: an already loaded `ServiceConfiguration`, used instead
        of `services_conf`
    """
    if conf is None:
        try:
            conf = load_configuration(services_conf)
        except ConfigurationError as e:
            log.fatal(e)
            raise
        if conf.log_conf:
            init_logging_system(conf.log_conf, conf.conf_base_dir)

    app = TileControlApp(configured_services(conf), conf, debug=debug)
    if services_conf:
        app.config_files[os.path.abspath(services_conf)] = True
    if debug:
        from werkzeug.debug import DebuggedApplication
        app = DebuggedApplication(app, evalex=True)
    return app


class TileControlApp(object):
    """
    The TileControl WSGI application.
    """
    handler_path_re = re.compile(r'^/(\w+)')

    def __init__(self, services, conf, debug=False):
        self.handlers = {}
        self.conf = conf
        self.debug = debug
        self.config_files = {}
        for service in services:
            for name in service.names:
                self.handlers[name] = service

    def __call__(self, environ, start_response):
        resp = None
        req = Request(environ)

        match = self.handler_path_re.match(req.path)
        if match:
            handler_name = match.group(1)
            if handler_name in self.handlers:
                try:
                    resp = self.handlers[handler_name].handle(req)
                except Exception:
                    if self.debug:
                        raise
                    log_wsgiapp.fatal('fatal error in %s for %s %s',
                                      handler_name, environ.get('PATH_INFO'),
                                      environ.get('QUERY_STRING'), exc_info=True)
                    resp = Response(json.dumps({'errors': ['internal error']}), status=500,
                                    mimetype='application/json')
        if resp is None:
            if req.path in ('', '/'):
                resp = self.welcome_response()
            else:
                resp = Response('not found', mimetype='text/plain', status=404)
        return resp(environ, start_response)

    def welcome_response(self):
        from tilecontrol.version import version_string
        return Response('This is TileControl %s\n' % (version_string(), ), mimetype='text/plain')
