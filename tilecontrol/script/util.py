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
The ``tilecontrol-util`` command line tool.
"""
import logging
import optparse
import os
import re
import shutil
import sys

from tilecontrol.version import version


def setup_logging(level=logging.INFO):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"))
    log = logging.getLogger('tilecontrol')
    log.setLevel(level)
    log.addHandler(handler)


def parse_bind_address(address, default=('localhost', 8181)):
    """
    >>> parse_bind_address('80')
    ('localhost', 80)
    >>> parse_bind_address('0.0.0.0')
    ('0.0.0.0', 8181)
    >>> parse_bind_address('0.0.0.0:8081')
    ('0.0.0.0', 8081)
    """
    if ':' in address:
        host, port = address.split(':', 1)
        return host, int(port)
    if re.match(r'^\d+$', address):
        return default[0], int(address)
    return address, default[1]


def serve_develop_command(args):
    parser = optparse.OptionParser("usage: %prog serve-develop [options] tilecontrol.yaml")
    parser.add_option("-b", "--bind", dest="address", default='127.0.0.1:8181',
                      help="Server socket [127.0.0.1:8181]. Use 0.0.0.0 for external access.")
    parser.add_option("--debug", dest="debug", action='store_true', default=False,
                      help="Enable debug mode")
    options, args = parser.parse_args(args)

    if len(args) != 2:
        parser.print_help()
        print("\nERROR: TileControl configuration required.")
        sys.exit(1)
    conf_file = args[1]
    host, port = parse_bind_address(options.address)

    if options.debug and host not in ('localhost', '127.0.0.1'):
        print("WARNING: running debug mode with a non-localhost address "
              "is a security vulnerability.")
    setup_logging(logging.DEBUG if options.debug else logging.INFO)

    from werkzeug.serving import run_simple
    from tilecontrol.config.loader import ConfigurationError
    from tilecontrol.wsgiapp import make_wsgi_app
    try:
        app = make_wsgi_app(conf_file, debug=options.debug)
    except ConfigurationError:
        sys.exit(2)

    run_simple(host, port, app, use_reloader=True, threaded=True,
               passthrough_errors=True, extra_files=[os.path.abspath(conf_file)])


class CreateCommand(object):
    """
    Write configuration files from the bundled templates.
    The process exits with 0 on success and 1 on errors.
    """
    templates = {
        'base-config': 'tilecontrol.yaml and log.ini',
        'wsgi-app': 'WSGI module for --tilecontrol-conf',
        'log-ini': 'logging configuration',
    }

    def __init__(self, args):
        self.parser = optparse.OptionParser("usage: %prog create [options] destination")
        self.parser.add_option("-t", "--template", dest="template",
                               help="Create a configuration from this template.")
        self.parser.add_option("-l", "--list-templates", dest="list_templates",
                               action="store_true", default=False,
                               help="List all available configuration templates.")
        self.parser.add_option("-f", "--tilecontrol-conf", dest="tilecontrol_conf",
                               help="Existing TileControl configuration (for wsgi-app).")
        self.parser.add_option("--force", dest="force", action="store_true", default=False,
                               help="Overwrite existing files.")
        self.options, self.args = self.parser.parse_args(args)

    def fail(self, msg, *args):
        print('ERROR:', msg % args, file=sys.stderr)
        sys.exit(1)

    def run(self):
        if self.options.list_templates:
            print_items(self.templates, title='Available templates')
            sys.exit(1)
        template = self.options.template
        if not template:
            self.parser.print_help()
            sys.exit(1)
        if template not in self.templates:
            self.fail("unknown template %s", template)
        if len(self.args) != 2:
            self.fail("template requires destination argument")

        create = getattr(self, 'create_' + template.replace('-', '_'))
        create(self.args[1])
        sys.exit(0)

    def template_file(self, name):
        import tilecontrol.config_template
        return os.path.join(os.path.dirname(tilecontrol.config_template.__file__),
                            'base_config', name)

    def check_overwrite(self, filename):
        if os.path.exists(filename) and not self.options.force:
            self.fail("%s already exists, use --force", filename)

    def create_base_config(self, outdir):
        if not os.path.exists(outdir):
            os.makedirs(outdir)
        for name in ('tilecontrol.yaml', 'log.ini'):
            dst = os.path.join(outdir, name)
            self.check_overwrite(dst)
            print("writing %s" % dst)
            shutil.copy(self.template_file(name), dst)

    def create_wsgi_app(self, filename):
        if not self.options.tilecontrol_conf:
            self.fail("template requires --tilecontrol-conf option")
        conf_file = os.path.abspath(self.options.tilecontrol_conf)
        if '.' not in os.path.basename(filename):
            filename += '.py'
        self.check_overwrite(filename)

        with open(self.template_file('config.wsgi'), encoding='utf-8') as f:
            app = f.read() % {'tilecontrol_conf': conf_file,
                              'here': os.path.dirname(conf_file)}
        print("writing TileControl app to %s" % filename)
        with open(filename, 'w', encoding='utf-8') as f:
            f.write(app)

    def create_log_ini(self, filename):
        self.check_overwrite(filename)
        shutil.copy(self.template_file('log.ini'), filename)


def create_command(args):
    CreateCommand(args).run()


commands = {
    'serve-develop': (serve_develop_command, 'Run TileControl development server.'),
    'create': (create_command, 'Create example configurations.'),
}


def print_items(items, title='Commands'):
    width = max(len(name) for name in items)
    print('%s:' % title)
    for name, help in sorted(items.items()):
        print('  %s  %s' % (name.ljust(width), help))


def main(argv=None):
    if argv is None:
        argv = sys.argv
    if len(argv) < 2 or argv[1] in ('--help', '-h'):
        print("usage: %s COMMAND [options]\n" % os.path.basename(argv[0]))
        print_items(dict((name, cmd[1]) for name, cmd in commands.items()))
        sys.exit(1)
    if argv[1] == '--version':
        print('TileControl ' + version)
        sys.exit(1)

    command = argv[1]
    if command not in commands:
        print_items(dict((name, cmd[1]) for name, cmd in commands.items()))
        print('\nERROR: unknown command %s' % command)
        sys.exit(1)
    commands[command][0](argv[0:1] + argv[2:])


if __name__ == '__main__':
    main()
