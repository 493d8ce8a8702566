# This file is part of the FeatureTiles project.
# Copyright (C) 2024 FeatureTiles developers
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

import io
import optparse
import os
import re
import sys
import textwrap
import logging

from featuretiles.version import version


def setup_logging(level=logging.INFO, format=None):
    featuretiles_log = logging.getLogger('featuretiles')
    featuretiles_log.setLevel(level)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(level)
    if not format:
        format = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(format)
    ch.setFormatter(formatter)
    featuretiles_log.addHandler(ch)


def serve_develop_command(args):
    parser = optparse.OptionParser("usage: %prog serve-develop [options] featuretiles.yaml")
    parser.add_option("-b", "--bind",
                      dest="address", default='127.0.0.1:8080',
                      help="Server socket [127.0.0.1:8080]. Use 0.0.0.0 for external access. :1234 to change port.")
    parser.add_option("--debug", default=False, action='store_true',
                      dest="debug",
                      help="Enable debug mode")
    options, args = parser.parse_args(args)

    if len(args) != 2:
        parser.print_help()
        print("\nERROR: FeatureTiles configuration required.")
        sys.exit(1)

    featuretiles_conf = args[1]

    host, port = parse_bind_address(options.address)

    if options.debug and host not in ('localhost', '127.0.0.1'):
        print(textwrap.dedent("""\
        ################# WARNING! ##################
        Running debug mode with non-localhost address
        is a serious security vulnerability.
        #############################################\
        """))

    if options.debug:
        setup_logging(level=logging.DEBUG)
    else:
        setup_logging()
    from werkzeug.serving import run_simple
    from featuretiles.wsgiapp import make_wsgi_app
    from featuretiles.config.loader import ConfigurationError
    try:
        app = make_wsgi_app(featuretiles_conf, debug=options.debug)
    except ConfigurationError:
        sys.exit(2)

    run_simple(host, port, app, use_reloader=True, threaded=True,
               passthrough_errors=True, extra_files=[featuretiles_conf])


def parse_bind_address(address, default=('localhost', 8080)):
    """
    >>> parse_bind_address('80')
    ('localhost', 80)
    >>> parse_bind_address('0.0.0.0')
    ('0.0.0.0', 8080)
    >>> parse_bind_address('0.0.0.0:8081')
    ('0.0.0.0', 8081)
    """
    if ':' in address:
        host, port = address.split(':', 1)
        port = int(port)
    elif re.match(r'^\d+$', address):
        host = default[0]
        port = int(address)
    else:
        host = address
        port = default[1]
    return host, port


def parse_size(size):
    """
    >>> parse_size('256x512')
    (256, 512)
    """
    width, height = size.lower().split('x', 1)
    return int(width), int(height)


def _query_options(parser):
    parser.add_option("-f", "--featuretiles-conf", dest="featuretiles_conf",
                      help="FeatureTiles configuration.")
    parser.add_option("-l", "--layer", dest="layer", help="Layer id.")
    parser.add_option("--bbox", dest="bbox", help="BBOX as minx,miny,maxx,maxy.")
    parser.add_option("--srs", dest="srs", default=None,
                      help="SRS of the bbox [globals.srs.default_srs].")
    parser.add_option("-u", "--user", dest="user", default=None, help="User id.")
    parser.add_option("-q", "--quiet", dest="quiet", action="store_true", default=False,
                      help="Only log errors.")


def _load_query_context(parser, options):
    from featuretiles.config.loader import load_configuration, ConfigurationError

    if not options.featuretiles_conf or not options.layer or not options.bbox:
        parser.print_help()
        print("\nERROR: --featuretiles-conf, --layer and --bbox are required.", file=sys.stderr)
        sys.exit(1)

    setup_logging(level=logging.ERROR if options.quiet else logging.INFO)
    try:
        conf = load_configuration(options.featuretiles_conf)
    except ConfigurationError as ex:
        print('ERROR: %s' % (ex, ), file=sys.stderr)
        sys.exit(2)

    layer = conf.layers.get(options.layer)
    if layer is None:
        print('ERROR: unknown layer %s' % (options.layer, ), file=sys.stderr)
        sys.exit(2)
    return conf, layer


def render_tile_command(args):
    parser = optparse.OptionParser("usage: %prog render-tile [options] output.png")
    _query_options(parser)
    parser.add_option("-z", "--zoom", dest="zoom", type="int", default=0,
                      help="Zoom level of the tile [0].")
    parser.add_option("-s", "--style", dest="style", default='default',
                      help="Style name [default].")
    parser.add_option("--highlight", dest="highlight", default=None,
                      help="Highlight style name.")
    parser.add_option("--client", dest="client", default=None,
                      help="Client id for custom styles.")
    parser.add_option("--size", dest="size", default=None,
                      help="Tile size as WIDTHxHEIGHT [globals.image.tile_size].")
    options, args = parser.parse_args(args)

    if len(args) != 2:
        parser.print_help()
        print("\nERROR: output file required.", file=sys.stderr)
        sys.exit(1)

    conf, layer = _load_query_context(parser, options)

    from featuretiles.config import local_base_config
    from featuretiles.exception import RequestError
    from featuretiles.service.tile import TileService

    with local_base_config(conf.base_config):
        service = TileService(conf.layers, conf.tile_cache, conf.resolver,
                              conf.gateway, conf.rasterizer)
        try:
            size = parse_size(options.size) if options.size else conf.base_config.image.tile_size
            query = conf.gateway.validate_bbox(
                options.bbox, options.srs or layer.srs or conf.base_config.srs.default_srs)
            data, _ = service.render_tile(
                layer, query, zoom=options.zoom, size=size, style_name=options.style,
                highlight_style_name=options.highlight, client_id=options.client,
                user_id=options.user)
        except ValueError as ex:
            print('ERROR: invalid size: %s' % (ex, ), file=sys.stderr)
            sys.exit(1)
        except RequestError as ex:
            print('ERROR: %s' % (ex.msg, ), file=sys.stderr)
            sys.exit(2)

    with open(args[1], 'wb') as f:
        f.write(data)


def create_command(args):
    cmd = CreateCommand(args)
    cmd.run()


class CreateCommand(object):
    templates = {
        'base-config': {'help': 'Example featuretiles.yaml.'},
        'wsgi-app': {'help': 'WSGI module for the configuration.'},
        'log-ini': {'help': 'Logging configuration.'},
    }

    def __init__(self, args):
        parser = optparse.OptionParser("usage: %prog create [options] [destination]")
        parser.add_option("-t", "--template", dest="template",
                          help="Create a configuration from this template.")
        parser.add_option("-l", "--list-templates", dest="list_templates",
                          action="store_true", default=False,
                          help="List all available configuration templates.")
        parser.add_option("-f", "--featuretiles-conf", dest="featuretiles_conf",
                          help="Existing FeatureTiles configuration (required for some templates).")
        parser.add_option("--force", dest="force", action="store_true",
                          default=False, help="Force operation (e.g. overwrite existing files).")

        self.options, self.args = parser.parse_args(args)
        self.parser = parser

    def log_error(self, msg, *args):
        print('ERROR:', msg % args, file=sys.stderr)

    def run(self):
        if self.options.list_templates:
            print_items(self.templates, title="Available templates")
            sys.exit(1)
        elif self.options.template:
            if self.options.template not in self.templates:
                self.log_error("unknown template " + self.options.template)
                sys.exit(1)

            if len(self.args) != 2:
                self.log_error("template requires destination argument")
                sys.exit(1)

            sys.exit(
                getattr(self, 'template_' + self.options.template.replace('-', '_'))()
            )
        else:
            self.parser.print_help()
            sys.exit(1)

    @property
    def featuretiles_conf(self):
        if not self.options.featuretiles_conf:
            self.parser.print_help()
            self.log_error("template requires --featuretiles-conf option")
            sys.exit(1)
        return os.path.abspath(self.options.featuretiles_conf)

    def template_dir(self):
        import featuretiles.config_template
        return os.path.join(
            os.path.dirname(featuretiles.config_template.__file__),
            'base_config')

    def _write(self, filename, content):
        if os.path.exists(filename) and not self.options.force:
            self.log_error("%s already exists, use --force", filename)
            return 1
        print("writing %s" % (filename, ))
        with io.open(filename, 'w', encoding='utf-8') as f:
            f.write(content)
        return 0

    def _template(self, name):
        with io.open(os.path.join(self.template_dir(), name), encoding='utf-8') as f:
            return f.read()

    def template_wsgi_app(self):
        app_filename = self.args[1]
        if '.' not in os.path.basename(app_filename):
            app_filename += '.py'
        featuretiles_conf = self.featuretiles_conf
        app_template = self._template('config.wsgi')
        return self._write(app_filename, app_template % {'featuretiles_conf': featuretiles_conf})

    def template_base_config(self):
        outdir = self.args[1]
        if not os.path.exists(outdir):
            os.makedirs(outdir)
        return self._write(os.path.join(outdir, 'featuretiles.yaml'),
                           self._template('featuretiles.yaml'))

    def template_log_ini(self):
        return self._write(self.args[1], self._template('log.ini'))


def features_command(args):
    parser = optparse.OptionParser("usage: %prog features [options]")
    _query_options(parser)
    options, args = parser.parse_args(args)

    conf, layer = _load_query_context(parser, options)

    from featuretiles.config import local_base_config
    from featuretiles.exception import RequestError
    from featuretiles.service.features import FeatureService

    with local_base_config(conf.base_config):
        service = FeatureService(conf.layers, conf.gateway)
        try:
            query = conf.gateway.validate_bbox(
                options.bbox, options.srs or conf.base_config.srs.default_srs)
            data = service.features(layer, query, user_id=options.user)
        except RequestError as ex:
            print('ERROR: %s' % (ex.msg, ), file=sys.stderr)
            sys.exit(2)

    print(data.decode('utf-8'))


commands = {
    'serve-develop': {
        'func': serve_develop_command,
        'help': 'Run FeatureTiles development server.'
    },
    'render-tile': {
        'func': render_tile_command,
        'help': 'Render a single tile to a PNG file.'
    },
    'features': {
        'func': features_command,
        'help': 'Print the features of a bbox as GeoJSON.'
    },
    'create': {
        'func': create_command,
        'help': 'Create example configurations.'
    },
}


class NonStrictOptionParser(optparse.OptionParser):
    def _process_args(self, largs, rargs, values):
        while rargs:
            arg = rargs[0]
            # We handle bare "--" explicitly, and bare "-" is handled by the
            # standard arg handler since the short arg case ensures that the
            # len of the opt string is greater than 1.
            try:
                if arg == "--":
                    del rargs[0]
                    return
                elif arg[0:2] == "--":
                    # process a single long option (possibly with value(s))
                    self._process_long_opt(rargs, values)
                elif arg[:1] == "-" and len(arg) > 1:
                    # process a cluster of short options (possibly with
                    # value(s) for the last one only)
                    self._process_short_opts(rargs, values)
                elif self.allow_interspersed_args:
                    largs.append(arg)
                    del rargs[0]
                else:
                    return
            except optparse.BadOptionError:
                largs.append(arg)


def print_items(data, title='Commands'):
    name_len = max(len(name) for name in data)

    if title:
        print('%s:' % (title, ), file=sys.stdout)
    for name, item in data.items():
        help = item.get('help', '')
        name = ('%%-%ds' % name_len) % name
        if help:
            help = '  ' + help
        print('  %s%s' % (name, help), file=sys.stdout)


def main():
    parser = NonStrictOptionParser("usage: %prog COMMAND [options]",
        add_help_option=False)
    options, args = parser.parse_args()

    if len(args) < 1 or args[0] in ('--help', '-h'):
        parser.print_help()
        print()
        print_items(commands)
        sys.exit(1)

    if len(args) == 1 and args[0] == '--version':
        print('FeatureTiles ' + version)
        sys.exit(1)

    command = args[0]
    if command not in commands:
        parser.print_help()
        print()
        print_items(commands)
        print('\nERROR: unknown command %s' % (command,), file=sys.stdout)
        sys.exit(1)

    args = sys.argv[0:1] + sys.argv[2:]
    commands[command]['func'](args)


if __name__ == '__main__':
    main()
