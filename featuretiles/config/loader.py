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

"""
Configuration loading and system initializing.
"""
import json
import os

from featuretiles.cache.base import MemoryCacheStore
from featuretiles.cache.tile import TileCache
from featuretiles.config.config import abspath, load_config, load_default_config, local_base_config
from featuretiles.config.validator import validate
from featuretiles.image.render import Rasterizer
from featuretiles.layer import LayerDescriptor
from featuretiles.query import FeatureQueryGateway
from featuretiles.style.custom import CustomStyleStore, CustomStyleTemplater
from featuretiles.style.resolver import StyleResolver
from featuretiles.style.sld import parse_sld, SLDParseError
from featuretiles.util.yaml import load_yaml_file, YAMLError

import logging
log = logging.getLogger('featuretiles.config')


class ConfigurationError(Exception):
    pass


def load_configuration(featuretiles_conf, ignore_warnings=True):
    """
    Load and validate the YAML configuration `featuretiles_conf` and return
    a `ProxyConfiguration`.

    :raises ConfigurationError: for invalid or unreadable configurations
    """
    conf_base_dir = os.path.abspath(os.path.dirname(featuretiles_conf))

    try:
        conf_dict = load_configuration_file([os.path.basename(featuretiles_conf)], conf_base_dir)
        log.debug('Loaded configuration file: %s', json.dumps(conf_dict, indent=2, default=str))
    except (YAMLError, OSError) as ex:
        raise ConfigurationError(ex)

    errors = validate(conf_dict)
    for error in errors:
        log.warning(error)
    if errors and not ignore_warnings:
        raise ConfigurationError('invalid configuration')

    return ProxyConfiguration(conf_dict, conf_base_dir=conf_base_dir)


def load_configuration_file(files, working_dir):
    """
    Return configuration dict from imported files
    """
    conf_dict = {}
    for conf_file in files:
        conf_file = os.path.normpath(os.path.join(working_dir, conf_file))
        log.info('reading: %s' % conf_file)
        current_dict = load_yaml_file(conf_file) or {}
        if 'base' in current_dict:
            current_working_dir = os.path.dirname(conf_file)
            base_files = current_dict.pop('base')
            if isinstance(base_files, str):
                base_files = [base_files]
            imported_dict = load_configuration_file(base_files, current_working_dir)
            current_dict = merge_dict(current_dict, imported_dict)
        conf_dict = merge_dict(conf_dict, current_dict)

    return conf_dict


def merge_dict(conf, base):
    """
    Return `base` dict with values from `conf` merged in.
    """
    for k, v in conf.items():
        if k not in base:
            base[k] = v
        else:
            if isinstance(base[k], dict):
                if v is not None:
                    base[k] = merge_dict(v, base[k])
            elif isinstance(base[k], list):
                if v is not None:
                    if k in ['tile_size']:
                        base[k] = v
                    elif k in ['layers']:
                        base[k] = merge_layers(v, base[k])
                    elif len(v) == 0:  # delete
                        base[k] = None
                    else:
                        base[k] = base[k] + v
            else:
                base[k] = v
    return base


def merge_layers(conf, base):
    """
    Return `base` layers with layers of `conf` added or replacing
    the base layers with the same id.
    """
    ids = [str(l.get('id')) for l in conf]
    merged = [l for l in base if str(l.get('id')) not in ids]
    return merged + conf


class ProxyConfiguration(object):
    """
    All configured objects of a FeatureTiles instance.
    """
    def __init__(self, conf, conf_base_dir=None):
        self.configuration = conf

        if conf_base_dir is None:
            conf_base_dir = os.getcwd()

        self.load_globals(conf_base_dir=conf_base_dir)
        with local_base_config(self.base_config):
            self.load_cache()
            self.load_styles()
            self.load_layers()
            self.load_services()

    def load_globals(self, conf_base_dir):
        self.base_config = load_default_config()
        globals_conf = self.configuration.get('globals') or {}
        load_config(self.base_config, config_dict=globals_conf)
        self.base_config.conf_base_dir = conf_base_dir
        tile_size = self.base_config.image.tile_size
        self.base_config.image.tile_size = tuple(tile_size)

    def load_cache(self):
        cache_conf = self.base_config.cache
        if cache_conf.type == 'redis':
            from featuretiles.cache.redis import RedisCacheStore
            self.cache_store = RedisCacheStore(
                host=cache_conf.host,
                port=cache_conf.port,
                db=cache_conf.db,
                username=cache_conf.get('username'),
                password=cache_conf.get('password'),
                ssl_certfile=cache_conf.get('ssl_certfile'),
                ssl_keyfile=cache_conf.get('ssl_keyfile'),
                ssl_ca_certs=cache_conf.get('ssl_ca_certs'),
            )
        elif cache_conf.type == 'memory':
            self.cache_store = MemoryCacheStore(max_entries=cache_conf.max_entries)
        else:
            raise ConfigurationError('unknown cache type %s' % cache_conf.type)

        self.tile_cache = TileCache(
            self.cache_store,
            prefix=cache_conf.prefix,
            persistent_ttl=cache_conf.persistent_ttl,
            temporary_ttl=cache_conf.temporary_ttl,
        )

    def load_styles(self):
        self.custom_style_store = CustomStyleStore(self.cache_store)
        self.resolver = StyleResolver(
            templater=CustomStyleTemplater(),
            custom_store=self.custom_style_store,
        )
        image_conf = self.base_config.image
        self.rasterizer = Rasterizer(
            antialias_factor=image_conf.antialias_factor,
            font_size=image_conf.font_size,
            font_file=image_conf.font_file,
        )

    def load_layers(self):
        self.layers = {}
        for layer_conf in self.configuration.get('layers') or []:
            layer = self._load_layer(layer_conf)
            self.layers[layer.id] = layer

    def _load_layer(self, conf):
        layer_id = str(conf['id'])
        styles = {}
        for name, style_conf in (conf.get('styles') or {}).items():
            styles[name] = self._load_style(layer_id, name, style_conf)
        selection_style = None
        if conf.get('selection_style'):
            selection_style = self._load_style(layer_id, 'selection', conf['selection_style'])
        return LayerDescriptor(
            layer_id,
            title=conf.get('title'),
            srs=conf.get('srs'),
            geometry_property=conf.get('geometry_property', 'geometry'),
            styles=styles,
            selection_style=selection_style,
            source=self._load_source(layer_id, conf.get('source') or {}),
        )

    def _load_style(self, layer_id, name, conf):
        try:
            if 'file' in conf:
                with open(abspath(conf['file']), 'rb') as f:
                    return parse_sld(f, name=name)
            return parse_sld(conf['sld'], name=name)
        except (OSError, KeyError, SLDParseError) as ex:
            raise ConfigurationError('invalid style %s for layer %s: %s' % (name, layer_id, ex))

    def _load_source(self, layer_id, conf):
        source_type = conf.get('type')
        if source_type == 'geojson':
            from featuretiles.source.geojson import GeoJSONSource
            filename = abspath(conf['file']) if conf.get('file') else None
            try:
                return GeoJSONSource(
                    filename=filename,
                    data=conf.get('data'),
                    srs=conf.get('srs', 'EPSG:4326'),
                )
            except ValueError as ex:
                raise ConfigurationError('invalid source for layer %s: %s' % (layer_id, ex))
        if source_type == 'http':
            from featuretiles.client.http import HTTPClient
            from featuretiles.source.http import HTTPFeatureSource
            client = HTTPClient(conf['url'], timeout=conf.get('timeout'),
                                headers=conf.get('headers'), hide_error_details=True)
            return HTTPFeatureSource(conf['url'], protocol=conf.get('protocol', 'ogcapi'),
                                     params=conf.get('params'), client=client)
        raise ConfigurationError('unknown source type %r for layer %s' % (source_type, layer_id))

    def load_services(self):
        self.gateway = FeatureQueryGateway()
        services_conf = self.configuration.get('services')
        if services_conf is None:
            services_conf = {'tile': {}, 'features': {}}
        self.services_conf = services_conf

    def configured_services(self):
        from featuretiles.service.features import FeatureService
        from featuretiles.service.tile import TileService

        services = []
        with local_base_config(self.base_config):
            if 'tile' in self.services_conf:
                services.append(TileService(self.layers, self.tile_cache, self.resolver,
                                            self.gateway, self.rasterizer))
            if 'features' in self.services_conf:
                services.append(FeatureService(self.layers, self.gateway))
        return services
