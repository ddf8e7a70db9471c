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
Configuration loading and service initializing.
"""
import json
import os
from functools import cached_property

from tilecontrol.config.config import Options, load_config, load_default_config
from tilecontrol.config.validator import validate
from tilecontrol.util.yaml import load_yaml_file, YAMLError

import logging
log = logging.getLogger('tilecontrol.config')


class ConfigurationError(Exception):
    pass


def load_configuration(conf_file, ignore_warnings=False):
    """
    Load and validate the YAML configuration `conf_file`.

    The configuration is checked twice: YAML syntax on loading, then all
    options against the configuration schema. Schema errors are logged as
    warnings and fail the loading unless `ignore_warnings` is set.

    :rtype: `ServiceConfiguration`
    :raise ConfigurationError: for invalid configurations
    """
    conf_base_dir = os.path.abspath(os.path.dirname(conf_file))

    try:
        conf_dict = load_yaml_file(conf_file)
        log.debug('Loaded configuration file: %s', json.dumps(conf_dict, indent=2, default=str))
    except YAMLError as ex:
        raise ConfigurationError(ex)
    except OSError as ex:
        raise ConfigurationError('unable to read configuration %s: %s' % (conf_file, ex))

    errors = validate(conf_dict)
    for error in errors:
        log.warning(error)
    if errors and not ignore_warnings:
        raise ConfigurationError('invalid configuration')

    return ServiceConfiguration(conf_dict, conf_base_dir=conf_base_dir)


class ServiceConfiguration(object):
    """
    The merged configuration and all components of the service.

    Components are created on first access. Assign a component before
    first use to replace it (e.g. ``conf.hash_store = store``).
    """
    def __init__(self, conf_dict=None, conf_base_dir=None):
        self.conf = load_default_config()
        load_config(self.conf, config_dict=conf_dict or {})
        if conf_base_dir is None:
            conf_base_dir = os.getcwd()
        self.conf_base_dir = conf_base_dir

    @property
    def log_conf(self):
        if not self.conf.log_conf:
            return None
        return os.path.join(self.conf_base_dir, self.conf.log_conf)

    @property
    def server_metadata(self):
        return dict(self.conf.server_metadata or Options())

    def _redis_client(self, db):
        from tilecontrol.kv.redis import create_client
        redis_conf = self.conf.redis
        return create_client(
            redis_conf.host, redis_conf.port, db=db,
            username=redis_conf.get('username'),
            password=redis_conf.get('password'),
            ssl_certfile=redis_conf.get('ssl_certfile'),
            ssl_keyfile=redis_conf.get('ssl_keyfile'),
            ssl_ca_certs=redis_conf.get('ssl_ca_certs'),
        )

    @cached_property
    def redis_client(self):
        return self._redis_client(self.conf.redis.db)

    @cached_property
    def metadata_redis_client(self):
        return self._redis_client(self.conf.redis.metadata_db)

    @cached_property
    def hash_store(self):
        from tilecontrol.kv.redis import RedisHashStore
        return RedisHashStore(self.redis_client)

    @cached_property
    def user_metadata(self):
        from tilecontrol.kv.metadata import RedisUserMetadata
        return RedisUserMetadata(self.metadata_redis_client)

    @cached_property
    def map_store(self):
        from tilecontrol.kv.mapstore import RedisMapStore
        return RedisMapStore(self.redis_client, ttl=self.conf.redis.map_config_ttl)

    @cached_property
    def template_maps(self):
        from tilecontrol.template.maps import TemplateMaps
        templates_conf = self.conf.templates
        template_maps = TemplateMaps(
            self.hash_store,
            max_user_templates=templates_conf.max_user_templates,
            lock_ttl=templates_conf.lock_ttl,
        )
        if self.conf.varnish.purge_enabled:
            log.info('surrogate key invalidation enabled, varnish on %s:%s',
                     self.conf.varnish.host, self.conf.varnish.http_port)
            self.named_maps_invalidator.subscribe(template_maps)
        return template_maps

    @cached_property
    def query_tables_api(self):
        from tilecontrol.client.sqlapi import QueryTablesApi
        return QueryTablesApi(self.conf.sqlapi.url, timeout=self.conf.sqlapi.timeout)

    @cached_property
    def channel_cache(self):
        from tilecontrol.cache.channel import ChannelCache
        return ChannelCache()

    @cached_property
    def cache_channel_generator(self):
        from tilecontrol.cache.channel import CacheChannelGenerator
        return CacheChannelGenerator(
            self.channel_cache,
            self.map_store,
            self.query_tables_api,
            self.user_metadata,
            ttl=self.conf.varnish.ttl,
            layergroup_ttl=self.conf.varnish.layergroup_ttl,
            server_metadata=self.server_metadata,
        )

    @cached_property
    def cache_backend(self):
        from tilecontrol.cache.backend import VarnishHttpCacheBackend
        varnish_conf = self.conf.varnish
        return VarnishHttpCacheBackend(varnish_conf.host, varnish_conf.http_port,
                                       timeout=varnish_conf.timeout)

    @cached_property
    def surrogate_keys_cache(self):
        from tilecontrol.cache.surrogate import SurrogateKeysCache
        return SurrogateKeysCache(self.cache_backend)

    @cached_property
    def named_maps_invalidator(self):
        from tilecontrol.cache.invalidation import NamedMapsInvalidator
        return NamedMapsInvalidator(self.surrogate_keys_cache)

    @cached_property
    def authorizer(self):
        from tilecontrol.security.auth import Authorizer
        return Authorizer(
            self.user_metadata,
            self.map_store,
            self.template_maps,
            postgres=dict(self.conf.postgres),
            auth_user=self.conf.postgres_auth_user,
            auth_pass=self.conf.postgres_auth_pass,
        )

    @cached_property
    def params_resolver(self):
        from tilecontrol.security.params import RequestParamsResolver
        return RequestParamsResolver(self.authorizer, user_from_host=self.conf.user_from_host)
