"""Typed model of the KubeSphere v2 installer configuration (ks-config.yaml)."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any

import yaml

_YAML_KEY = "yaml"
_NULLABLE_KEY = "nullable"


def _key(name, default=None, *, factory=None, nullable=None):
    """Declare a dataclass field bound to the YAML key ``name``.

    ``nullable`` names the model type of a field that may be absent (None).
    """
    metadata = {_YAML_KEY: name}
    if nullable is not None:
        metadata[_NULLABLE_KEY] = nullable
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _is_model(tp):
    return isinstance(tp, type) and is_dataclass(tp)


def _zero(tp):
    if _is_model(tp):
        return tp()
    if tp is bool:
        return False
    if tp is int:
        return 0
    if tp is str:
        return ""
    return None


def _convert(tp, value, key):
    if value is None:
        return _zero(tp)
    if _is_model(tp):
        return _from_mapping(tp, value)
    if tp is bool:
        if isinstance(value, bool):
            return value
        raise TypeError(f"{key}: expected a boolean, got {value!r}")
    if tp is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise TypeError(f"{key}: expected an integer, got {value!r}")
    if tp is str:
        if isinstance(value, (Mapping, list)):
            raise TypeError(f"{key}: expected a scalar, got {value!r}")
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)
    raise TypeError(f"{key}: unsupported field type {tp!r}")


def _from_mapping(cls, data):
    """Build ``cls`` from a parsed YAML mapping; unknown keys are ignored."""
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise TypeError(f"{cls.__name__}: expected a mapping, got {data!r}")
    values = {}
    for f in fields(cls):
        key = f.metadata.get(_YAML_KEY, f.name)
        if key not in data:
            continue
        nullable = f.metadata.get(_NULLABLE_KEY)
        raw = data[key]
        if nullable is not None:
            values[f.name] = None if raw is None else _convert(nullable, raw, key)
        else:
            values[f.name] = _convert(f.type, raw, key)
    return cls(**values)


def _to_mapping(obj) -> dict[str, Any]:
    """Return the YAML mapping of a model, keys in declaration order."""
    result = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if is_dataclass(value):
            value = _to_mapping(value)
        result[f.metadata.get(_YAML_KEY, f.name)] = value
    return result


class _YamlModel:
    """Mixin mapping dataclass fields to YAML keys, with zero-value defaults."""

    @classmethod
    def from_dict(cls, data):
        """Build an instance from a parsed YAML mapping; unknown keys are ignored."""
        return _from_mapping(cls, data)

    def to_dict(self) -> dict[str, Any]:
        """Return the YAML mapping, keys in declaration order."""
        return _to_mapping(self)


@dataclass
class Persistence(_YamlModel):
    storage_class: str = _key("storageClass", "")


@dataclass
class Etcd(_YamlModel):
    monitoring: bool = _key("monitoring", False)
    endpoint_ips: str = _key("endpointIps", "")
    port: int = _key("port", 0)
    tls_enable: bool = _key("tlsEnable", False)


@dataclass
class Common(_YamlModel):
    mysql_volume_size: str = _key("mysqlVolumeSize", "")
    minio_volume_size: str = _key("minioVolumeSize", "")
    etcd_volume_size: str = _key("etcdVolumeSize", "")
    openldap_volume_size: str = _key("openldapVolumeSize", "")
    redis_volume_size: str = _key("redisVolumSize", "")


@dataclass
class MetricsServer(_YamlModel):
    """Metrics server section; its flag is kept as text."""

    enabled: str = _key("enabled", "")


@dataclass
class Console(_YamlModel):
    enable_multi_login: bool = _key("enableMultiLogin", False)
    port: int = _key("port", 0)


@dataclass
class Monitoring(_YamlModel):
    prometheus_replicas: int = _key("prometheusReplicas", 0)
    prometheus_memory_request: str = _key("prometheusMemoryRequest", "")
    prometheus_volume_size: str = _key("prometheusVolumeSize", "")


@dataclass
class Logging(_YamlModel):
    enabled: bool = _key("enabled", False)
    elasticsearch_master_replicas: int = _key("elasticsearchMasterReplicas", 0)
    elasticsearch_data_replicas: int = _key("elasticsearchDataReplicas", 0)
    logsidecar_replicas: int = _key("logsidecarReplicas", 0)
    elasticsearch_volume_size: str = _key("elasticsearchVolumeSize", "")
    elasticsearch_master_volume_size: str = _key("elasticsearchMasterVolumeSize", "")
    elasticsearch_data_volume_size: str = _key("elasticsearchDataVolumeSize", "")
    log_max_age: int = _key("logMaxAge", 0)
    elk_prefix: str = _key("elkPrefix", "")


@dataclass
class Devops(_YamlModel):
    enabled: bool = _key("enabled", False)
    jenkins_memory_lim: str = _key("jenkinsMemoryLim", "")
    jenkins_memory_req: str = _key("jenkinsMemoryReq", "")
    jenkins_volume_size: str = _key("jenkinsVolumeSize", "")
    jenkins_java_opts_xms: str = _key("jenkinsJavaOpts_Xms", "")
    jenkins_java_opts_xmx: str = _key("jenkinsJavaOpts_Xmx", "")
    jenkins_java_opts_max_ram: str = _key("jenkinsJavaOpts_MaxRAM", "")


@dataclass
class Toggle(_YamlModel):
    """A component section that only carries an on/off switch."""

    enabled: bool = _key("enabled", False)


@dataclass
class V2(_YamlModel):
    """The whole v2 installer configuration."""

    persistence: Persistence = _key("persistence", factory=Persistence)
    common: Common = _key("common", factory=Common)
    etcd: Etcd = _key("etcd", factory=Etcd)
    metrics_server_old: MetricsServer = _key("metrics-server", factory=MetricsServer)
    metrics_server_new: MetricsServer = _key("metrics_server", factory=MetricsServer)
    console: Console = _key("console", factory=Console)
    monitoring: Monitoring = _key("monitoring", factory=Monitoring)
    logging: Logging = _key("logging", factory=Logging)
    openpitrix: Toggle = _key("openpitrix", factory=Toggle)
    devops: Devops = _key("devops", factory=Devops)
    servicemesh: Toggle = _key("servicemesh", factory=Toggle)
    notification: Toggle = _key("notification", factory=Toggle)
    alerting: Toggle = _key("alerting", factory=Toggle)
    local_registry: str = _key("local_registry", "")

    @classmethod
    def from_dict(cls, data):
        """Build the configuration from a parsed YAML mapping."""
        return _from_mapping(cls, data)

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as a YAML mapping."""
        return _to_mapping(self)


def load_v2(text):
    """Parse YAML text into a :class:`V2`."""
    return V2.from_dict(yaml.safe_load(text))


def dump_v2(config):
    """Serialise a :class:`V2` to YAML text."""
    return yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False)