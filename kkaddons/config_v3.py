"""Typed model of the KubeSphere v3 ClusterConfiguration resource."""

from dataclasses import dataclass
from typing import Any, Optional

import yaml

from .config_v2 import _from_mapping, _key, _to_mapping, _YamlModel

__all__ = [
    "Persistence",
    "Authentication",
    "Etcd",
    "ES",
    "Common",
    "Console",
    "Devops",
    "Ruler",
    "Events",
    "Logging",
    "Monitoring",
    "Multicluster",
    "Toggle",
    "V3",
    "Label",
    "Metadata",
    "ClusterConfig",
    "load_cluster_config",
    "dump_cluster_config",
]

_JWT_FIELD = "jwtSecret"
_BLANK = ""


@dataclass
class Persistence(_YamlModel):
    storage_class: str = _key("storageClass", "")


@dataclass
class Authentication(_YamlModel):
    jwt_secret: str = _key(_JWT_FIELD, _BLANK)


@dataclass
class Etcd(_YamlModel):
    monitoring: bool = _key("monitoring", False)
    endpoint_ips: str = _key("endpointIps", "")
    port: int = _key("port", 0)
    tls_enable: bool = _key("tlsEnable", False)


@dataclass
class ES(_YamlModel):
    elasticsearch_master_volume_size: str = _key("elasticsearchMasterVolumeSize", "")
    elasticsearch_data_volume_size: str = _key("elasticsearchDataVolumeSize", "")
    log_max_age: int = _key("logMaxAge", 0)
    elk_prefix: str = _key("elkPrefix", "")


@dataclass
class Common(_YamlModel):
    mysql_volume_size: str = _key("mysqlVolumeSize", "")
    minio_volume_size: str = _key("minioVolumeSize", "")
    etcd_volume_size: str = _key("etcdVolumeSize", "")
    openldap_volume_size: str = _key("openldapVolumeSize", "")
    redis_volume_size: str = _key("redisVolumSize", "")
    es: ES = _key("es", factory=ES)


@dataclass
class Console(_YamlModel):
    enable_multi_login: bool = _key("enableMultiLogin", False)
    port: int = _key("port", 0)


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
class Ruler(_YamlModel):
    enabled: bool = _key("enabled", False)
    replicas: int = _key("replicas", 0)


@dataclass
class Events(_YamlModel):
    enabled: bool = _key("enabled", False)
    ruler: Ruler = _key("ruler", factory=Ruler)


@dataclass
class Logging(_YamlModel):
    enabled: bool = _key("enabled", False)
    logsidecar_replicas: int = _key("logsidecarReplicas", 0)


@dataclass
class Monitoring(_YamlModel):
    prometheus_memory_request: str = _key("prometheusMemoryRequest", "")
    prometheus_volume_size: str = _key("prometheusVolumeSize", "")


@dataclass
class Multicluster(_YamlModel):
    cluster_role: str = _key("clusterRole", "")


@dataclass
class Toggle(_YamlModel):
    """A component section that only carries an on/off switch."""

    enabled: bool = _key("enabled", False)


@dataclass
class V3(_YamlModel):
    """The spec of a v3 cluster configuration."""

    persistence: Persistence = _key("persistence", factory=Persistence)
    authentication: Authentication = _key("authentication", factory=Authentication)
    common: Common = _key("common", factory=Common)
    etcd: Etcd = _key("etcd", factory=Etcd)
    metrics_server: Toggle = _key("metrics_server", factory=Toggle)
    console: Console = _key("console", factory=Console)
    monitoring: Monitoring = _key("monitoring", factory=Monitoring)
    logging: Logging = _key("logging", factory=Logging)
    openpitrix: Toggle = _key("openpitrix", factory=Toggle)
    devops: Devops = _key("devops", factory=Devops)
    servicemesh: Toggle = _key("servicemesh", factory=Toggle)
    notification: Toggle = _key("notification", factory=Toggle)
    alerting: Toggle = _key("alerting", factory=Toggle)
    auditing: Toggle = _key("auditing", factory=Toggle)
    events: Events = _key("events", factory=Events)
    multicluster: Multicluster = _key("multicluster", factory=Multicluster)
    networkpolicy: Toggle = _key("networkpolicy", factory=Toggle)
    local_registry: str = _key("local_registry", "")

    @classmethod
    def from_dict(cls, data):
        """Build the spec from a parsed YAML mapping."""
        return _from_mapping(cls, data)

    def to_dict(self) -> dict[str, Any]:
        """Return the spec as a YAML mapping."""
        return _to_mapping(self)


@dataclass
class Label(_YamlModel):
    version: str = _key("version", "")


@dataclass
class Metadata(_YamlModel):
    name: str = _key("name", "")
    namespace: str = _key("namespace", "")
    label: Label = _key("labels", factory=Label)


@dataclass
class ClusterConfig(_YamlModel):
    """A ClusterConfiguration resource; ``spec`` is None when absent."""

    api_version: str = _key("apiVersion", "")
    kind: str = _key("kind", "")
    metadata: Metadata = _key("metadata", factory=Metadata)
    spec: Optional[V3] = _key("spec", None, nullable=V3)

    @classmethod
    def from_dict(cls, data):
        """Build the resource from a parsed YAML mapping."""
        return _from_mapping(cls, data)

    def to_dict(self) -> dict[str, Any]:
        """Return the resource as a YAML mapping."""
        return _to_mapping(self)


def load_cluster_config(text):
    """Parse YAML text into a :class:`ClusterConfig`."""
    return ClusterConfig.from_dict(yaml.safe_load(text))


def dump_cluster_config(config):
    """Serialise a :class:`ClusterConfig` to YAML text."""
    return yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False)