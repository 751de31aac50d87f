import pytest

from kkaddons.config_v2 import (
    V2,
    Console,
    Etcd,
    MetricsServer,
    dump_v2,
    load_v2,
)

KS_CONFIG = """\
---
local_registry: ""
persistence:
  storageClass: ""
etcd:
  monitoring: true
  endpointIps: localhost
  port: 2379
  tlsEnable: true
common:
  mysqlVolumeSize: 20Gi
  minioVolumeSize: 20Gi
  etcdVolumeSize: 20Gi
  openldapVolumeSize: 2Gi
  redisVolumSize: 2Gi
metrics_server:
  enabled: false
console:
  enableMultiLogin: False
  port: 30880
monitoring:
  prometheusReplicas: 1
  prometheusMemoryRequest: 400Mi
  prometheusVolumeSize: 20Gi
  grafana:
    enabled: false
logging:
  enabled: false
  elasticsearchMasterReplicas: 1
  elasticsearchDataReplicas: 1
  logsidecarReplicas: 2
  elasticsearchMasterVolumeSize: 4Gi
  elasticsearchDataVolumeSize: 20Gi
  logMaxAge: 7
  elkPrefix: logstash
  containersLogMountedPath: ""
devops:
  enabled: false
  jenkinsMemoryLim: 2Gi
  jenkinsMemoryReq: 1500Mi
  jenkinsVolumeSize: 8Gi
  jenkinsJavaOpts_Xms: 512m
  jenkinsJavaOpts_Xmx: 512m
  jenkinsJavaOpts_MaxRAM: 2g
servicemesh:
  enabled: false
"""


def test_load_reads_etcd_section():
    config = load_v2(KS_CONFIG)
    assert config.etcd == Etcd(monitoring=True, endpoint_ips="localhost", port=2379, tls_enable=True)


def test_load_reads_nested_values():
    config = load_v2(KS_CONFIG)
    assert config.console == Console(enable_multi_login=False, port=30880)
    assert config.monitoring.prometheus_memory_request == "400Mi"
    assert config.logging.elk_prefix == "logstash"
    assert config.devops.jenkins_java_opts_max_ram == "2g"
    assert config.common.redis_volume_size == "2Gi"


def test_metrics_server_flag_is_kept_as_text():
    config = load_v2(KS_CONFIG)
    assert config.metrics_server_new == MetricsServer(enabled="false")
    assert config.metrics_server_old == MetricsServer()


def test_missing_sections_take_zero_values():
    config = load_v2("local_registry: registry.local\n")
    assert config.local_registry == "registry.local"
    assert config.etcd == Etcd()
    assert config.alerting.enabled is False
    assert config.monitoring.prometheus_replicas == 0


def test_empty_document_gives_default_config():
    assert load_v2("") == V2()


def test_null_section_gives_defaults():
    assert load_v2("console:\n").console == Console()


def test_round_trip_through_yaml():
    config = load_v2(KS_CONFIG)
    assert load_v2(dump_v2(config)) == config


def test_to_dict_uses_yaml_keys_in_order():
    data = V2().to_dict()
    keys = list(data)
    assert keys[0] == "persistence"
    assert keys[-1] == "local_registry"
    assert "metrics-server" in data and "metrics_server" in data
    assert data["etcd"] == {"monitoring": False, "endpointIps": "", "port": 0, "tlsEnable": False}


def test_wrong_integer_type_raises():
    with pytest.raises(TypeError):
        load_v2("etcd:\n  port: not-a-port\n")


def test_wrong_boolean_type_raises():
    with pytest.raises(TypeError):
        load_v2("console:\n  enableMultiLogin: sometimes\n")


def test_section_must_be_mapping():
    with pytest.raises(TypeError):
        load_v2("devops: [1, 2]\n")


def test_top_level_must_be_mapping():
    with pytest.raises(TypeError):
        load_v2("- a\n- b\n")