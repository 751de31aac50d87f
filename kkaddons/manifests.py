"""KubeSphere installer manifests and default installer configurations."""

from string import Template

import yaml

__all__ = [
    "V2_1_1",
    "V3_0_0",
    "KUBESPHERE_TEMPLATE",
    "installer_repository",
    "generate_kubesphere_yaml",
    "default_configuration",
]

CN_ZONE = "cn"
CN_REPOSITORY = "registry.cn-beijing.aliyuncs.com/kubesphereio"

_NAMESPACE = "kubesphere-system"
_INSTALLER = "ks-installer"
_INSTALLER_GROUP = "installer.kubesphere.io"


class _Block(str):
    """Text emitted as a YAML literal block."""


class _ManifestDumper(yaml.SafeDumper):
    pass


_ManifestDumper.add_representer(
    _Block,
    lambda dumper, data: dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style="|"),
)


def _dump_documents(documents):
    """Serialise mappings as a multi-document YAML stream, keys kept in order."""
    return yaml.dump_all(
        documents,
        Dumper=_ManifestDumper,
        explicit_start=True,
        sort_keys=False,
        default_flow_style=False,
        width=4096,
    )


def _off():
    return {"enabled": False}


def _volume_sizes(mysql="20Gi", minio="20Gi", etcd="20Gi", openldap="2Gi", redis="2Gi"):
    return {
        "mysqlVolumeSize": mysql,
        "minioVolumeSize": minio,
        "etcdVolumeSize": etcd,
        "openldapVolumeSize": openldap,
        "redisVolumSize": redis,
    }


def _etcd_defaults():
    return {"monitoring": True, "endpointIps": "localhost", "port": 2379, "tlsEnable": True}


def _jenkins_defaults():
    return {
        "jenkinsMemoryLim": "2Gi",
        "jenkinsMemoryReq": "1500Mi",
        "jenkinsVolumeSize": "8Gi",
        "jenkinsJavaOpts_Xms": "512m",
        "jenkinsJavaOpts_Xmx": "512m",
        "jenkinsJavaOpts_MaxRAM": "2g",
    }


def _installer_metadata(version):
    return {"name": _INSTALLER, "namespace": _NAMESPACE, "labels": {"version": version}}


def _v2_settings():
    return {
        "local_registry": "",
        "persistence": {"storageClass": ""},
        "etcd": _etcd_defaults(),
        "common": _volume_sizes(),
        "metrics_server": _off(),
        "console": {"enableMultiLogin": False, "port": 30880},
        "monitoring": {
            "prometheusReplicas": 1,
            "prometheusMemoryRequest": "400Mi",
            "prometheusVolumeSize": "20Gi",
            "grafana": _off(),
        },
        "logging": {
            "enabled": False,
            "elasticsearchMasterReplicas": 1,
            "elasticsearchDataReplicas": 1,
            "logsidecarReplicas": 2,
            "elasticsearchMasterVolumeSize": "4Gi",
            "elasticsearchDataVolumeSize": "20Gi",
            "logMaxAge": 7,
            "elkPrefix": "logstash",
            "containersLogMountedPath": "",
            "kibana": _off(),
        },
        "openpitrix": _off(),
        "devops": {
            "enabled": False,
            **_jenkins_defaults(),
            "sonarqube": {"enabled": False, "postgresqlVolumeSize": "8Gi"},
        },
        "servicemesh": _off(),
        "notification": _off(),
        "alerting": _off(),
    }


def _v3_spec():
    return {
        "zone": "",
        "local_registry": "",
        "persistence": {"storageClass": ""},
        "authentication": {"jwtSecret": ""},
        "etcd": _etcd_defaults(),
        "common": {
            "es": {
                "elasticsearchDataVolumeSize": "20Gi",
                "elasticsearchMasterVolumeSize": "4Gi",
                "elkPrefix": "logstash",
                "logMaxAge": 7,
            },
            **_volume_sizes(),
        },
        "console": {"enableMultiLogin": False, "port": 30880},
        "alerting": _off(),
        "auditing": _off(),
        "devops": {"enabled": False, **_jenkins_defaults()},
        "events": {"enabled": False, "ruler": {"enabled": True, "replicas": 2}},
        "logging": {"enabled": False, "logsidecarReplicas": 2},
        "metrics_server": {"enabled": True},
        "monitoring": {"prometheusMemoryRequest": "400Mi", "prometheusVolumeSize": "20Gi"},
        # host | member | none
        "multicluster": {"clusterRole": "none"},
        "networkpolicy": _off(),
        "notification": _off(),
        "openpitrix": _off(),
        "servicemesh": _off(),
    }


V2_1_1 = _dump_documents(
    [
        {
            "apiVersion": "v1",
            "data": {"ks-config.yaml": _Block(_dump_documents([_v2_settings()]))},
            "kind": "ConfigMap",
            "metadata": _installer_metadata("v2.1.1"),
        }
    ]
)

V3_0_0 = _dump_documents(
    [
        {
            "apiVersion": f"{_INSTALLER_GROUP}/v1alpha1",
            "kind": "ClusterConfiguration",
            "metadata": _installer_metadata("v3.0.0"),
            "spec": _v3_spec(),
        }
    ]
)

_DEFAULT_CONFIGURATIONS = {
    "v2.1.1": V2_1_1,
    "v3.0.0": V3_0_0,
}

_API_GROUPS = (
    "",
    "apps",
    "extensions",
    "batch",
    "rbac.authorization.k8s.io",
    "apiregistration.k8s.io",
    "apiextensions.k8s.io",
    "tenant.kubesphere.io",
    "certificates.k8s.io",
    "devops.kubesphere.io",
    "monitoring.coreos.com",
    "logging.kubesphere.io",
    "jaegertracing.io",
    "storage.k8s.io",
    "admissionregistration.k8s.io",
    "policy",
    "autoscaling",
    "networking.istio.io",
    "config.istio.io",
    "iam.kubesphere.io",
    "notification.kubesphere.io",
    "auditing.kubesphere.io",
    "events.kubesphere.io",
    "core.kubefed.io",
    _INSTALLER_GROUP,
    "storage.kubesphere.io",
)


def _installer_documents(image):
    app_labels = {"app": "ks-install"}
    return [
        {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": _NAMESPACE}},
        {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {"name": _INSTALLER, "namespace": _NAMESPACE},
        },
        {
            "apiVersion": "apiextensions.k8s.io/v1beta1",
            "kind": "CustomResourceDefinition",
            "metadata": {"name": f"clusterconfigurations.{_INSTALLER_GROUP}"},
            "spec": {
                "group": _INSTALLER_GROUP,
                "versions": [{"name": "v1alpha1", "served": True, "storage": True}],
                "scope": "Namespaced",
                "names": {
                    "plural": "clusterconfigurations",
                    "singular": "clusterconfiguration",
                    "kind": "ClusterConfiguration",
                    "shortNames": ["cc"],
                },
            },
        },
        {
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "kind": "ClusterRole",
            "metadata": {"name": _INSTALLER},
            "rules": [
                {"apiGroups": [group], "resources": ["*"], "verbs": ["*"]}
                for group in _API_GROUPS
            ],
        },
        {
            "kind": "ClusterRoleBinding",
            "apiVersion": "rbac.authorization.k8s.io/v1",
            "metadata": {"name": _INSTALLER},
            "subjects": [
                {"kind": "ServiceAccount", "name": _INSTALLER, "namespace": _NAMESPACE}
            ],
            "roleRef": {
                "kind": "ClusterRole",
                "name": _INSTALLER,
                "apiGroup": "rbac.authorization.k8s.io",
            },
        },
        {
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": _INSTALLER, "namespace": _NAMESPACE, "labels": app_labels},
            "spec": {
                "replicas": 1,
                "selector": {"matchLabels": dict(app_labels)},
                "template": {
                    "metadata": {"labels": dict(app_labels)},
                    "spec": {
                        "serviceAccountName": _INSTALLER,
                        "containers": [
                            {
                                "name": "installer",
                                "image": image,
                                "imagePullPolicy": "Always",
                                "volumeMounts": [
                                    {"mountPath": "/etc/localtime", "name": "host-time"}
                                ],
                            }
                        ],
                        "volumes": [
                            {
                                "hostPath": {"path": "/etc/localtime", "type": ""},
                                "name": "host-time",
                            }
                        ],
                    },
                },
            },
        },
    ]


KUBESPHERE_TEMPLATE = Template(
    _dump_documents(_installer_documents("${repo}/ks-installer:${tag}"))
)


def installer_repository(repo, version, zone=""):
    """Choose the image repository that holds the ks-installer image."""
    if "latest" in version and zone == CN_ZONE:
        return CN_REPOSITORY
    if repo:
        return f"{repo}/kubesphere"
    if "latest" in version or version.startswith("nightly-"):
        return "kubespheredev"
    return "kubesphere"


def generate_kubesphere_yaml(repo, version, zone=""):
    """Render the ks-installer manifests for ``version``."""
    return KUBESPHERE_TEMPLATE.substitute(
        repo=installer_repository(repo, version, zone), tag=version
    )


def default_configuration(version):
    """Return the default installer configuration document for ``version``."""
    try:
        return _DEFAULT_CONFIGURATIONS[version]
    except KeyError:
        raise ValueError(f"no default configuration for KubeSphere {version!r}") from None