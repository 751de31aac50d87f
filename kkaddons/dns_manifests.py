"""Manifests for the CoreDNS service and the node-local DNS cache."""

from .manifests import _Block, _dump_documents

__all__ = [
    "generate_coredns_service",
    "generate_nodelocaldns_service",
    "generate_nodelocaldns_configmap",
]

_NAMESPACE = "kube-system"
_NODELOCALDNS = "nodelocaldns"
_LOCAL_IP = "169.254.25.10"
_HEALTH_PORT = 9254
_METRICS_PORT = 9253


def _service_port(name, port, protocol):
    return {"name": name, "port": port, "protocol": protocol}


def _container_port(name, port, protocol):
    return {"containerPort": port, "name": name, "protocol": protocol}


def _health_probe():
    return {
        "httpGet": {
            "host": _LOCAL_IP,
            "path": "/health",
            "port": _HEALTH_PORT,
            "scheme": "HTTP",
        },
        "timeoutSeconds": 5,
        "successThreshold": 1,
        "failureThreshold": 10,
    }


def _server_block(zone, forward_target=None, *, detailed_cache=False, health=False):
    """One Corefile server block; without a target queries go to resolv.conf."""
    lines = [f"{zone}:53 {{", "    errors"]
    if detailed_cache:
        lines += ["    cache {", "        success 9984 30", "        denial 9984 5", "    }"]
    else:
        lines.append("    cache 30")
    lines += ["    reload", "    loop", f"    bind {_LOCAL_IP}"]
    if forward_target is None:
        lines.append("    forward . /etc/resolv.conf")
    else:
        lines += [f"    forward . {forward_target} {{", "        force_tcp", "    }"]
    lines.append(f"    prometheus :{_METRICS_PORT}")
    if health:
        lines.append(f"    health {_LOCAL_IP}:{_HEALTH_PORT}")
    lines.append("}")
    return lines


def _corefile(dns_domain, forward_target):
    blocks = [
        _server_block(dns_domain, forward_target, detailed_cache=True, health=True),
        _server_block("in-addr.arpa", forward_target),
        _server_block("ip6.arpa", forward_target),
        _server_block("."),
    ]
    return "".join(line + "\n" for block in blocks for line in block)


def generate_coredns_service(cluster_ip):
    """Render the CoreDNS Service bound to ``cluster_ip``."""
    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {
            "name": "coredns",
            "namespace": _NAMESPACE,
            "labels": {
                "k8s-app": "kube-dns",
                "kubernetes.io/cluster-service": "true",
                "kubernetes.io/name": "coredns",
                "addonmanager.kubernetes.io/mode": "Reconcile",
            },
            "annotations": {
                "prometheus.io/port": "9153",
                "prometheus.io/scrape": "true",
            },
        },
        "spec": {
            "selector": {"k8s-app": "kube-dns"},
            "clusterIP": cluster_ip,
            "ports": [
                _service_port("dns", 53, "UDP"),
                _service_port("dns-tcp", 53, "TCP"),
                _service_port("metrics", 9153, "TCP"),
            ],
        },
    }
    return _dump_documents([service])


def generate_nodelocaldns_service(image):
    """Render the node-local DNS ServiceAccount and DaemonSet using ``image``."""
    account = {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": {
            "name": _NODELOCALDNS,
            "namespace": _NAMESPACE,
            "labels": {"addonmanager.kubernetes.io/mode": "Reconcile"},
        },
    }
    container = {
        "name": "node-cache",
        "image": image,
        "resources": {
            "limits": {"memory": "170Mi"},
            "requests": {"cpu": "100m", "memory": "70Mi"},
        },
        "args": [
            "-localip", _LOCAL_IP,
            "-conf", "/etc/coredns/Corefile",
            "-upstreamsvc", "coredns",
        ],
        "securityContext": {"privileged": True},
        "ports": [
            _container_port("dns", 53, "UDP"),
            _container_port("dns-tcp", 53, "TCP"),
            _container_port("metrics", _METRICS_PORT, "TCP"),
        ],
        "livenessProbe": _health_probe(),
        "readinessProbe": _health_probe(),
        "volumeMounts": [
            {"name": "config-volume", "mountPath": "/etc/coredns"},
            {"name": "xtables-lock", "mountPath": "/run/xtables.lock"},
        ],
    }
    daemonset = {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": _NODELOCALDNS,
            "namespace": _NAMESPACE,
            "labels": {
                "k8s-app": "kube-dns",
                "addonmanager.kubernetes.io/mode": "Reconcile",
            },
        },
        "spec": {
            "selector": {"matchLabels": {"k8s-app": _NODELOCALDNS}},
            "template": {
                "metadata": {
                    "labels": {"k8s-app": _NODELOCALDNS},
                    "annotations": {
                        "prometheus.io/scrape": "true",
                        "prometheus.io/port": str(_METRICS_PORT),
                    },
                },
                "spec": {
                    "priorityClassName": "system-cluster-critical",
                    "serviceAccountName": _NODELOCALDNS,
                    "hostNetwork": True,
                    # The cache must not resolve through cluster DNS itself.
                    "dnsPolicy": "Default",
                    "tolerations": [
                        {"effect": "NoSchedule", "operator": "Exists"},
                        {"effect": "NoExecute", "operator": "Exists"},
                        {"key": "CriticalAddonsOnly", "operator": "Exists"},
                    ],
                    "containers": [container],
                    "volumes": [
                        {
                            "name": "config-volume",
                            "configMap": {
                                "name": _NODELOCALDNS,
                                "items": [{"key": "Corefile", "path": "Corefile"}],
                            },
                        },
                        {
                            "name": "xtables-lock",
                            "hostPath": {"path": "/run/xtables.lock", "type": "FileOrCreate"},
                        },
                    ],
                    "terminationGracePeriodSeconds": 0,
                },
            },
            "updateStrategy": {
                "rollingUpdate": {"maxUnavailable": "20%"},
                "type": "RollingUpdate",
            },
        },
    }
    return _dump_documents([account, daemonset])


def generate_nodelocaldns_configmap(cluster_ip, default_cluster_ip, dns_domain):
    """Render the node-local DNS Corefile ConfigMap.

    Queries are forwarded to ``cluster_ip``, or to ``default_cluster_ip``
    when ``cluster_ip`` is empty.
    """
    forward_target = cluster_ip or default_cluster_ip
    configmap = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {
            "name": _NODELOCALDNS,
            "namespace": _NAMESPACE,
            "labels": {"addonmanager.kubernetes.io/mode": "EnsureExists"},
        },
        "data": {"Corefile": _Block(_corefile(dns_domain, forward_target))},
    }
    return _dump_documents([configmap])