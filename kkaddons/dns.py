"""Deploying the CoreDNS service and the node-local DNS cache."""

import contextlib

from .dns_manifests import (
    generate_coredns_service,
    generate_nodelocaldns_configmap,
    generate_nodelocaldns_service,
)
from .runner import CommandError, run_or_raise, write_file_command

__all__ = ["override_coredns_service", "deploy_nodelocaldns", "create_cluster_dns"]

_KUBECTL = "/usr/local/bin/kubectl"


def _apply(path):
    return f'sudo -E /bin/sh -c "{_KUBECTL} apply -f {path}"'


def override_coredns_service(runner, cluster_ip):
    """Replace the kube-dns service with a CoreDNS service on ``cluster_ip``."""
    manifest = generate_coredns_service(cluster_ip)
    run_or_raise(
        runner,
        write_file_command(manifest, "/etc/kubernetes/coredns-svc.yaml"),
        1,
        False,
        "Failed to generate kubeadm config",
    )
    with contextlib.suppress(CommandError):
        runner.execute(f"{_KUBECTL} delete -n kube-system svc kube-dns", 1, True)
    run_or_raise(
        runner,
        _apply("/etc/kubernetes/coredns-svc.yaml"),
        2,
        True,
        "Failed to create coredns service",
    )


def deploy_nodelocaldns(runner, image, cluster_ip, default_cluster_ip, dns_domain):
    """Deploy the node-local DNS cache, creating its ConfigMap if missing."""
    run_or_raise(
        runner,
        write_file_command(generate_nodelocaldns_service(image), "/etc/kubernetes/nodelocaldns.yaml"),
        1,
        False,
        "Failed to generate nodelocaldns manifests",
    )
    run_or_raise(
        runner,
        _apply("/etc/kubernetes/nodelocaldns.yaml"),
        5,
        True,
        "Failed to create nodelocaldns",
    )
    try:
        runner.execute(f'sudo -E /bin/sh -c "{_KUBECTL} get cm -n kube-system nodelocaldns"', 1, False)
    except CommandError as err:
        if "NotFound" not in err.output:
            return
    else:
        return

    configmap = generate_nodelocaldns_configmap(cluster_ip, default_cluster_ip, dns_domain)
    run_or_raise(
        runner,
        write_file_command(configmap, "/etc/kubernetes/nodelocaldnsConfigmap.yaml"),
        1,
        False,
        "Failed to generate nodelocaldns configmap",
    )
    run_or_raise(
        runner,
        _apply("/etc/kubernetes/nodelocaldnsConfigmap.yaml"),
        5,
        True,
        "Failed to create nodelocaldns configmap",
    )


def create_cluster_dns(runner, image, default_cluster_ip, dns_domain):
    """Make sure CoreDNS has a service, then deploy the node-local DNS cache."""
    coredns_cluster_ip = ""
    try:
        runner.execute(f'sudo -E /bin/sh -c "{_KUBECTL} get svc -n kube-system coredns"', 1, False)
    except CommandError as err:
        if "NotFound" not in err.output:
            raise
        override_coredns_service(runner, default_cluster_ip)
    else:
        output = runner.execute(
            f"sudo -E /bin/sh -c \"{_KUBECTL} get svc -n kube-system coredns "
            "-o jsonpath='{.spec.clusterIP}'\"",
            1,
            False,
        )
        coredns_cluster_ip = output.strip()

    deploy_nodelocaldns(runner, image, coredns_cluster_ip, default_cluster_ip, dns_domain)