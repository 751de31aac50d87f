"""Deploying KubeSphere onto a cluster and waiting for it to come up."""

import logging
import queue
import re
import sys
import threading
import time

from .manifests import generate_kubesphere_yaml
from .runner import CommandError, run_or_raise, write_file_command

__all__ = [
    "KubeSphereTimeout",
    "StatusChannel",
    "deploy_kubesphere_step",
    "generate_kubesphere_manifests",
    "check_kubesphere_status",
    "result_notes",
    "count_default_storage_classes",
    "check_default_storage_class",
]

logger = logging.getLogger(__name__)

ADDONS_MANIFEST = "/etc/kubernetes/addons/kubesphere.yaml"
_KUBECTL = "/usr/local/bin/kubectl"
_CN_REGISTRY = "registry.cn-beijing.aliyuncs.com"
_NOTES = "Please wait for the installation to complete: "

_TILLER_RBAC = """cat <<EOF | kubectl apply -f -
apiVersion: v1
kind: ServiceAccount
metadata:
  name: tiller
  namespace: kube-system
---
apiVersion: rbac.authorization.k8s.io/v1
kind: ClusterRoleBinding
metadata:
  name: tiller
roleRef:
  apiGroup: rbac.authorization.k8s.io
  kind: ClusterRole
  name: cluster-admin
subjects:
  - kind: ServiceAccount
    name: tiller
    namespace: kube-system
EOF
"""

_NAMESPACES = f"""cat <<EOF | {_KUBECTL} apply -f -
apiVersion: v1
kind: Namespace
metadata:
  name: kubesphere-system
---
apiVersion: v1
kind: Namespace
metadata:
  name: kubesphere-monitoring-system
EOF
"""

_INSTALLER_POD = (
    "$(kubectl get pod -n kubesphere-system -l app=ks-install "
    "-o jsonpath='{.items[0].metadata.name}')"
)
_RUNNING_MARKER = "/kubesphere/playbooks/kubesphere_running"


class KubeSphereTimeout(Exception):
    """KubeSphere did not report that it is running in time."""


class StatusChannel:
    """Carries the installer's final report; an empty report means timeout."""

    def __init__(self):
        self._queue = queue.Queue()

    def send(self, result):
        self._queue.put(result)

    def receive(self, timeout=None):
        """Wait for a report; raise :class:`queue.Empty` on timeout."""
        return self._queue.get(timeout=timeout)

    def receive_nowait(self):
        """Return a pending report, or None when there is none yet."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None


def _sed_set(key, value):
    return f"sudo /bin/sh -c \"sed -i '/{key}/s/\\:.*/\\: {value}/g' {ADDONS_MANIFEST}\""


def _sed_delete(key):
    return f"sudo /bin/sh -c \"sed -i '/{key}/d' {ADDONS_MANIFEST}\""


def generate_kubesphere_manifests(context, runner, version):
    """Write the installer manifests plus the user configuration to the node."""
    manifest = generate_kubesphere_yaml(context.private_registry, version, context.zone)
    run_or_raise(
        runner,
        write_file_command(manifest, ADDONS_MANIFEST),
        2,
        False,
        "Failed to generate kubesphere manifests",
    )
    run_or_raise(
        runner,
        write_file_command(context.configurations, ADDONS_MANIFEST, append=True),
        2,
        False,
        "Failed to generate kubesphere manifests",
    )


def _install_helm2(context, runner):
    src = f"{context.work_dir}/{context.kubernetes_version}/{context.arch}/helm2"
    try:
        runner.copy_file(src, "/tmp/kubekey/helm2")
    except CommandError as err:
        raise CommandError(f"Failed to sync helm2: {err}", output=err.output) from err
    run_or_raise(
        runner,
        'sudo -E /bin/sh -c "cp /tmp/kubekey/helm2  /usr/local/bin/helm2  && chmod +x /usr/local/bin/helm2"',
        1,
        False,
        "Failed to sync helm2",
    )
    run_or_raise(runner, _TILLER_RBAC, 5, True, "Failed to create helm rbac")
    tiller_repo = f"{context.private_registry}/kubesphere" if context.private_registry else "kubesphere"
    run_or_raise(
        runner,
        'sudo -E /bin/sh -c "/usr/local/bin/helm2 init --service-account=tiller --skip-refresh '
        f'--tiller-image={tiller_repo}/tiller:v2.16.9 --wait"',
        3,
        True,
        "Failed to sync helm2",
    )


def deploy_kubesphere_step(context, runner, channel):
    """Install KubeSphere through ``runner`` and start watching its progress.

    Returns the thread that reports the outcome on ``channel``.
    """
    if not context.etcd_nodes:
        raise ValueError("at least one etcd node is required")
    version = context.kubesphere_version
    logger.info("KubeSphere version: %s", version)

    if version == "v2.1.1":
        _install_helm2(context, runner)
        generate_kubesphere_manifests(context, runner, version)
    elif version in ("v3.0.0", "latest") or version.startswith("nightly-"):
        generate_kubesphere_manifests(context, runner, version)

    endpoints = ",".join(address for _, address in context.etcd_nodes)
    run_or_raise(runner, _sed_set("endpointIps", endpoints), 2, False, "Failed to update etcd endpoint")

    registry = context.private_registry
    if registry:
        run_or_raise(
            runner,
            _sed_set("local_registry", registry.replace("/", "\\/")),
            2,
            False,
            f"Failed to add private registry: {registry}",
        )
    else:
        run_or_raise(runner, _sed_delete("local_registry"), 2, False, "Failed to remove private registry")

    if version == "latest" and (context.zone == "cn" or registry == _CN_REGISTRY):
        run_or_raise(runner, _sed_set("zone", "cn"), 2, False, f"Failed to add private registry: {registry}")
    else:
        run_or_raise(runner, _sed_delete("zone"), 2, False, "Failed to remove private registry")

    run_or_raise(runner, _NAMESPACES, 5, True, "Failed to create namespace: kubesphere-system")

    first_etcd = context.etcd_nodes[0][0]
    secret_command = (
        f'sudo -E /bin/sh -c "{_KUBECTL} -n kubesphere-monitoring-system create secret generic '
        "kube-etcd-client-certs "
        "--from-file=etcd-client-ca.crt=/etc/ssl/etcd/ssl/ca.pem "
        f"--from-file=etcd-client.crt=/etc/ssl/etcd/ssl/node-{first_etcd}.pem "
        f'--from-file=etcd-client.key=/etc/ssl/etcd/ssl/node-{first_etcd}-key.pem"'
    )
    try:
        runner.execute(secret_command, 1, True)
    except CommandError as err:
        if "AlreadyExists" not in err.output:
            raise

    run_or_raise(
        runner,
        f'sudo -E /bin/sh -c "{_KUBECTL} apply -f {ADDONS_MANIFEST}"',
        10,
        True,
        f"Failed to deploy {ADDONS_MANIFEST}",
    )

    watcher = threading.Thread(
        target=check_kubesphere_status,
        args=(runner, channel, context.status_attempts, context.status_interval),
        daemon=True,
    )
    watcher.start()
    return watcher


def check_kubesphere_status(runner, channel, attempts=180, interval=10.0):
    """Poll the installer until it reports success; send the report or ``""``."""
    for _ in range(attempts):
        time.sleep(interval)
        try:
            runner.execute(f"{_KUBECTL} exec -n kubesphere-system {_INSTALLER_POD} -- ls {_RUNNING_MARKER}", 0, False)
            output = runner.execute(
                f"{_KUBECTL} exec -n kubesphere-system {_INSTALLER_POD} -- cat {_RUNNING_MARKER}", 2, False
            )
        except CommandError:
            continue
        if output:
            channel.send(output)
            return
    channel.send("")


def _frames():
    for i in range(10):
        if i < 5:
            yield f"{_NOTES}{' ' * i}>>--->"
        else:
            yield f"{_NOTES}{' ' * (10 - i)}<---<<"


def result_notes(channel, in_cluster=False, out=None, frame_delay=0.2):
    """Wait for the installer's report on ``channel`` and print it.

    On a terminal a small animation runs while waiting. Raises
    :class:`KubeSphereTimeout` when the report is empty.
    """
    stream = out if out is not None else sys.stdout
    stream.write("\n")
    if in_cluster:
        stream.write("Please wait for the installation to complete ...\n")
        result = channel.receive()
    else:
        result = channel.receive_nowait()
        while result is None:
            for frame in _frames():
                stream.write(f"\033[1A\033[K{frame} \033[K\n")
                stream.flush()
                time.sleep(frame_delay)
            result = channel.receive_nowait()
        stream.write("\033[1A\033[K")

    if result == "":
        raise KubeSphereTimeout("KubeSphere startup timeout.")
    stream.write(result if result.endswith("\n") else result + "\n")
    return result


def count_default_storage_classes(runner):
    """Return the number of storage classes marked as default."""
    output = run_or_raise(
        runner,
        f"sudo -E /bin/sh -c \"{_KUBECTL} get sc --no-headers | grep '(default)' | wc -l\"",
        3,
        False,
        "Failed to check default storageClass",
    )
    match = re.search(r"\d", output)
    if match is None:
        raise ValueError(f"unexpected storage class count: {output!r}")
    return int(match.group(0))


def check_default_storage_class(runner, deploy_local_volume):
    """Call ``deploy_local_volume`` when the cluster has no default storage class."""
    count = count_default_storage_classes(runner)
    if count == 0:
        deploy_local_volume()
    elif count != 1:
        logger.warning("Default storageClass in cluster is not unique!")
    return count