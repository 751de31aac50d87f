# kkaddons

Manifests, configuration models and deployment steps for the add-ons that
go onto a freshly built Kubernetes cluster: the KubeSphere installer and the
cluster DNS services (a CoreDNS service and the node-local DNS cache).

## Installation

```
pip install kkaddons
```

The only runtime dependency is PyYAML.

## Configuration models

`kkaddons.config_v2` and `kkaddons.config_v3` hold dataclasses for the
KubeSphere installer configuration of the v2 and v3 releases. Each field is
bound to the YAML key the installer uses; missing keys take zero values
(`""`, `0`, `False`), unknown keys are ignored, and a value of the wrong
type raises `TypeError`.

```python
from kkaddons.config_v3 import load_cluster_config, dump_cluster_config
from kkaddons.manifests import default_configuration

config = load_cluster_config(default_configuration("v3.0.0"))
config.spec.devops.enabled = True
print(dump_cluster_config(config))
```

`ClusterConfig.spec` is `None` when the document has no `spec`.
`load_v2` and `dump_v2` in `kkaddons.config_v2` read and write the v2
`ks-config.yaml` settings as a `V2`. Every model also has `from_dict` and
`to_dict`.

## Manifests

`kkaddons.manifests`:

- `default_configuration(version)` returns the default installer
  configuration for `"v2.1.1"` (a ConfigMap) or `"v3.0.0"` (a
  ClusterConfiguration); any other version raises `ValueError`. The same
  texts are available as `V2_1_1` and `V3_0_0`.
- `generate_kubesphere_yaml(repo, version, zone)` renders the ks-installer
  Namespace, ServiceAccount, CustomResourceDefinition, ClusterRole,
  ClusterRoleBinding and Deployment, with the image
  `<repository>/ks-installer:<version>`.
- `installer_repository(repo, version, zone)` picks that repository: a
  version containing `latest` in the `cn` zone uses
  `registry.cn-beijing.aliyuncs.com/kubesphereio`; otherwise a private
  registry `repo` gives `<repo>/kubesphere`; with no registry, `latest` and
  `nightly-` builds come from `kubespheredev` and releases from `kubesphere`.

`kkaddons.dns_manifests`:

- `generate_coredns_service(cluster_ip)` renders the `coredns` Service in
  `kube-system`.
- `generate_nodelocaldns_service(image)` renders the `nodelocaldns`
  ServiceAccount and DaemonSet.
- `generate_nodelocaldns_configmap(cluster_ip, default_cluster_ip, dns_domain)`
  renders the Corefile ConfigMap, forwarding to `cluster_ip`, or to
  `default_cluster_ip` when `cluster_ip` is empty.

```python
from kkaddons.manifests import generate_kubesphere_yaml, installer_repository
from kkaddons.dns_manifests import generate_coredns_service

installer_repository("", "v3.0.0", "")        # "kubesphere"
installer_yaml = generate_kubesphere_yaml("", "v3.0.0", "")
service = generate_coredns_service("10.233.0.3")
```

## Deployment steps

The deployment functions issue shell commands on a node through a
`CommandRunner` from `kkaddons.runner`. The runner wraps two callables you
supply: `executor(command)` returns the command's output and raises
`CommandError` (with `output` set to what the command printed) when it
fails; the optional `copier(src, dst)` copies a local file to the node.
`CommandRunner.execute(command, retries, print_output)` tries a command up
to `retries` times before letting the last `CommandError` through.

```python
from kkaddons.runner import CommandError, CommandRunner

def execute(command):
    # Run `command` on the node and return its output.
    # On failure: raise CommandError("failed", command=command, output=output)
    ...

runner = CommandRunner(execute)
```

### Cluster DNS

```python
from kkaddons.dns import create_cluster_dns

create_cluster_dns(runner, "registry.example.com/k8s-dns-node-cache:1.15.13",
                   "10.233.0.3", "cluster.local")
```

`create_cluster_dns` creates the CoreDNS service on the default cluster IP
when none exists (`override_coredns_service`), otherwise reads its cluster
IP, then deploys the node-local DNS cache (`deploy_nodelocaldns`), creating
its ConfigMap only when the cluster reports it as `NotFound`.

### KubeSphere

```python
from kkaddons.kubesphere import StatusChannel, deploy_kubesphere_step, result_notes
from kkaddons.manifests import default_configuration
from kkaddons.runner import DeployContext

context = DeployContext(
    kubesphere_version="v3.0.0",
    etcd_nodes=[("node1", "192.168.0.2")],
    configurations=default_configuration("v3.0.0"),
)
channel = StatusChannel()
deploy_kubesphere_step(context, runner, channel)
result_notes(channel, in_cluster=True)
```

`deploy_kubesphere_step` writes the installer manifests and the
configuration to `/etc/kubernetes/addons/kubesphere.yaml` (for `v2.1.1` it
first installs helm2 and tiller, which needs a runner with a copier), sets
the etcd endpoints, private registry and zone in that file, creates the
namespaces and the etcd client certificate secret, applies the file, and
returns a background thread that polls the installer
(`check_kubesphere_status`). Manifests are generated only for `v2.1.1`,
`v3.0.0`, `latest` and `nightly-` versions. `DeployContext.zone` defaults
to the `KKZONE` environment variable.

`result_notes` waits for the report on the channel and writes it out, with
a small animation when not `in_cluster`; an empty report raises
`KubeSphereTimeout`.

`check_default_storage_class(runner, deploy_local_volume)` counts the
default storage classes, calls `deploy_local_volume()` when there are none
and logs a warning when there is more than one.

## What this package does not do

It does not connect to hosts: there is no SSH or file transfer built in, so
the command executor and copier must be provided. It has no command-line
program, and it does not itself deploy a local volume provisioner; that is
left to the callable passed to `check_default_storage_class`.

## Running the tests

```
pip install kkaddons[test]
pytest
```