import base64
import io
import logging
import re
import threading
import time

import pytest

from kkaddons.kubesphere import (
    ADDONS_MANIFEST,
    KubeSphereTimeout,
    StatusChannel,
    check_default_storage_class,
    check_kubesphere_status,
    count_default_storage_classes,
    deploy_kubesphere_step,
    generate_kubesphere_manifests,
    result_notes,
)
from kkaddons.manifests import generate_kubesphere_yaml
from kkaddons.runner import CommandError, CommandRunner, DeployContext

_WRITE = re.compile(r'echo (\S+) \| base64 -d (>>?) (\S+)"')


class FakeShell:
    def __init__(self, rules=()):
        self.rules = list(rules)
        self.commands = []

    def __call__(self, command):
        self.commands.append(command)
        for needle, result in self.rules:
            if needle in command:
                if isinstance(result, Exception):
                    raise result
                return result
        return ""


def _written(commands, path):
    parts = []
    for command in commands:
        match = _WRITE.search(command)
        if match and match.group(3) == path:
            parts.append(base64.b64decode(match.group(1)).decode())
    return "".join(parts)


def _context(version="v3.0.0", **kwargs):
    kwargs.setdefault("zone", "")
    return DeployContext(
        kubesphere_version=version,
        etcd_nodes=[("node1", "192.168.0.2"), ("node2", "192.168.0.3")],
        configurations="---\nkind: ClusterConfiguration\n",
        status_attempts=0,
        status_interval=0,
        **kwargs,
    )


def _finish(watcher, channel):
    watcher.join(timeout=5)
    return channel.receive(timeout=1)


def test_deploy_v3_writes_manifests_and_applies():
    shell = FakeShell()
    channel = StatusChannel()
    context = _context()
    watcher = deploy_kubesphere_step(context, CommandRunner(shell), channel)

    written = _written(shell.commands, ADDONS_MANIFEST)
    assert written == generate_kubesphere_yaml("", "v3.0.0", "") + context.configurations
    assert any("endpointIps/s/\\:.*/\\: 192.168.0.2,192.168.0.3/g" in c for c in shell.commands)
    assert any("sed -i '/local_registry/d'" in c for c in shell.commands)
    assert any("sed -i '/zone/d'" in c for c in shell.commands)
    assert any("node-node1.pem" in c and "node-node1-key.pem" in c for c in shell.commands)
    assert f"apply -f {ADDONS_MANIFEST}" in shell.commands[-1]
    assert _finish(watcher, channel) == ""


def test_deploy_with_private_registry_escapes_slashes():
    shell = FakeShell()
    channel = StatusChannel()
    context = _context(private_registry="dockerhub.example.com/lib")
    watcher = deploy_kubesphere_step(context, CommandRunner(shell), channel)
    assert any("/local_registry/s/\\:.*/\\: dockerhub.example.com\\/lib/g" in c for c in shell.commands)
    assert "dockerhub.example.com/lib/kubesphere/ks-installer:v3.0.0" in _written(shell.commands, ADDONS_MANIFEST)
    _finish(watcher, channel)


def test_deploy_latest_in_cn_zone_sets_zone():
    shell = FakeShell()
    channel = StatusChannel()
    watcher = deploy_kubesphere_step(_context("latest", zone="cn"), CommandRunner(shell), channel)
    assert any("/zone/s/\\:.*/\\: cn/g" in c for c in shell.commands)
    _finish(watcher, channel)


def test_deploy_v2_installs_helm2():
    copies = []
    shell = FakeShell()
    channel = StatusChannel()
    context = _context("v2.1.1", work_dir="/root/kubekey", kubernetes_version="v1.17.9", arch="arm64")
    runner = CommandRunner(shell, copier=lambda s, d: copies.append((s, d)))
    watcher = deploy_kubesphere_step(context, runner, channel)
    assert copies == [("/root/kubekey/v1.17.9/arm64/helm2", "/tmp/kubekey/helm2")]
    assert any("--tiller-image=kubesphere/tiller:v2.16.9" in c for c in shell.commands)
    assert "kubesphere/ks-installer:v2.1.1" in _written(shell.commands, ADDONS_MANIFEST)
    _finish(watcher, channel)


def test_deploy_unknown_version_skips_manifests():
    shell = FakeShell()
    channel = StatusChannel()
    watcher = deploy_kubesphere_step(_context("v1.0.0"), CommandRunner(shell), channel)
    assert _written(shell.commands, ADDONS_MANIFEST) == ""
    _finish(watcher, channel)


def test_deploy_tolerates_existing_secret():
    shell = FakeShell([("create secret", CommandError("exists", output="AlreadyExists"))])
    channel = StatusChannel()
    watcher = deploy_kubesphere_step(_context(), CommandRunner(shell), channel)
    assert f"apply -f {ADDONS_MANIFEST}" in shell.commands[-1]
    _finish(watcher, channel)


def test_deploy_secret_failure_raises():
    failure = CommandError("denied", output="Forbidden")
    shell = FakeShell([("create secret", failure)])
    with pytest.raises(CommandError) as info:
        deploy_kubesphere_step(_context(), CommandRunner(shell), StatusChannel())
    assert info.value is failure


def test_deploy_apply_failure_raises():
    shell = FakeShell([(f"apply -f {ADDONS_MANIFEST}", CommandError("refused"))])
    with pytest.raises(CommandError, match="Failed to deploy"):
        deploy_kubesphere_step(_context(), CommandRunner(shell), StatusChannel())


def test_deploy_requires_etcd_nodes():
    context = DeployContext("v3.0.0", [], zone="")
    with pytest.raises(ValueError):
        deploy_kubesphere_step(context, CommandRunner(FakeShell()), StatusChannel())


def test_generate_kubesphere_manifests_appends_configuration():
    shell = FakeShell()
    context = _context("latest")
    generate_kubesphere_manifests(context, CommandRunner(shell), "latest")
    assert ">> " + ADDONS_MANIFEST in shell.commands[1]
    assert _written(shell.commands, ADDONS_MANIFEST).endswith(context.configurations)


def test_check_status_reports_output():
    shell = FakeShell([("-- cat", "Welcome to KubeSphere!")])
    channel = StatusChannel()
    check_kubesphere_status(CommandRunner(shell), channel, attempts=3, interval=0)
    assert channel.receive(timeout=1) == "Welcome to KubeSphere!"
    assert len(shell.commands) == 2


def test_check_status_times_out():
    shell = FakeShell([("-- ls", CommandError("no pod"))])
    channel = StatusChannel()
    check_kubesphere_status(CommandRunner(shell), channel, attempts=3, interval=0)
    assert channel.receive(timeout=1) == ""
    assert len(shell.commands) == 3


def test_result_notes_prints_report():
    channel = StatusChannel()
    channel.send("Welcome to KubeSphere!")
    out = io.StringIO()
    assert result_notes(channel, False, out, 0) == "Welcome to KubeSphere!"
    assert out.getvalue().endswith("Welcome to KubeSphere!\n")


def test_result_notes_in_cluster():
    channel = StatusChannel()
    channel.send("done")
    out = io.StringIO()
    result_notes(channel, True, out, 0)
    assert "Please wait for the installation to complete ..." in out.getvalue()
    assert "\033[" not in out.getvalue()


def test_result_notes_timeout():
    channel = StatusChannel()
    channel.send("")
    with pytest.raises(KubeSphereTimeout, match="KubeSphere startup timeout."):
        result_notes(channel, False, io.StringIO(), 0)


def test_result_notes_animates_while_waiting():
    channel = StatusChannel()
    out = io.StringIO()

    def later():
        time.sleep(0.05)
        channel.send("ready")

    sender = threading.Thread(target=later)
    sender.start()
    result_notes(channel, False, out, 0.001)
    sender.join()
    text = out.getvalue()
    assert "Please wait for the installation to complete: >>--->" in text
    assert text.endswith("ready\n")


@pytest.mark.parametrize("output, expected", [("1\n", 1), ("0", 0), ("  2\n", 2)])
def test_count_default_storage_classes(output, expected):
    shell = FakeShell([("get sc", output)])
    assert count_default_storage_classes(CommandRunner(shell)) == expected


def test_count_default_storage_classes_without_digit():
    with pytest.raises(ValueError):
        count_default_storage_classes(CommandRunner(FakeShell([("get sc", "none")])))


def test_count_default_storage_classes_failure():
    shell = FakeShell([("get sc", CommandError("refused"))])
    with pytest.raises(CommandError, match="Failed to check default storageClass"):
        count_default_storage_classes(CommandRunner(shell))


def test_check_default_storage_class_deploys_when_missing():
    calls = []
    count = check_default_storage_class(CommandRunner(FakeShell([("get sc", "0")])), lambda: calls.append(1))
    assert count == 0
    assert calls == [1]


def test_check_default_storage_class_warns_when_not_unique(caplog):
    calls = []
    with caplog.at_level(logging.WARNING):
        check_default_storage_class(CommandRunner(FakeShell([("get sc", "2")])), lambda: calls.append(1))
    assert calls == []
    assert "Default storageClass in cluster is not unique!" in caplog.text


def test_check_default_storage_class_single_default_is_quiet(caplog):
    calls = []
    with caplog.at_level(logging.WARNING):
        check_default_storage_class(CommandRunner(FakeShell([("get sc", "1")])), lambda: calls.append(1))
    assert calls == []
    assert caplog.text == ""