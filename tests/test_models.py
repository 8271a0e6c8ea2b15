from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.domain.models import (
    CommandResult,
    PodSpec,
    PortForwardSpec,
    default_pod_command,
    kube_context,
    validate_cluster_name,
)
from core.errors import InvalidNameError


@pytest.mark.parametrize("name", ["kind", "dev-1", "my.cluster", "0"])
def test_valid_cluster_names(name):
    assert validate_cluster_name(name) == name


@pytest.mark.parametrize("name", ["my_cluster", "Dev", "", "a b", "kind/x"])
def test_invalid_cluster_names_are_rejected(name):
    with pytest.raises(InvalidNameError):
        validate_cluster_name(name)


def test_invalid_name_error_is_a_value_error():
    with pytest.raises(ValueError):
        validate_cluster_name("with_underscore")


def test_kube_context_prefixes_kind():
    assert kube_context("dev") == "kind-dev"
    with pytest.raises(InvalidNameError):
        kube_context("bad_name")


def test_pod_spec_defaults():
    spec = PodSpec()
    assert spec.name == "ubi-ssh"
    assert spec.image.startswith("registry.access.redhat.com/ubi9/ubi")
    assert spec.container_port == 22
    assert "sleep infinity" in spec.command[-1]


def test_pod_spec_rejects_bad_names():
    with pytest.raises(ValidationError):
        PodSpec(name="UBI_pod")
    with pytest.raises(ValidationError):
        PodSpec(namespace="-bad")
    with pytest.raises(ValidationError):
        PodSpec(container_port=70000)


def test_for_ssh_builds_sshd_command_with_key():
    spec = PodSpec.for_ssh(
        name="box",
        namespace="default",
        image="ubi",
        port=2022,
        authorized_key="ssh-ed25519 AAAA test@host",
    )
    script = spec.command[-1]
    assert spec.command[:2] == ["/bin/bash", "-c"]
    assert "ssh-ed25519 AAAA test@host" in script
    assert "sshd -D -e -p 2022" in script
    assert spec.labels == {"app": "box"}


def test_default_command_without_key_only_sleeps():
    command = default_pod_command(None)
    assert "sshd" not in command[-1]


def test_port_forward_match_pattern_is_scoped_to_pod_and_context():
    spec = PortForwardSpec(pod_name="ubi-ssh", context="kind-dev", local_port=2222)
    assert spec.match_pattern() == "kind-dev port-forward pod/ubi-ssh "


def test_command_result_ok():
    assert CommandResult(argv=["true"], returncode=0).ok
    assert not CommandResult(argv=["false"], returncode=1).ok
