from pathlib import Path

import pytest
from oslo_config import cfg

from route_vs_agent.config import load_config
from route_vs_agent.main import build_conf
from route_vs_controller.options import ControllerSettings, register_controller_opts


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(
        """
agent:
  output_dir: /var/lib/route-vs
controller:
  route_spec_configmap: kube-system/extended-spec
  pool_member_type: cluster
  namespaces: [tenant-a, tenant-b]
  share_nodes: true
watchers:
  - type: file
    path: /etc/route-vs/manifests
    interval: 2
"""
    )

    config = load_config(config_path)

    assert config.device.output_dir == Path("/var/lib/route-vs")
    assert config.controller["pool_member_type"] == "cluster"
    assert config.controller["namespaces"] == ["tenant-a", "tenant-b"]
    assert len(config.watchers) == 1
    watcher = config.watchers[0]
    assert watcher.type == "file"
    assert watcher.path == Path("/etc/route-vs/manifests")
    assert watcher.interval == pytest.approx(2.0)
    assert watcher.options == {}


def test_load_config_defaults(tmp_path: Path):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text("watchers: []\n")

    config = load_config(config_path)

    assert config.device.output_dir == Path("/var/lib/route-vs")
    assert config.controller == {}
    assert config.watchers == []


@pytest.mark.parametrize(
    "text",
    [
        "- just a list",
        "controller:\n  unknown_option: 1\n",
        "controller: [1, 2]\n",
        "watchers: {type: file}\n",
    ],
)
def test_load_config_rejects_invalid(tmp_path: Path, text: str):
    config_path = tmp_path / "agent.yaml"
    config_path.write_text(text)

    with pytest.raises(ValueError):
        load_config(config_path)


def test_controller_opts_defaults():
    conf = cfg.ConfigOpts()
    register_controller_opts(conf)
    conf([], default_config_files=[])

    settings = ControllerSettings.from_conf(conf)

    assert settings == ControllerSettings()


def test_build_conf_applies_overrides():
    conf = build_conf(
        {
            "pool_member_type": "cluster",
            "node_addresses": ["10.0.0.1", "10.0.0.2"],
            "default_route_domain": 2,
            "queue_max_delay": 30,
        }
    )

    settings = ControllerSettings.from_conf(conf)

    assert settings.pool_member_type == "cluster"
    assert settings.node_addresses == ["10.0.0.1", "10.0.0.2"]
    assert settings.default_route_domain == 2
    assert settings.queue_max_delay == pytest.approx(30.0)
    assert settings.route_spec_configmap == "kube-system/global-extended-route-spec"
