from pathlib import Path

import pytest

from relay_automation.config import RelayConfig, load_config


def test_load_config_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.conf")
    assert isinstance(config, RelayConfig)
    assert config.plan == Path("/etc/relay/plan.toml")
    assert config.strict_outputs is False
    assert config.timeout is None


def test_load_config_overrides(tmp_path: Path) -> None:
    cfg_path = tmp_path / "main.conf"
    cfg_path.write_text(
        """
        [defaults]
        plan = "/opt/relay/plan.json"
        results_file = "/var/lib/relay/results.json"
        strict_outputs = true
        timeout = 90
        fail_fast = "yes"
        aws_region = "ap-southeast-2"
        aws_profile = "myprofile"
        """
    )

    config = load_config(cfg_path)
    assert config.plan == Path("/opt/relay/plan.json")
    assert config.results_file == Path("/var/lib/relay/results.json")
    assert config.strict_outputs is True
    assert config.timeout == 90.0
    assert config.fail_fast is True
    assert config.aws_region == "ap-southeast-2"
    assert config.aws_profile == "myprofile"


def test_load_config_rejects_bad_boolean(tmp_path: Path) -> None:
    cfg_path = tmp_path / "main.conf"
    cfg_path.write_text('[defaults]\nstrict_outputs = "sometimes"\n')
    with pytest.raises(ValueError, match="strict_outputs"):
        load_config(cfg_path)
