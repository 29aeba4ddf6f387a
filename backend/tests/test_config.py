from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.config import ProviderSettings, Settings, load_workflow_config
from app.core.networks import NetworkNotFound, available_networks, get_network


def test_defaults_target_sepolia_with_mock_providers():
    settings = Settings(database_url="sqlite://")

    assert settings.provider_names == ("MockAirOne", "MockSkyTwo")
    assert settings.data_mode == "mock"
    assert settings.submission_mode == "dry_run"
    network = settings.resolve_network()
    assert network.chain_id == 11155111
    assert network.is_testnet is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"flight_market_address": "0x1234"},
        {"receiver_address": "704b455caC0054114Fb8C4DDC63bd598525A8eF7"},
        {"gas_limit": "lots"},
        {"gas_limit": 0},
        {"providers": []},
        {"providers": [{"name": "MockAirOne"}, {"name": "MockAirOne"}]},
        {"providers": [{"name": "NoSuchAir"}]},
        {"data_mode": "live"},
        {"submission_mode": "http"},
        {"provider_timeout_seconds": 0},
    ],
)
def test_invalid_settings_are_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(database_url="sqlite://", **overrides)


def test_live_mode_accepts_providers_with_endpoints():
    settings = Settings(
        database_url="sqlite://",
        data_mode="live",
        providers=[ProviderSettings(name="MockAirOne", base_url="https://air-one.example")],
    )

    assert settings.providers[0].path == "/flights/status"


def test_numeric_gas_limit_is_normalized_to_string():
    assert Settings(database_url="sqlite://", gas_limit=750000).gas_limit == "750000"


def test_blank_dump_dir_disables_dumps():
    assert Settings(database_url="sqlite://", evidence_dump_dir="  ").evidence_dump_dir is None


def test_load_workflow_config_reads_yaml(tmp_path):
    config = tmp_path / "workflow.yaml"
    config.write_text(
        "\n".join(
            [
                "database_url: 'sqlite://'",
                "mock_profile: storm",
                "gas_limit: 600000",
                "providers:",
                "  - name: MockSkyTwo",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_workflow_config(config)

    assert settings.mock_profile == "storm"
    assert settings.gas_limit == "600000"
    assert settings.provider_names == ("MockSkyTwo",)


def test_load_workflow_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_workflow_config(tmp_path / "missing.yaml")


def test_network_lookup():
    assert "ethereum-testnet-sepolia" in available_networks()
    assert get_network("ethereum-mainnet").is_testnet is False
    with pytest.raises(NetworkNotFound):
        get_network("ethereum-mainnet", is_testnet=True)
    with pytest.raises(NetworkNotFound):
        get_network("polygon-nowhere")
