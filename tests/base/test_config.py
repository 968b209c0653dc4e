"""Tests for settings resolution."""

import argparse

from sospower.base.config import (
    DEFAULT_EXCLUDED_ACCOUNTS,
    MASTER_CHEF_V2_ADDRESS,
    SLP_FARM_POOL_ID,
    SOS_ADDRESS,
    PowerSettings,
    add_args,
    load_settings,
)
from sospower.ledger.compute_power import compute_power
from sospower.ledger.models import PoolRatios, SourceRole
from sospower.ledger.percentiles import DEFAULT_PERCENTILES

TREASURY = "0x" + "d" * 40


def _args(*argv: str) -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    add_args(parser)
    return parser.parse_args(list(argv))


class TestLoadSettings:

    def test_defaults(self):
        settings = load_settings(_args(), env={})
        assert settings.rpc_url == ""
        assert settings.target_block is None
        assert settings.data_dir == "data"
        assert settings.farm_pool_id == SLP_FARM_POOL_ID
        assert settings.percentiles == list(DEFAULT_PERCENTILES)
        assert set(settings.excluded_accounts) == DEFAULT_EXCLUDED_ACCOUNTS

    def test_cli_values(self):
        settings = load_settings(
            _args("--rpc.url", "http://cli.node", "--target_block", "14000000", "--percentiles", "50,99.9"),
            env={},
        )
        assert settings.rpc_url == "http://cli.node"
        assert settings.target_block == 14_000_000
        assert settings.percentiles == [50.0, 99.9]

    def test_env_overrides_cli(self):
        settings = load_settings(
            _args("--rpc.url", "http://cli.node", "--data_dir", "cli-data"),
            env={"SOSPOWER_RPC_URL": "http://env.node", "SOSPOWER_DATA_DIR": "env-data"},
        )
        assert settings.rpc_url == "http://env.node"
        assert settings.data_dir == "env-data"

    def test_alchemy_key_fallback(self):
        settings = load_settings(_args(), env={"ALCHEMY_KEY": "abc"})
        assert settings.rpc_url == "https://eth-mainnet.alchemyapi.io/v2/abc"

    def test_target_block_aliases(self):
        assert load_settings(_args(), env={"TARGET_BLOCK": "123"}).target_block == 123
        assert load_settings(_args(), env={"SOSPOWER_TARGET_BLOCK": "7", "TARGET_BLOCK": "123"}).target_block == 7

    def test_excluded_accounts_are_lowercased(self):
        upper = "0x" + "D" * 40
        settings = load_settings(_args(), env={"SOSPOWER_EXCLUDED_ACCOUNTS": f" {upper} ,"})
        assert settings.excluded_accounts[0] == TREASURY
        assert set(settings.excluded_accounts) == DEFAULT_EXCLUDED_ACCOUNTS | {TREASURY}

    def test_sources_cover_every_role(self):
        sources = load_settings(_args("--farm.pool_id", "7"), env={}).sources()
        assert {s.role for s in sources} == set(SourceRole)
        primary = next(s for s in sources if s.role == SourceRole.PRIMARY)
        farm = next(s for s in sources if s.role == SourceRole.POOL_FARM)
        assert primary.address == SOS_ADDRESS
        assert primary.batch_size == 200
        assert farm.pool_id == 7

    def test_protocol_contracts_always_excluded(self):
        assert MASTER_CHEF_V2_ADDRESS in PowerSettings().excluded_accounts
        settings = PowerSettings(excluded_accounts=[MASTER_CHEF_V2_ADDRESS.upper().replace("0X", "0x")])
        assert settings.excluded_accounts.count(MASTER_CHEF_V2_ADDRESS) == 1
        assert set(settings.excluded_accounts) == DEFAULT_EXCLUDED_ACCOUNTS

    def test_farm_contract_holdings_are_not_scored(self):
        staker = "0x" + "a" * 40
        ratios = PoolRatios(escrow_pool_reserve=1, escrow_total_supply=1,
                            pool_token_reserve=500, pool_total_supply=1000)
        records = compute_power(
            {SourceRole.POOL_SHARE: {MASTER_CHEF_V2_ADDRESS: 20}, SourceRole.POOL_FARM: {staker: 20}},
            ratios,
            excluded=load_settings(_args(), env={}).excluded_accounts,
        )
        assert set(records) == {staker}
        assert records[staker].sos_power == 20
