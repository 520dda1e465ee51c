#!/usr/bin/env python3
"""
Tests for network profile selection
"""

import pytest
from nort_deploy.errors import NetworkSelectionError
from nort_deploy.networks import COMPILER, DEFAULT_NETWORK, NETWORKS, get_network


class TestGetNetwork:
    """Test class for get_network"""

    def test_default_profile_is_mainnet(self):
        """No name selects the mainnet profile"""
        profile = get_network()
        assert profile.name == DEFAULT_NETWORK == "bscmainnet"
        assert profile.chain_id == 56
        assert profile.url == "https://bsc-dataseed.binance.org/"

    def test_empty_name_selects_default(self):
        assert get_network("").chain_id == 56

    def test_testnet_profile(self):
        """Explicit testnet selection has its own endpoint and credentials"""
        profile = get_network("bsctestnet")
        mainnet = get_network("bscmainnet")
        assert profile.chain_id == 97
        assert profile.url != mainnet.url
        assert profile.credential_source == "mnemonicTest"
        assert mainnet.credential_source == "mnemonic"

    def test_gas_settings(self):
        assert NETWORKS["bscmainnet"].gas_price == 30_000_000_000
        assert NETWORKS["bscmainnet"].gas_limit == 1_500_000
        assert NETWORKS["bsctestnet"].gas_price == 20_000_000_000
        assert NETWORKS["bsctestnet"].gas_limit is None

    def test_unknown_network(self):
        with pytest.raises(NetworkSelectionError, match="Unknown network 'ropsten'"):
            get_network("ropsten")

    def test_profiles_are_immutable(self):
        with pytest.raises(Exception):
            NETWORKS["bscmainnet"].chain_id = 1


def test_compiler_settings():
    assert COMPILER.version == "0.8.3"
    assert COMPILER.optimizer_enabled is True
    assert COMPILER.optimizer_runs == 200
