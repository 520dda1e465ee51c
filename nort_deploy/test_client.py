#!/usr/bin/env python3
"""
Tests for the chain session
"""

import pytest
from unittest.mock import MagicMock, patch

from nort_deploy.artifacts import ContractArtifact
from nort_deploy.client import ChainSession
from nort_deploy.errors import CredentialResolutionError, NetworkSelectionError, TransactionFailedError
from nort_deploy.networks import get_network

# Well-known development mnemonic and its first account
MNEMONIC = "test test test test test test test test test test test junk"
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

ARTIFACT = ContractArtifact(name="NortToken", abi=[], bytecode="0x6080", path="NortToken.json")


def make_session(network="bsctestnet", receipt=None):
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("aa" * 32)
    w3.eth.wait_for_transaction_receipt.return_value = receipt or {
        "status": 1, "blockNumber": 100, "contractAddress": "0x" + "11" * 20,
    }
    session = ChainSession(w3, get_network(network), receipt_timeout=30)
    session.account = MagicMock(address=ADDRESS)
    return session


class TestConnect:
    """Test class for ChainSession.connect"""

    @patch('nort_deploy.client.Web3')
    def test_connect(self, mock_web3):
        w3 = mock_web3.return_value
        w3.is_connected.return_value = True
        w3.eth.chain_id = 97

        session = ChainSession.connect(get_network("bsctestnet"))

        mock_web3.HTTPProvider.assert_called_once_with("https://data-seed-prebsc-1-s2.binance.org:8545/")
        w3.middleware_onion.inject.assert_called_once()
        assert session.w3 is w3
        assert session.receipt_timeout == 120

    @patch('nort_deploy.client.Web3')
    def test_not_connected(self, mock_web3):
        mock_web3.return_value.is_connected.return_value = False
        with pytest.raises(NetworkSelectionError, match="Could not connect"):
            ChainSession.connect(get_network())

    @patch('nort_deploy.client.Web3')
    def test_chain_id_mismatch(self, mock_web3):
        w3 = mock_web3.return_value
        w3.is_connected.return_value = True
        w3.eth.chain_id = 97
        with pytest.raises(NetworkSelectionError, match="expects 56"):
            ChainSession.connect(get_network("bscmainnet"))


class TestResolveSigner:
    """Test class for ChainSession.resolve_signer"""

    def test_mnemonic(self):
        session = ChainSession(MagicMock(), get_network("bscmainnet"))
        assert session.resolve_signer({"mnemonic": MNEMONIC}) == ADDRESS
        assert session.address == ADDRESS

    def test_testnet_uses_test_mnemonic(self):
        session = ChainSession(MagicMock(), get_network("bsctestnet"))
        with pytest.raises(CredentialResolutionError, match="mnemonicTest"):
            session.resolve_signer({"mnemonic": MNEMONIC})
        assert session.resolve_signer({"mnemonicTest": MNEMONIC}) == ADDRESS

    def test_private_key(self):
        session = ChainSession(MagicMock(), get_network())
        assert session.resolve_signer({"mnemonic": PRIVATE_KEY}) == ADDRESS

    def test_invalid_mnemonic(self):
        session = ChainSession(MagicMock(), get_network())
        with pytest.raises(CredentialResolutionError, match="Could not derive"):
            session.resolve_signer({"mnemonic": "not a real seed phrase"})

    def test_address_before_resolution(self):
        session = ChainSession(MagicMock(), get_network())
        with pytest.raises(CredentialResolutionError):
            session.address


class TestTransactions:
    """Test class for building and sending transactions"""

    def test_mainnet_default_gas(self):
        session = make_session("bscmainnet")
        params = session._tx_params(None)
        assert params == {
            'from': ADDRESS, 'nonce': 7, 'gasPrice': 30_000_000_000, 'chainId': 56, 'gas': 1_500_000,
        }

    def test_testnet_estimates_gas(self):
        session = make_session("bsctestnet")
        params = session._tx_params(None)
        assert 'gas' not in params
        assert session._tx_params(3_000_000)['gas'] == 3_000_000

    def test_deploy_returns_address(self):
        session = make_session()
        factory = session.w3.eth.contract.return_value
        factory.constructor.return_value.build_transaction.return_value = {"data": "0x6080"}

        address = session.deploy(ARTIFACT, "Nort Token", "NT", gas_limit=4_000_000)

        assert address == "0x" + "11" * 20
        factory.constructor.assert_called_once_with("Nort Token", "NT")
        params = factory.constructor.return_value.build_transaction.call_args[0][0]
        assert params['gas'] == 4_000_000
        session.account.sign_transaction.assert_called_once_with({"data": "0x6080"})
        session.w3.eth.wait_for_transaction_receipt.assert_called_once()
        assert session.w3.eth.wait_for_transaction_receipt.call_args[1]['timeout'] == 30

    def test_reverted_transaction(self):
        session = make_session(receipt={"status": 0, "blockNumber": 5})
        function = MagicMock()
        function.build_transaction.return_value = {"data": "0x"}
        with pytest.raises(TransactionFailedError, match="reverted") as exc_info:
            session.transact(function)
        assert exc_info.value.tx_hash == "aa" * 32

    def test_deploy_without_contract_address(self):
        session = make_session(receipt={"status": 1, "blockNumber": 5, "contractAddress": None})
        with pytest.raises(TransactionFailedError, match="no contract address"):
            session.deploy(ARTIFACT)
