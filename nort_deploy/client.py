"""
Chain session: one web3 connection, one signer, one network profile.

Every transaction is built, signed locally, sent, and awaited before the
call returns.
"""

import re
import logging
from typing import Any, Dict, Optional

from eth_account import Account
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .artifacts import ContractArtifact
from .errors import CredentialResolutionError, NetworkSelectionError, TransactionFailedError
from .networks import NetworkProfile

logger = logging.getLogger(__name__)

DEFAULT_HD_PATH = "m/44'/60'/0'/0/0"
PRIVATE_KEY_PATTERN = re.compile(r'^(0x)?[0-9a-fA-F]{64}$')


class ChainSession:
    def __init__(self, w3: Web3, profile: NetworkProfile, receipt_timeout: float = 120):
        self.w3 = w3
        self.profile = profile
        self.receipt_timeout = receipt_timeout
        self.account: Optional[Any] = None

    @classmethod
    def connect(cls, profile: NetworkProfile, receipt_timeout: float = 120) -> "ChainSession":
        """Open an HTTP connection and check it reaches the profile's chain"""
        w3 = Web3(Web3.HTTPProvider(profile.url))
        # BSC blocks carry POA extraData
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        if not w3.is_connected():
            raise NetworkSelectionError(f"Could not connect to RPC URL: {profile.url}")

        chain_id = w3.eth.chain_id
        if chain_id != profile.chain_id:
            raise NetworkSelectionError(
                f"{profile.url} reports chain id {chain_id}, profile {profile.name} expects {profile.chain_id}"
            )

        logger.info(f"Connected to {profile.name} (chain id {chain_id}) at {profile.url}")
        return cls(w3, profile, receipt_timeout)

    @property
    def address(self) -> str:
        if self.account is None:
            raise CredentialResolutionError("No signer resolved for this session")
        return self.account.address

    def resolve_signer(self, secrets: Dict[str, Any], account_path: str = DEFAULT_HD_PATH) -> str:
        """
        Derive the deployer account from the profile's credential source

        The source normally holds a BIP-39 mnemonic; a raw hex private key is
        accepted as well.

        Returns:
            The deployer's checksum address
        """
        source = self.profile.credential_source
        secret = secrets.get(source)
        if not secret:
            raise CredentialResolutionError(f"No '{source}' configured for network {self.profile.name}")

        try:
            secret = str(secret).strip()
            if PRIVATE_KEY_PATTERN.match(secret):
                self.account = Account.from_key(secret)
            else:
                Account.enable_unaudited_hdwallet_features()
                self.account = Account.from_mnemonic(secret, account_path=account_path)
        except Exception as e:
            raise CredentialResolutionError(f"Could not derive signer from '{source}': {e}") from e

        return self.account.address

    def contract_at(self, artifact: ContractArtifact, address: str):
        return self.w3.eth.contract(address=self.w3.to_checksum_address(address), abi=artifact.abi)

    def _tx_params(self, gas_limit: Optional[int]) -> Dict[str, Any]:
        params = {
            'from': self.address,
            'nonce': self.w3.eth.get_transaction_count(self.address),
            'gasPrice': self.profile.gas_price,
            'chainId': self.profile.chain_id,
        }
        gas = gas_limit if gas_limit is not None else self.profile.gas_limit
        # Without a gas value web3 estimates it
        if gas is not None:
            params['gas'] = gas
        return params

    def _send(self, tx: Dict[str, Any]):
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info(f"Transaction sent: {tx_hash.hex()}")

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt['status'] != 1:
            raise TransactionFailedError(f"Transaction {tx_hash.hex()} reverted", tx_hash=tx_hash.hex())

        logger.info(f"Transaction confirmed in block {receipt['blockNumber']}")
        return receipt

    def deploy(self, artifact: ContractArtifact, *args, gas_limit: Optional[int] = None) -> str:
        """Send a contract-creation transaction and return the new address"""
        factory = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
        tx = factory.constructor(*args).build_transaction(self._tx_params(gas_limit))
        receipt = self._send(tx)

        address = receipt.get('contractAddress')
        if not address:
            raise TransactionFailedError(f"{artifact.name} creation receipt has no contract address")
        return address

    def transact(self, function, gas_limit: Optional[int] = None):
        """Send a state-changing call, e.g. contract.functions.transfer(to, amount)"""
        tx = function.build_transaction(self._tx_params(gas_limit))
        return self._send(tx)
