"""
Secrets and deployment plan loading

Values come from secrets.json; environment variables (optionally loaded from
a .env file) with the same key names take precedence.
"""

import os
import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from web3 import Web3

from .errors import PlanValidationError, SecretsError

logger = logging.getLogger(__name__)

SECRET_KEYS = (
    "mnemonic",
    "mnemonicTest",
    "walletAddressMain",
    "maxPreSaleContribution",
    "maxPreSaleIndividualContribution",
    "preSaleInitialRate",
    "preSaleFinalRate",
)

# Keys the plan cannot be built without; mnemonics are checked per network
PLAN_KEYS = SECRET_KEYS[2:]

TOKEN_NAME = "Nort Token"
TOKEN_SYMBOL = "NT"
TOKEN_GAS_LIMIT = 4_000_000
SALE_GAS_LIMIT = 3_000_000

DEFAULT_TOTAL_SUPPLY = Decimal("40000000")
DEFAULT_OPENING_OFFSET_MINUTES = 60
DEFAULT_CLOSING_OFFSET_MINUTES = 525600

MAX_UINT256 = 2**256 - 1
MONETARY_FIELDS = ("total_supply", "pre_sale_cap", "individual_cap")


@dataclass(frozen=True)
class Settings:
    """Process-level settings read from the environment"""
    network: Optional[str]
    secrets_file: str
    artifacts_dir: str
    deployment_record: str
    log_file: str
    log_level: str
    receipt_timeout: float

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            network=os.getenv("DEPLOY_NETWORK") or None,
            secrets_file=os.getenv("SECRETS_FILE", "secrets.json"),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", "artifacts"),
            deployment_record=os.getenv("DEPLOYMENT_RECORD", "deployment.json"),
            log_file=os.getenv("LOG_FILE", "deployment.log"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            receipt_timeout=float(os.getenv("RECEIPT_TIMEOUT", "120")),
        )


def load_secrets(path: str, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Read secrets.json and overlay matching environment variables

    A missing file is tolerated when the environment supplies every value.
    """
    environ = os.environ if environ is None else environ
    secrets: Dict[str, Any] = {}

    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                secrets = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SecretsError(f"Could not read secrets from {path}: {e}") from e
        if not isinstance(secrets, dict):
            raise SecretsError(f"{path} must contain a JSON object")
    else:
        logger.warning(f"Secrets file {path} not found, relying on environment")

    for key in SECRET_KEYS:
        if environ.get(key):
            secrets[key] = environ[key]

    missing = [key for key in PLAN_KEYS if secrets.get(key) in (None, "")]
    if missing:
        raise SecretsError(f"Missing required secrets: {', '.join(missing)}")

    return secrets


def _to_decimal(field: str, value: Union[str, int, float, Decimal]) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise PlanValidationError(f"{field} is not a number: {value!r}") from e
    if not amount.is_finite():
        raise PlanValidationError(f"{field} is not a finite number: {value!r}")
    return amount


def _to_int(field: str, value: Any) -> int:
    amount = _to_decimal(field, value)
    if amount != amount.to_integral_value():
        raise PlanValidationError(f"{field} must be a whole number: {value!r}")
    return int(amount)


def to_token_units(field: str, amount: Union[int, Decimal]) -> int:
    """
    Convert a whole-token amount to its 18-decimal on-chain integer

    Raises PlanValidationError when the amount has more than 18 decimals or
    does not fit in a uint256.
    """
    with localcontext() as ctx:
        ctx.prec = 200
        units = Decimal(str(amount)).scaleb(18)
        whole = units == units.to_integral_value()
    if not whole:
        raise PlanValidationError(f"{field} has more than 18 decimals: {amount}")
    if not 0 <= units <= MAX_UINT256:
        raise PlanValidationError(f"{field} does not fit in a uint256: {amount}")
    return int(units)


@dataclass(frozen=True)
class DeploymentPlan:
    """Constructor and wiring parameters for the token and its private sale"""
    initial_rate: int
    final_rate: int
    beneficiary_address: str
    total_supply: Decimal
    pre_sale_cap: Decimal
    individual_cap: Decimal
    opening_offset_minutes: int = DEFAULT_OPENING_OFFSET_MINUTES
    closing_offset_minutes: int = DEFAULT_CLOSING_OFFSET_MINUTES

    def __post_init__(self):
        if self.opening_offset_minutes <= 0:
            raise PlanValidationError("opening offset must be positive")
        if self.closing_offset_minutes <= self.opening_offset_minutes:
            raise PlanValidationError("closing offset must be later than opening offset")
        for field in ("initial_rate", "final_rate", "total_supply", "pre_sale_cap", "individual_cap"):
            if getattr(self, field) < 0:
                raise PlanValidationError(f"{field} must not be negative")
        for field in MONETARY_FIELDS:
            to_token_units(field, getattr(self, field))
        if not Web3.is_address(self.beneficiary_address):
            raise PlanValidationError(f"Invalid beneficiary address: {self.beneficiary_address!r}")

    @classmethod
    def from_secrets(cls, secrets: Dict[str, Any], total_supply=DEFAULT_TOTAL_SUPPLY) -> "DeploymentPlan":
        """Assemble the plan from loaded secrets"""
        address = str(secrets["walletAddressMain"])
        if Web3.is_address(address):
            address = Web3.to_checksum_address(address)
        return cls(
            initial_rate=_to_int("preSaleInitialRate", secrets["preSaleInitialRate"]),
            final_rate=_to_int("preSaleFinalRate", secrets["preSaleFinalRate"]),
            beneficiary_address=address,
            total_supply=_to_decimal("totalSupply", total_supply),
            pre_sale_cap=_to_decimal("maxPreSaleContribution", secrets["maxPreSaleContribution"]),
            individual_cap=_to_decimal("maxPreSaleIndividualContribution",
                                       secrets["maxPreSaleIndividualContribution"]),
        )
