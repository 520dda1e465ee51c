#!/usr/bin/env python3
"""
Nort Token deployment

Deploys NortToken and NortPrivateSale, funds the sale with the token supply
and sets the per-contributor cap. Each step runs once, in order; the first
failure stops the run and the process exits with status 1.
"""

import sys
import json
import math
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .artifacts import ContractArtifact, compiler_mismatches, load_artifact
from .client import ChainSession
from .config import (
    SALE_GAS_LIMIT,
    TOKEN_GAS_LIMIT,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    DeploymentPlan,
    Settings,
    load_secrets,
    to_token_units,
)
from .errors import (
    ConfigurationError,
    CredentialResolutionError,
    DeploymentError,
    DeployScriptError,
    StepResult,
    TransferError,
)
from .networks import COMPILER, get_network

logger = logging.getLogger(__name__)

TOKEN_CONTRACT = "NortToken"
SALE_CONTRACT = "NortPrivateSale"

STEPS = ("resolve_signer", "deploy_token", "schedule", "deploy_sale", "fund_sale", "set_cap")

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_time_in_seconds(minutes: int = 1, now: Optional[float] = None) -> int:
    """
    Seconds since epoch, `minutes` from now, rounded to the nearest second

    Args:
        minutes: Offset from now in minutes
        now: Reference epoch time in seconds; current UTC time when omitted
    """
    if now is None:
        now = datetime.now(timezone.utc).timestamp()
    return math.floor(now + minutes * 60 + 0.5)


@dataclass
class DeploymentOutcome:
    results: List[StepResult] = field(default_factory=list)
    deployer: Optional[str] = None
    token_address: Optional[str] = None
    sale_address: Optional[str] = None
    opening_time: Optional[int] = None
    closing_time: Optional[int] = None

    @property
    def ok(self) -> bool:
        return len(self.results) == len(STEPS) and all(r.ok for r in self.results)

    @property
    def failure(self) -> Optional[StepResult]:
        return next((r for r in self.results if not r.ok), None)


class DeploymentSequencer:
    """Runs the deployment steps against one chain session"""

    def __init__(self, session: ChainSession, plan: DeploymentPlan, secrets: Dict[str, Any],
                 token_artifact: ContractArtifact, sale_artifact: ContractArtifact,
                 clock: Callable[[], float] = time.time):
        self.session = session
        self.plan = plan
        self.secrets = secrets
        self.token_artifact = token_artifact
        self.sale_artifact = sale_artifact
        self.clock = clock
        self.state = "not-started"
        self.outcome = DeploymentOutcome()

    def _attempt(self, step: str, error_cls, action: Callable[[], Any]) -> StepResult:
        self.state = step
        try:
            return StepResult.success(step, action())
        except error_cls as e:
            return StepResult.failure(step, e)
        except Exception as e:
            error = error_cls(f"{step} failed: {e}")
            error.__cause__ = e
            return StepResult.failure(step, error)

    def resolve_signer(self) -> StepResult:
        result = self._attempt("resolve_signer", CredentialResolutionError,
                               lambda: self.session.resolve_signer(self.secrets))
        if result.ok:
            self.outcome.deployer = result.value
            logger.info(f"Deploying the contracts with the account: {result.value}")
        return result

    def deploy_token(self) -> StepResult:
        logger.info("Deploying Nort Token...")
        result = self._attempt("deploy_token", DeploymentError, lambda: self.session.deploy(
            self.token_artifact, TOKEN_NAME, TOKEN_SYMBOL, gas_limit=TOKEN_GAS_LIMIT))
        if result.ok:
            self.outcome.token_address = result.value
            logger.info(f"Nort token deployed to: {result.value}")
        return result

    def schedule(self) -> StepResult:
        """Opening and closing times, both taken from a single reading of the clock"""
        def compute() -> Tuple[int, int]:
            now = self.clock()
            return (get_time_in_seconds(self.plan.opening_offset_minutes, now),
                    get_time_in_seconds(self.plan.closing_offset_minutes, now))

        result = self._attempt("schedule", DeploymentError, compute)
        if result.ok:
            self.outcome.opening_time, self.outcome.closing_time = result.value
            logger.info(f"Sale opens at {self.outcome.opening_time}, closes at {self.outcome.closing_time}")
        return result

    def deploy_sale(self) -> StepResult:
        plan = self.plan
        logger.info("Deploying Nort Private Sale...")
        result = self._attempt("deploy_sale", DeploymentError, lambda: self.session.deploy(
            self.sale_artifact,
            plan.initial_rate,
            plan.final_rate,
            plan.beneficiary_address,
            self.outcome.token_address,
            to_token_units("pre_sale_cap", plan.pre_sale_cap),
            self.outcome.opening_time,
            self.outcome.closing_time,
            gas_limit=SALE_GAS_LIMIT,
        ))
        if result.ok:
            self.outcome.sale_address = result.value
            logger.info(f"Crowd sale contract deployed to: {result.value}")
        return result

    def fund_sale(self) -> StepResult:
        def transfer():
            amount = to_token_units("total_supply", self.plan.total_supply)
            token = self.session.contract_at(self.token_artifact, self.outcome.token_address)
            return self.session.transact(token.functions.transfer(self.outcome.sale_address, amount))

        result = self._attempt("fund_sale", TransferError, transfer)
        if result.ok:
            logger.info(f"Transferred {self.plan.total_supply} NT to {self.outcome.sale_address}")
        return result

    def set_cap(self) -> StepResult:
        def configure():
            cap = to_token_units("individual_cap", self.plan.individual_cap)
            sale = self.session.contract_at(self.sale_artifact, self.outcome.sale_address)
            return self.session.transact(sale.functions.setCap(cap))

        result = self._attempt("set_cap", ConfigurationError, configure)
        if result.ok:
            logger.info(f"Individual contribution cap set to {self.plan.individual_cap}")
        return result

    def run(self) -> DeploymentOutcome:
        """Execute every step in order, stopping at the first failure"""
        for step in STEPS:
            result = getattr(self, step)()
            self.outcome.results.append(result)
            if not result.ok:
                self.state = "failed"
                return self.outcome
        self.state = "done"
        return self.outcome


def write_deployment_record(path: str, network: str, chain_id: int, outcome: DeploymentOutcome):
    """Save deployed addresses in the deployment.json layout the off-chain tools read"""
    record = {
        'network': network,
        'chainId': chain_id,
        'contracts': {
            'token': outcome.token_address,
            'privateSale': outcome.sale_address,
        },
        'roles': {
            'deployer': outcome.deployer,
        },
        'openingTime': outcome.opening_time,
        'closingTime': outcome.closing_time,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }
    with open(path, 'w') as f:
        json.dump(record, f, indent=2)
    logger.info(f"Deployment record written to {path}")


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler()
        ]
    )


def run(settings: Settings, connect: Callable[..., ChainSession] = ChainSession.connect) -> int:
    """Load configuration, deploy, and return the process exit status"""
    try:
        profile = get_network(settings.network)
        logger.info(f"Using network {profile.name} (chain id {profile.chain_id})")

        secrets = load_secrets(settings.secrets_file)
        plan = DeploymentPlan.from_secrets(secrets)

        token_artifact = load_artifact(settings.artifacts_dir, TOKEN_CONTRACT)
        sale_artifact = load_artifact(settings.artifacts_dir, SALE_CONTRACT)
        for name in (TOKEN_CONTRACT, SALE_CONTRACT):
            for problem in compiler_mismatches(settings.artifacts_dir, name, COMPILER):
                logger.warning(f"{name} was not built with the expected compiler settings: {problem}")

        session = connect(profile, receipt_timeout=settings.receipt_timeout)
        sequencer = DeploymentSequencer(session, plan, secrets, token_artifact, sale_artifact)
        outcome = sequencer.run()

        if not outcome.ok:
            failed = outcome.failure
            logger.error(f"Step {failed.step} failed: {failed.error}; inspect on-chain state before re-running",
                         exc_info=failed.error)
            return 1

        write_deployment_record(settings.deployment_record, profile.name, profile.chain_id, outcome)
        return 0

    except DeployScriptError as e:
        logger.error(f"Deployment aborted: {e}", exc_info=True)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


def main():
    try:
        settings = Settings.from_env()
        configure_logging(settings)
    except Exception as e:
        # Console-only logging when the configured setup itself failed
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.exception(f"Could not set up deployment: {e}")
        sys.exit(1)
    sys.exit(run(settings))


if __name__ == "__main__":
    main()
