"""
Compiled contract artifacts

Reads the JSON artifacts the Solidity toolchain writes under
artifacts/contracts/<Name>.sol/<Name>.json and checks the build info they
point at against the expected compiler settings.
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from .errors import ArtifactError
from .networks import COMPILER, CompilerSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractArtifact:
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    path: str


def artifact_path(artifacts_dir: str, contract_name: str) -> str:
    return os.path.join(artifacts_dir, 'contracts', f'{contract_name}.sol', f'{contract_name}.json')


def _read_json(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ArtifactError(f"Artifact not found: {path}. Compile the contracts first.") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ArtifactError(f"Could not read {path}: {e}") from e


def load_artifact(artifacts_dir: str, contract_name: str) -> ContractArtifact:
    """
    Load a contract's ABI and creation bytecode

    Args:
        artifacts_dir: Root artifacts directory
        contract_name: Contract name, e.g. 'NortToken'

    Returns:
        ContractArtifact with a deployable bytecode
    """
    path = artifact_path(artifacts_dir, contract_name)
    data = _read_json(path)

    abi = data.get('abi')
    bytecode = data.get('bytecode')
    if not isinstance(abi, list):
        raise ArtifactError(f"{path} has no ABI")
    if not bytecode or bytecode in ('0x', '0x0'):
        raise ArtifactError(f"{path} has no bytecode; is {contract_name} abstract?")

    logger.debug(f"Loaded artifact {contract_name} from {path}")
    return ContractArtifact(name=contract_name, abi=abi, bytecode=bytecode, path=path)


def compiler_mismatches(artifacts_dir: str, contract_name: str,
                        expected: CompilerSettings = COMPILER) -> List[str]:
    """
    Compare the build info behind an artifact with the expected compiler settings

    Returns a list of human-readable differences; empty when everything
    matches or when no build info is available.
    """
    dbg_path = artifact_path(artifacts_dir, contract_name).replace('.json', '.dbg.json')
    if not os.path.exists(dbg_path):
        return []

    build_info_ref = _read_json(dbg_path).get('buildInfo')
    if not build_info_ref:
        return []
    build_info = _read_json(os.path.normpath(os.path.join(os.path.dirname(dbg_path), build_info_ref)))

    problems = []
    version = build_info.get('solcVersion')
    if version != expected.version:
        problems.append(f"solc {version} (expected {expected.version})")

    optimizer = build_info.get('input', {}).get('settings', {}).get('optimizer', {})
    if bool(optimizer.get('enabled', False)) != expected.optimizer_enabled:
        problems.append(f"optimizer enabled={optimizer.get('enabled', False)} "
                        f"(expected {expected.optimizer_enabled})")
    if expected.optimizer_enabled and optimizer.get('runs') != expected.optimizer_runs:
        problems.append(f"optimizer runs={optimizer.get('runs')} (expected {expected.optimizer_runs})")

    return problems
