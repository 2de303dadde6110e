"""Command line entry point: ``symmetric-deploy {deploy,verify,inspect}``.

Secrets and endpoints come from the environment (a ``.env`` file is read
if present):

- ``<NETWORK>_RPC_URL`` or the variable named by the network config
- ``PRIVATE_KEY`` for the deployer
- ``<NETWORK>_ETHERSCAN_API_KEY``, falling back to ``ETHERSCAN_API_KEY``

Exit code is 0 on success and 1 when a required step failed, a fatal
condition stopped the run or a core contract failed verification.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from eth_account import Account
from web3 import HTTPProvider, Web3

from .artifacts import HardhatArtifacts
from .config import NetworkConfig, load_network_config
from .constants import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TASK_DELAY
from .exceptions import DeploymentError, RequiredStepFailedError
from .explorer import EtherscanExplorer, Explorer
from .factory import ContractFactory, Web3ContractFactory
from .ledger import DeploymentLedger, LedgerLock
from .paths import get_ledger_path
from .phases import build_phases
from .pipeline import DeploymentPipeline, MismatchPolicy, summarize
from .predictor import AddressPredictor
from .types import PipelineResult, VerificationReport
from .verification import VerificationEngine

logger = logging.getLogger(__name__)


def build_factory(
    args: argparse.Namespace, config: NetworkConfig
) -> Tuple[ContractFactory, AddressPredictor]:
    """Connect to the network and return the factory and a fresh address predictor."""
    rpc_url = config.rpc_url()
    if not rpc_url:
        raise DeploymentError(
            f"RPC URL required: set ${config.rpc_env or args.network.upper() + '_RPC_URL'}"
        )
    private_key = os.environ.get("PRIVATE_KEY")
    if not private_key:
        raise DeploymentError("Deployer key required: set $PRIVATE_KEY")

    web3 = Web3(HTTPProvider(rpc_url))
    account = Account.from_key(private_key)
    factory = Web3ContractFactory(web3, account, HardhatArtifacts(args.artifacts_dir))
    # Read the nonce last, right before the pipeline starts sending
    predictor = AddressPredictor.from_web3(web3, account.address)
    return factory, predictor


def build_explorer(args: argparse.Namespace, config: NetworkConfig) -> Explorer:
    """Etherscan-compatible explorer of the network."""
    if not config.explorer_api_url:
        raise DeploymentError(f"No explorer API URL configured for '{args.network}'")
    api_key = os.environ.get(f"{args.network.upper()}_ETHERSCAN_API_KEY") or os.environ.get(
        "ETHERSCAN_API_KEY", ""
    )
    return EtherscanExplorer(config.explorer_api_url, api_key, HardhatArtifacts(args.artifacts_dir))


def print_deploy_summary(result: PipelineResult, config: NetworkConfig) -> None:
    print(f"\nDeployment on {result.network} finished in {result.elapsed:.2f}s")
    print("=" * 70)
    for outcome in result.outcomes:
        detail = outcome.address or outcome.error or ""
        print(f"  [{outcome.status.value:>8}] {outcome.phase:<22} {outcome.name:<28} {detail}")
    for mismatch in result.mismatches:
        print(
            f"\n  WARNING: {mismatch.name} predicted at {mismatch.predicted} "
            f"but deployed at {mismatch.actual}"
        )
    print(f"\n  Deployed: {len(result.deployed)}  Skipped: {len(result.skipped)}  Failed: {len(result.failed)}")
    print(f"  Network: {config.name or config.network} (Chain ID: {config.chain_id})")
    if config.explorer:
        print(f"  Explorer: {config.explorer}")


def print_verification_summary(report: VerificationReport, network: str) -> None:
    print(f"\nVerification summary for {network}")
    print("=" * 70)
    print(f"  Successfully verified: {len(report.verified)}")
    print(f"  Already verified:      {len(report.already_verified)}")
    print(f"  Failed verification:   {len(report.failed)}")
    print(f"  Total contracts:       {len(report.outcomes)}")
    for outcome in report.failed:
        kind = "non-critical stub" if outcome.name in report.non_critical else "critical"
        print(f"\n  {outcome.name} ({kind}) at {outcome.address}")
        if outcome.contract_path:
            print(f"    Contract path: {outcome.contract_path}")
        print(f"    Last error: {outcome.message}")
    if report.failed and report.succeeded:
        print(f"\n  All core contracts verified, the {len(report.failed)} failures are stub contracts.")


def cmd_deploy(args: argparse.Namespace) -> int:
    config = load_network_config(args.network, args.config_dir)

    # Read the ledger only once the lock is held, another run may have just written it
    with LedgerLock(get_ledger_path(args.network, args.deployments_dir)):
        ledger = DeploymentLedger.load(args.network, args.deployments_dir)
        factory, predictor = build_factory(args, config)
        pipeline = DeploymentPipeline(
            factory,
            ledger,
            predictor,
            force=args.force or (),
            mismatch_policy=MismatchPolicy.ABORT if args.strict_prediction else MismatchPolicy.WARN,
            config=config,
        )
        try:
            result = pipeline.run(build_phases(), only=args.phase or None)
        except RequiredStepFailedError as e:
            logger.error("Deployment aborted: %s", e)
            if e.result is not None:
                print_deploy_summary(e.result, config)
            return 1

    if args.json:
        print(json.dumps(summarize(result), indent=2))
    else:
        print_deploy_summary(result, config)
        print(f"  Ledger saved to: {ledger.path}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    config = load_network_config(args.network, args.config_dir)
    ledger = DeploymentLedger.load(args.network, args.deployments_dir)
    if not len(ledger):
        print(f"No contracts found in {ledger.path}")
        return 0

    engine = VerificationEngine(
        build_explorer(args, config),
        max_retries=args.max_retries,
        retry_delay=args.retry_delay,
        task_delay=args.task_delay,
        workers=args.workers,
    )
    report = engine.verify_all(ledger)
    print_verification_summary(report, args.network)
    return 0 if report.succeeded else 1


def cmd_inspect(args: argparse.Namespace) -> int:
    ledger = DeploymentLedger.load(args.network, args.deployments_dir)
    config = None
    try:
        config = load_network_config(args.network, args.config_dir)
    except DeploymentError:
        pass

    if args.name:
        record = ledger.require(args.name)
        data = {
            "name": record.name,
            "contract": record.contract_name,
            "address": record.address,
            "constructorArgs": record.constructor_args,
            "txHash": record.transaction_hash,
            "timestamp": record.deployed_at.isoformat() if record.deployed_at else None,
        }
        if config:
            data["url"] = config.address_url(record.address)
        print(json.dumps(data, indent=2))
        return 0

    if args.json:
        print(json.dumps(ledger.to_dict(), indent=2))
        return 0

    print(f"{ledger.network}: {len(ledger)} contracts ({ledger.path})")
    for record in ledger.all():
        url = config.address_url(record.address) if config else None
        print(f"  {record.name:<28} {record.address}" + (f"  {url}" if url else ""))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="symmetric-deploy", description="Deploy, verify and inspect Symmetric V4 contracts"
    )
    parser.add_argument("--deployments-dir", type=Path, default=None, help="Ledger directory (default ./deployments)")
    parser.add_argument("--config-dir", type=Path, default=None, help="Network configs (default ./config/networks)")
    parser.add_argument("--artifacts-dir", type=Path, default=Path("artifacts"), help="Hardhat artifacts directory")
    parser.add_argument("--log-level", default="INFO", help="Python logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Deploy missing contracts")
    deploy.add_argument("--network", required=True)
    deploy.add_argument("--phase", action="append", help="Only run this phase, repeatable")
    deploy.add_argument("--force", action="append", help="Redeploy this contract even if recorded, repeatable")
    deploy.add_argument("--strict-prediction", action="store_true", help="Abort on an address prediction mismatch")
    deploy.add_argument("--json", action="store_true", help="Print the summary as JSON")
    deploy.set_defaults(func=cmd_deploy)

    verify = subparsers.add_parser("verify", help="Verify recorded contracts on the explorer")
    verify.add_argument("--network", required=True)
    verify.add_argument("--max-retries", type=int, default=DEFAULT_MAX_RETRIES)
    verify.add_argument("--retry-delay", type=float, default=DEFAULT_RETRY_DELAY)
    verify.add_argument("--task-delay", type=float, default=DEFAULT_TASK_DELAY)
    verify.add_argument("--workers", type=int, default=1)
    verify.set_defaults(func=cmd_verify)

    inspect = subparsers.add_parser("inspect", help="Show the deployment ledger")
    inspect.add_argument("--network", required=True)
    inspect.add_argument("name", nargs="?", help="Show one contract")
    inspect.add_argument("--json", action="store_true", help="Print the whole ledger document")
    inspect.set_defaults(func=cmd_inspect)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except DeploymentError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
