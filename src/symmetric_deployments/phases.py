"""Symmetric V4 (Balancer V3 architecture) deployment plan.

The Vault and its satellites reference each other:

- VaultAdmin, VaultExtension and ProtocolFeeController take the Vault address
  in their constructors.

- The Vault takes the real VaultExtension and ProtocolFeeController addresses.

The satellites are deployed first against the predicted Vault address. The
pipeline works out the nonce offset from the position of the Vault step.
"""

from typing import List, Optional

from .constants import ROUTER_VERSION
from .types import DeployStep, PipelinePhase

CORE = "core"
ROUTERS = "routers"
POOL_FACTORIES = "pool-factories"
ADDITIONAL_FACTORIES = "additional-factories"
HOOKS = "hooks"


def _pool_factory_step(
    name: str,
    factory_key: str,
    factory_version: str,
    pool_version: str,
    contract: Optional[str] = None,
) -> DeployStep:
    return DeployStep(
        name=name,
        contract=contract,
        args_builder=lambda ctx: [
            ctx.address("Vault"),
            ctx.config.factory_pause_window(factory_key),
            factory_version,
            pool_version,
        ],
    )


def core_phase() -> PipelinePhase:
    """Vault with its admin, extension and protocol fee controller."""
    return PipelinePhase(
        name=CORE,
        steps=[
            DeployStep(
                "VaultAdmin",
                lambda ctx: [
                    ctx.address("Vault"),
                    ctx.config.pause_window_duration,
                    ctx.config.buffer_period_duration,
                    ctx.config.minimum_trade_amount,
                    ctx.config.minimum_wrap_amount,
                ],
            ),
            DeployStep(
                "VaultExtension",
                lambda ctx: [ctx.address("Vault"), ctx.address("VaultAdmin")],
            ),
            DeployStep(
                "ProtocolFeeController",
                lambda ctx: [
                    ctx.address("Vault"),
                    ctx.config.swap_fee_percentage,
                    ctx.config.yield_fee_percentage,
                ],
            ),
            DeployStep(
                "Vault",
                lambda ctx: [
                    ctx.address("VaultExtension"),
                    ctx.deployer,
                    ctx.address("ProtocolFeeController"),
                ],
            ),
        ],
    )


def routers_phase() -> PipelinePhase:
    def router_args(ctx) -> list:
        return [
            ctx.address("Vault"),
            ctx.config.token("WETH"),
            ctx.config.token("PERMIT2"),
            ROUTER_VERSION,
        ]

    return PipelinePhase(
        name=ROUTERS,
        steps=[DeployStep("Router", router_args), DeployStep("BatchRouter", router_args)],
    )


def pool_factories_phase() -> PipelinePhase:
    return PipelinePhase(
        name=POOL_FACTORIES,
        steps=[
            _pool_factory_step(
                "WeightedPoolFactory",
                "weightedPoolFactory",
                "Weighted Pool Factory V3",
                "Weighted Pool V3",
            ),
            _pool_factory_step(
                "StablePoolFactory",
                "stablePoolFactory",
                "Stable Pool Factory V3",
                "Stable Pool V3",
            ),
        ],
    )


def additional_factories_phase() -> PipelinePhase:
    """Factories the subgraph indexes. Nice to have, never blocking."""
    return PipelinePhase(
        name=ADDITIONAL_FACTORIES,
        required=False,
        steps=[
            _pool_factory_step(
                "ReClammPoolFactory", "reClammPoolFactory", "ReClamm Pool Factory", "ReClamm Pool"
            ),
            _pool_factory_step(
                "Gyro2CLPPoolFactory",
                "gyro2CLPPoolFactory",
                "Gyro 2CLP Pool Factory",
                "Gyro 2CLP Pool",
            ),
            _pool_factory_step(
                "GyroECLPPoolFactory",
                "gyroECLPPoolFactory",
                "Gyro ECLP Pool Factory",
                "Gyro ECLP Pool",
            ),
            _pool_factory_step("LBPoolFactory", "lbPoolFactory", "LB Pool Factory", "LB Pool"),
            _pool_factory_step(
                "QuantAMMWeightedPoolFactory",
                "quantAMMWeightedPoolFactory",
                "QuantAMM Weighted Pool Factory",
                "QuantAMM Weighted Pool",
            ),
            # Second instance of the stable factory, recorded under its own name
            _pool_factory_step(
                "StablePoolV2Factory",
                "stablePoolFactory",
                "Stable Pool Factory V3 (V2)",
                "Stable Pool V3 (V2)",
                contract="StablePoolFactory",
            ),
        ],
    )


def hooks_phase() -> PipelinePhase:
    return PipelinePhase(
        name=HOOKS,
        required=False,
        steps=[
            DeployStep("StableSurgeHook", lambda ctx: [ctx.address("Vault")]),
            DeployStep("StableSurgeHookV2", lambda ctx: [ctx.address("Vault")]),
        ],
    )


def build_phases(include_optional: bool = True) -> List[PipelinePhase]:
    """
    All deployment phases, in dependency order.

    Args builders read network parameters from ``ctx.config``, so the pipeline
    must be given a NetworkConfig.

    Args:
        include_optional: Also return the additional factories and hooks

    Returns:
        List of phases: core, routers, pool-factories, additional-factories, hooks
    """
    phases = [core_phase(), routers_phase(), pool_factories_phase()]
    if include_optional:
        phases += [additional_factories_phase(), hooks_phase()]
    return phases
