"""
Shared fixtures: a fresh in-memory database per test and in-memory fakes for
every external contract, registered in the global collaborator registry.
"""

import pytest
from tortoise import Tortoise, connections

from launchpad.chain.registry import collaborator_registry
from launchpad.core.config import MODEL_MODULES
from launchpad.models.tier import ExcessPolicy, LedgerKind
from launchpad.services.sale_registry import sale_registry
from launchpad.services.tier_ledger import tier_ledger

from support import (
    ADMIN,
    DENOM,
    MAX_PAYMENTS,
    SALE_LOCKS,
    THRESHOLDS,
    TIER_LOCKS,
    VALIDATOR,
    Fakes,
    make_ctx,
)


@pytest.fixture(autouse=True)
async def db():
    await Tortoise.init(
        db_url="sqlite://:memory:",
        modules={"models": MODEL_MODULES},
    )
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


@pytest.fixture(autouse=True)
def fakes():
    registered = Fakes()
    collaborator_registry.clear()
    collaborator_registry.register_oracle(registered.oracle)
    collaborator_registry.register_staking(registered.staking)
    collaborator_registry.register_nft(registered.nft)
    collaborator_registry.register_token(registered.sale_token)
    collaborator_registry.register_token(registered.pay_token)
    yield registered
    collaborator_registry.clear()


@pytest.fixture
async def delegated_ledger():
    return await tier_ledger.initialize(
        make_ctx(ADMIN),
        thresholds=THRESHOLDS,
        lock_periods=TIER_LOCKS,
        kind=LedgerKind.DELEGATED,
        validator=VALIDATOR,
        collateral_denom=DENOM,
        unbonding_delay=100,
    )


@pytest.fixture
async def flat_ledger():
    return await tier_ledger.initialize(
        make_ctx(ADMIN),
        thresholds=THRESHOLDS,
        lock_periods=TIER_LOCKS,
        kind=LedgerKind.FLAT,
        excess_policy=ExcessPolicy.REFUND,
        collateral_denom=DENOM,
        unbonding_delay=100,
    )


@pytest.fixture
async def registry_config(delegated_ledger):
    return await sale_registry.initialize(
        make_ctx(ADMIN),
        max_payments=MAX_PAYMENTS,
        lock_periods=SALE_LOCKS,
        native_denom=DENOM,
    )
