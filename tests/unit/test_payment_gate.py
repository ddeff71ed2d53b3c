"""Unit tests for riskgate.payments.gate.PaymentGate.

Covers challenge issuance, entitlement (global and per-resource scope),
verify/settle failures and the settle-exactly-once guarantee under
concurrency.
"""

from __future__ import annotations

import asyncio
import dataclasses

import httpx
import pytest
from helpers import PAY_TO, FakeFacilitator

from riskgate.config import PaymentConfig
from riskgate.errors import ConfigError
from riskgate.payments.gate import PaymentGate
from riskgate.store.memory_backend import InMemoryLedgerStore

RESOURCE = "http://localhost:3000/api/risk/risk-analysis"
OTHER_RESOURCE = "http://localhost:3000/api/divergence/divergence"


def _gate(facilitator=None, store=None, **config_overrides) -> PaymentGate:
    config = dataclasses.replace(PaymentConfig(pay_to=PAY_TO), **config_overrides)
    return PaymentGate(config, store or InMemoryLedgerStore(), facilitator or FakeFacilitator())


def _requirements(resource: str = RESOURCE, **overrides) -> dict:
    """Requirements as a 402 challenge advertises them under the default config."""
    defaults = PaymentConfig(pay_to=PAY_TO)
    requirements = {
        "scheme": "exact",
        "network": defaults.network,
        "payTo": PAY_TO,
        "asset": defaults.asset,
        "maxAmountRequired": defaults.price_base_units,
        "resource": resource,
    }
    requirements.update(overrides)
    return requirements


class TestChallenge:
    def test_fresh_id_every_time(self) -> None:
        gate = _gate()
        ids = {gate.issue_challenge(RESOURCE).payment_id for _ in range(100)}
        assert len(ids) == 100
        assert all(pid.startswith("pay_") for pid in ids)

    def test_challenge_body_shape(self) -> None:
        challenge = _gate().issue_challenge(RESOURCE, "Risk analysis")
        body = challenge.to_body()
        assert body["x402Version"] == 1
        assert body["error"] == "payment_required"
        assert body["paymentId"] == challenge.payment_id
        (accepts,) = body["accepts"]
        assert accepts["scheme"] == "exact"
        assert accepts["payTo"] == PAY_TO
        assert accepts["maxAmountRequired"] == "1000000"
        assert accepts["resource"] == RESOURCE
        assert accepts["description"] == "Risk analysis"
        assert accepts["extra"] == {"paymentId": challenge.payment_id}

    def test_missing_pay_to_is_a_config_error(self) -> None:
        with pytest.raises(ConfigError):
            PaymentGate(PaymentConfig(pay_to=""), InMemoryLedgerStore(), FakeFacilitator())


class TestSettle:
    async def test_success_entitles(self) -> None:
        gate = _gate()
        assert await gate.check_entitlement("pay_x") is False
        result = await gate.settle("pay_x", "header", _requirements())
        assert result.ok and result.tx_hash == "0xsettled"
        assert await gate.check_entitlement("pay_x") is True

    async def test_verify_rejected(self) -> None:
        facilitator = FakeFacilitator(valid=False)
        gate = _gate(facilitator)
        result = await gate.settle("pay_x", "header", _requirements())
        assert not result.ok
        assert result.error == "verify_failed"
        assert result.message == "invalid signature"
        assert facilitator.settle_calls == 0
        assert await gate.check_entitlement("pay_x") is False

    async def test_verify_transport_error(self) -> None:
        gate = _gate(FakeFacilitator(raise_on_verify=httpx.ConnectError("refused")))
        result = await gate.settle("pay_x", "header", _requirements())
        assert result.error == "verify_failed"

    async def test_settle_rejected_is_retryable(self) -> None:
        facilitator = FakeFacilitator(settles=False)
        gate = _gate(facilitator)
        first = await gate.settle("pay_x", "header", _requirements())
        assert first.error == "settle_failed"
        assert await gate.check_entitlement("pay_x") is False

        facilitator.settles = True
        second = await gate.settle("pay_x", "header", _requirements())
        assert second.ok

    async def test_settled_id_short_circuits(self) -> None:
        facilitator = FakeFacilitator()
        gate = _gate(facilitator)
        await gate.settle("pay_x", "header", _requirements())
        again = await gate.settle("pay_x", "header", _requirements())
        assert again.ok and again.already_settled
        assert again.tx_hash == "0xsettled"
        assert facilitator.settle_calls == 1

    async def test_concurrent_settles_call_facilitator_once(self) -> None:
        facilitator = FakeFacilitator(delay=0.05)
        gate = _gate(facilitator)
        results = await asyncio.gather(
            *(gate.settle("pay_race", "header", _requirements()) for _ in range(10))
        )
        assert facilitator.settle_calls == 1
        assert {r.tx_hash for r in results} == {"0xsettled"}
        assert all(r.ok for r in results)
        assert sum(not r.already_settled for r in results) == 1

    async def test_entitlement_survives_new_gate_on_same_store(self) -> None:
        store = InMemoryLedgerStore()
        await _gate(store=store).settle("pay_x", "header", _requirements())
        assert await _gate(store=store).check_entitlement("pay_x") is True


class TestRequirementsMatchServerTerms:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"payTo": "0x90F79bf6EB2c4f870365E785982E1f101E93b906"},
            {"maxAmountRequired": "1"},
            {"maxAmountRequired": "lots"},
            {"asset": "0x0000000000000000000000000000000000000001"},
            {"network": "cronos"},
            {"scheme": "upto"},
            {"extra": {"paymentId": "pay_someone_else"}},
        ],
    )
    async def test_foreign_terms_never_reach_the_facilitator(self, overrides: dict) -> None:
        facilitator = FakeFacilitator()
        gate = _gate(facilitator)
        result = await gate.settle("pay_x", "header", _requirements(**overrides))
        assert result.ok is False
        assert result.error == "verify_failed"
        assert facilitator.verify_calls == 0
        assert facilitator.settle_calls == 0
        assert await gate.check_entitlement("pay_x") is False

    async def test_challenge_requirements_are_accepted(self) -> None:
        gate = _gate()
        challenge = gate.issue_challenge(RESOURCE)
        result = await gate.settle(challenge.payment_id, "header", challenge.to_requirements())
        assert result.ok is True

    async def test_payee_case_is_ignored(self) -> None:
        result = await _gate().settle("pay_x", "header", _requirements(payTo=PAY_TO.lower()))
        assert result.ok is True


class TestEntitlementScope:
    async def test_global_scope_unlocks_every_resource(self) -> None:
        gate = _gate()
        await gate.settle("pay_x", "header", _requirements(RESOURCE))
        assert await gate.check_entitlement("pay_x", OTHER_RESOURCE) is True

    async def test_resource_scope_is_bound_to_resource(self) -> None:
        gate = _gate(entitlement_scope="resource")
        await gate.settle("pay_x", "header", _requirements(RESOURCE))
        assert await gate.check_entitlement("pay_x", RESOURCE) is True
        assert await gate.check_entitlement("pay_x", OTHER_RESOURCE) is False

    @pytest.mark.parametrize("payment_id", [None, "", "   "])
    async def test_blank_ids_are_never_entitled(self, payment_id) -> None:
        assert await _gate().check_entitlement(payment_id) is False
