"""Proof of Risk: sign, anchor and verify ``(contract, score, timestamp)``.

The signed message is the canonical JSON

    {"contract": "<lowercase address>", "score": <int>, "signer": "<address>", "timestamp": <int>}

(sorted keys, compact separators) signed with EIP-191 ``personal_sign``.
ECDSA signing in eth_account is deterministic (RFC 6979), so the same
``(contract, score, timestamp)`` always yields the same signature and hash.

Without a signer key the service emits placeholder proofs,
``placeholder:0x<hex of the canonical JSON>``, which are never reported as
verified.
"""

from __future__ import annotations

import json
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from riskgate.errors import ProofVerificationUnavailable
from riskgate.models.risk import Proof
from riskgate.proof.ledger import InMemoryRiskLedger, RiskLedger
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)

PLACEHOLDER_PREFIX = "placeholder:"


def canonical_message(contract: str, score: int, timestamp: int, signer: Optional[str]) -> str:
    payload = {
        "contract": contract.lower(),
        "score": int(score),
        "signer": signer,
        "timestamp": int(timestamp),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class ProofService:
    def __init__(self, signer_key: Optional[str] = None, ledger: Optional[RiskLedger] = None) -> None:
        self._account = Account.from_key(signer_key) if signer_key else None
        self._ledger: RiskLedger = ledger if ledger is not None else InMemoryRiskLedger(
            oracle_address=self.signer_address or ""
        )
        if self._account is None:
            logger.warning("proof_signer_missing", detail="placeholder proofs will be issued")

    @property
    def signer_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def ledger(self) -> RiskLedger:
        return self._ledger

    def sign(self, contract: str, score: int, timestamp: int) -> Proof:
        """Produce a Proof. Pure apart from the key; never touches the network."""
        message = canonical_message(contract, score, timestamp, self.signer_address)
        if self._account is None:
            return Proof(
                contract=contract,
                score=score,
                timestamp=timestamp,
                signature=f"{PLACEHOLDER_PREFIX}0x{message.encode().hex()}",
                signer_address=None,
                kind="placeholder",
            )
        signed = self._account.sign_message(encode_defunct(text=message))
        return Proof(
            contract=contract,
            score=score,
            timestamp=timestamp,
            signature="0x" + bytes(signed.signature).hex(),
            signer_address=self._account.address,
            kind="signed",
        )

    async def anchor(self, proof: Proof) -> Optional[str]:
        """Store ``(contract, score, proof_hash, timestamp)`` on the risk ledger.

        Failures are logged and swallowed: an unanchored proof is still a
        valid response, it just cannot be verified later.
        """
        if proof.is_placeholder:
            return None
        try:
            tx_hash = await self._ledger.store_result(
                proof.contract, proof.score, proof.proof_hash, proof.timestamp
            )
        except Exception as exc:
            logger.error(
                "proof_anchor_failed",
                contract=proof.contract,
                timestamp=proof.timestamp,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None
        logger.info("proof_anchored", contract=proof.contract, timestamp=proof.timestamp, tx_hash=tx_hash)
        return tx_hash

    async def verify(self, contract: str, timestamp: int, proof_hash: str) -> bool:
        """True iff the ledger holds a record for ``(contract, timestamp)`` whose
        hash matches both ``proof_hash`` and a fresh signature over the
        record's score. Any read failure or missing record gives False.
        """
        if self._account is None:
            return False
        try:
            record = await self._ledger.get_result(contract, timestamp)
        except ProofVerificationUnavailable as exc:
            logger.warning("proof_verification_unavailable", contract=contract, error=str(exc))
            return False
        except Exception as exc:
            logger.error(
                "proof_verification_failed",
                contract=contract,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return False
        if record is None:
            return False
        if record.oracle_address and record.oracle_address.lower() != self._account.address.lower():
            return False

        expected = self.sign(contract, record.score, timestamp).proof_hash.lower()
        supplied = proof_hash.lower()
        return expected == supplied and expected == record.proof_hash.lower()
