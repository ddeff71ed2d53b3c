"""Request bodies for the HTTP routes.

Field names on the wire are camelCase; the Python attributes are snake_case.
Structural checks live here; address/amount/hex checks go through
``riskgate.utils.validation`` in the route so every malformed input produces
the same ``validation_error`` body.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PayRequest(_CamelModel):
    """Body for POST /api/risk/pay and POST /api/divergence/pay."""

    payment_id: str = Field(alias="paymentId")
    payment_header: str = Field(alias="paymentHeader")
    payment_requirements: dict[str, Any] = Field(alias="paymentRequirements")


class ExecuteRequest(_CamelModel):
    """Body for POST /api/vault/execute. ``value`` is a decimal CRO amount."""

    user_address: str = Field(alias="userAddress")
    target: str
    call_data: str = Field(default="0x", alias="callData")
    value: Optional[Union[str, float, int]] = None


class DepositRequest(_CamelModel):
    """Body for POST /api/vault/deposit.

    ``txHash`` names a mined transfer from ``userAddress`` to the vault. When
    ``amount`` is given it must equal the transferred value.
    """

    user_address: str = Field(alias="userAddress")
    tx_hash: str = Field(alias="txHash")
    amount: Optional[Union[str, float, int]] = None


class WithdrawRequest(_CamelModel):
    user_address: str = Field(alias="userAddress")
    amount: Union[str, float, int]
    recipient: Optional[str] = None
