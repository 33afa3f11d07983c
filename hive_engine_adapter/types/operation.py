"""
Unsigned operation envelope definitions

Envelopes are built once and never mutated; ownership passes to the
external signer, which broadcasts them.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Union


class AuthorityTier(Enum):
    """Key authority the signer must use"""
    ACTIVE = "active"
    POSTING = "posting"


class Contract(Enum):
    TOKENS = "tokens"
    MARKET = "market"
    MARKETPOOLS = "marketpools"


class ContractAction(Enum):
    # Token actions
    TRANSFER = "transfer"
    STAKE = "stake"
    UNSTAKE = "unstake"
    CANCEL_UNSTAKE = "cancelUnstake"
    DELEGATE = "delegate"
    UNDELEGATE = "undelegate"

    # Market actions
    BUY = "buy"
    SELL = "sell"
    CANCEL = "cancel"


def _freeze(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(payload))


@dataclass(frozen=True)
class OperationEnvelope:
    """
    Custody-agnostic sidechain operation

    Attributes:
        contract_name: Sidechain contract (tokens, market)
        contract_action: Contract action
        contract_payload: Read-only action parameters
        signer: Account that must authorize the operation
        authority: Key tier required from the signer
        contract_id: custom_json id the sidechain listens on
    """
    contract_name: Contract
    contract_action: ContractAction
    contract_payload: Mapping[str, Any]
    signer: str
    authority: AuthorityTier = AuthorityTier.ACTIVE
    contract_id: str = "ssc-mainnet-hive"

    def __post_init__(self):
        if not isinstance(self.contract_payload, MappingProxyType):
            object.__setattr__(self, "contract_payload", _freeze(self.contract_payload))

    @property
    def payload_dict(self) -> Dict[str, Any]:
        return {
            "contractName": self.contract_name.value,
            "contractAction": self.contract_action.value,
            "contractPayload": dict(self.contract_payload),
        }

    @property
    def payload_json(self) -> str:
        return json.dumps(self.payload_dict, separators=(",", ":"))

    @property
    def required_active_auths(self) -> List[str]:
        return [self.signer] if self.authority == AuthorityTier.ACTIVE else []

    @property
    def required_limited_auths(self) -> List[str]:
        return [self.signer] if self.authority == AuthorityTier.POSTING else []

    def to_signer_payload(self) -> Dict[str, Any]:
        """Outbound shape for the external wallet/signing service"""
        return {
            "requiredActiveAuths": self.required_active_auths,
            "requiredLimitedAuths": self.required_limited_auths,
            "payload": self.payload_json,
        }

    def to_custom_json(self) -> Dict[str, Any]:
        """Hive `custom_json` operation body"""
        return {
            "id": self.contract_id,
            "required_auths": self.required_active_auths,
            "required_posting_auths": self.required_limited_auths,
            "json": self.payload_json,
        }

    def to_operation(self) -> List[Any]:
        """[op_name, op_body] tuple form used by Hive wallets"""
        return ["custom_json", self.to_custom_json()]


@dataclass(frozen=True)
class NativeTransfer:
    """
    Host-chain (HIVE) transfer leg

    amount is kept as Decimal; asset_amount renders the "1.000 HIVE" wire form.
    """
    from_account: str
    to_account: str
    amount: Decimal
    asset: str = "HIVE"
    memo: str = ""
    precision: int = 3

    @property
    def asset_amount(self) -> str:
        return f"{self.amount:.{self.precision}f} {self.asset}"

    def to_operation(self) -> List[Any]:
        return [
            "transfer",
            {
                "from": self.from_account,
                "to": self.to_account,
                "amount": self.asset_amount,
                "memo": self.memo,
            },
        ]


SwapLeg = Union[NativeTransfer, OperationEnvelope]


@dataclass(frozen=True)
class SwapPlan:
    """Ordered swap legs; must be broadcast in order"""
    legs: tuple = field(default_factory=tuple)

    def to_operations(self) -> List[List[Any]]:
        return [leg.to_operation() for leg in self.legs]

    def __len__(self) -> int:
        return len(self.legs)

    def __iter__(self):
        return iter(self.legs)
