"""Response shapes returned by the Lighter HTTP API.

Field names match the JSON keys. Integer fields carry the width the API
declares for them and are checked when decoding; missing keys decode to
zero values.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Mapping, Optional, Type, TypeVar

import msgspec

CODE_OK = 200

Int32 = Annotated[int, msgspec.Meta(ge=-(2**31), le=2**31 - 1)]
Int64 = Annotated[int, msgspec.Meta(ge=-(2**63), le=2**63 - 1)]
UInt8 = Annotated[int, msgspec.Meta(ge=0, le=2**8 - 1)]

ModelT = TypeVar("ModelT", bound="ResultCode")


class ResultCode(msgspec.Struct, omit_defaults=True):
    """Envelope carried by every response.

    Encoding omits fields left at their zero value, so an empty ``message``
    is never written.
    """

    code: Int32 = 0
    message: str = ""

    @property
    def is_ok(self) -> bool:
        return self.code == CODE_OK

    @classmethod
    def from_dict(cls: Type[ModelT], payload: Mapping[str, Any]) -> ModelT:
        return msgspec.convert(payload, cls)

    @classmethod
    def from_json(cls: Type[ModelT], raw: str | bytes) -> ModelT:
        return msgspec.json.decode(raw, type=cls)

    def to_dict(self) -> dict[str, Any]:
        return msgspec.to_builtins(self)


class NextNonce(ResultCode):
    nonce: Int64 = 0


class ApiKey(msgspec.Struct):
    """A public key registered for an account."""

    account_index: Int64 = 0
    api_key_index: UInt8 = 0
    nonce: Int64 = 0
    public_key: str = ""


class AccountApiKeys(ResultCode):
    api_keys: List[ApiKey] = []


class TxHash(ResultCode):
    tx_hash: str = ""


class TransferFeeInfo(ResultCode):
    transfer_fee_usdc: Int64 = 0


class MarketDetail(msgspec.Struct):
    """One market from the order book details endpoint."""

    symbol: str = ""
    market_id: UInt8 = 0
    status: str = ""
    size_decimals: Int64 = 0
    price_decimals: Int64 = 0


class OrderBookDetailsResponse(ResultCode):
    order_book_details: List[MarketDetail] = []

    def market(self, symbol: str) -> Optional[MarketDetail]:
        """Return the market with ``symbol``, if listed."""
        for detail in self.order_book_details:
            if detail.symbol == symbol:
                return detail
        return None
