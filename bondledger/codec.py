"""
codec.py - JSON encoding of ledger documents, private partitions and payloads

Field names follow the contract wire format (camelCase). Decimals travel as
strings so that "99.5" stays "99.5"; timestamps travel as ISO-8601.

Every decode failure is raised as EncodingError.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
import json

from .core import (
    Answer, Bond, BondSpec, DirectTrade, LedgerDocument, PrivateBondExtension,
    Response, Transaction,
    EncodingError, EMPTY_DOCUMENT,
    to_decimal,
)


# ============================================================================
# PRIMITIVES
# ============================================================================

def _decimal_str(value: Decimal) -> str:
    return format(value, 'f')


def _time_str(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_timestamp(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        # fromisoformat() before 3.11 does not accept a trailing "Z"
        if isinstance(value, str) and value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"{field_name}: invalid timestamp {value!r}") from e


def _require(data: Dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise EncodingError(f"Expected a JSON object for {kind}, got {type(data).__name__}")
    if key not in data:
        raise EncodingError(f"{kind}: missing field {key!r}")
    return data[key]


def _int_field(data: Dict[str, Any], key: str, kind: str) -> int:
    value = _require(data, key, kind)
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(f"{kind}: {key} must be an integer, got {value!r}")
    return value


def _class_tags(data: Dict[str, Any], kind: str) -> tuple:
    """classTags as a tuple of strings. A bare string is a single tag."""
    value = data.get("classTags")
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,) if value else ()
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise EncodingError(f"{kind}: classTags must be a string or a list of strings, got {value!r}")
    return tuple(value)


def _loads(raw, kind: str) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Failed to unmarshal {kind} JSON: {e}") from e


def _dumps(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


# ============================================================================
# RECORDS -> DICTS
# ============================================================================

def bond_to_dict(bond: Bond) -> Dict[str, Any]:
    return {
        "uid": bond.uid,
        "bond": bond.name,
        "cusip": bond.cusip,
        "originalFace": bond.original_face,
        "ownerHash": bond.owner_hash,
        "classTags": list(bond.class_tags),
    }


def response_to_dict(response: Response) -> Dict[str, Any]:
    return {"value": response.value, "timestamp": _time_str(response.timestamp)}


def answer_to_dict(answer: Answer) -> Dict[str, Any]:
    return {
        "sellerIDHash": answer.seller_hash,
        "sellerResponse": response_to_dict(answer.seller_response),
        "buyerResponse": response_to_dict(answer.buyer_response),
    }


def trade_to_dict(trade: DirectTrade) -> Dict[str, Any]:
    return {
        "directTradeID": trade.trade_id,
        "cusip": trade.cusip,
        "originalFace": trade.original_face,
        "bidPrice": _decimal_str(trade.bid_price),
        "bidderHash": trade.bidder_hash,
        "state": trade.state,
        "createdAt": _time_str(trade.created_at),
        # Sorted so the encoded document does not depend on answer order
        "answers": [answer_to_dict(trade.answers[k]) for k in sorted(trade.answers)],
    }


def transaction_to_dict(tx: Transaction) -> Dict[str, Any]:
    return {
        "buyerID": tx.buyer_id,
        "sellerID": tx.seller_id,
        "cusip": tx.cusip,
        "originalFace": tx.original_face,
        "boughtPrice": _decimal_str(tx.bought_price),
        "timestamp": _time_str(tx.timestamp),
        "directTradeID": tx.trade_id,
    }


def private_bond_to_dict(ext: PrivateBondExtension) -> Dict[str, Any]:
    return {"uid": ext.uid, "reservePrice": _decimal_str(ext.reserve_price)}


def document_to_dict(doc: LedgerDocument) -> Dict[str, Any]:
    return {
        "bonds": [bond_to_dict(b) for b in doc.bonds],
        "directTrades": [trade_to_dict(t) for t in doc.trades],
        "transactions": [transaction_to_dict(t) for t in doc.transactions],
    }


# ============================================================================
# DICTS -> RECORDS
# ============================================================================

def bond_from_dict(data: Dict[str, Any]) -> Bond:
    try:
        return Bond(
            uid=_require(data, "uid", "bond"),
            name=data.get("bond", ""),
            cusip=_require(data, "cusip", "bond"),
            original_face=_int_field(data, "originalFace", "bond"),
            owner_hash=data.get("ownerHash", ""),
            class_tags=_class_tags(data, "bond"),
        )
    except ValueError as e:
        raise EncodingError(f"Invalid bond: {e}") from e


def bond_spec_from_dict(data: Dict[str, Any]) -> BondSpec:
    """Decode a create/edit payload. ownerHash in the payload is ignored."""
    cusip = _require(data, "cusip", "bond")
    if not isinstance(cusip, str) or not cusip.strip():
        raise EncodingError("bond: cusip must be a non-empty string")
    uid = data.get("uid") or None
    if uid is not None and not isinstance(uid, str):
        raise EncodingError(f"bond: uid must be a string, got {uid!r}")
    original_face = _int_field(data, "originalFace", "bond")
    if original_face <= 0:
        raise EncodingError(f"bond: originalFace must be positive, got {original_face}")
    return BondSpec(
        name=data.get("bond", ""),
        cusip=cusip,
        original_face=original_face,
        class_tags=_class_tags(data, "bond"),
        uid=uid,
    )


def response_from_dict(data: Optional[Dict[str, Any]]) -> Response:
    if not data:
        return Response()
    return Response(
        value=data.get("value", ""),
        timestamp=parse_timestamp(data.get("timestamp"), "response.timestamp"),
    )


def answer_from_dict(data: Dict[str, Any]) -> Answer:
    return Answer(
        seller_hash=_require(data, "sellerIDHash", "answer"),
        seller_response=response_from_dict(data.get("sellerResponse")),
        buyer_response=response_from_dict(data.get("buyerResponse")),
    )


def trade_from_dict(data: Dict[str, Any]) -> DirectTrade:
    answers = {}
    for raw in data.get("answers") or ():
        answer = answer_from_dict(raw)
        answers[answer.seller_hash] = answer
    try:
        return DirectTrade(
            trade_id=_require(data, "directTradeID", "trade"),
            cusip=_require(data, "cusip", "trade"),
            original_face=_int_field(data, "originalFace", "trade"),
            bid_price=to_decimal(_require(data, "bidPrice", "trade")),
            bidder_hash=_require(data, "bidderHash", "trade"),
            created_at=parse_timestamp(_require(data, "createdAt", "trade"), "trade.createdAt"),
            state=data.get("state", "Open"),
            answers=answers,
        )
    except ValueError as e:
        raise EncodingError(f"Invalid trade: {e}") from e


def transaction_from_dict(data: Dict[str, Any]) -> Transaction:
    return Transaction(
        buyer_id=_require(data, "buyerID", "transaction"),
        seller_id=_require(data, "sellerID", "transaction"),
        cusip=_require(data, "cusip", "transaction"),
        original_face=_int_field(data, "originalFace", "transaction"),
        bought_price=to_decimal(_require(data, "boughtPrice", "transaction")),
        timestamp=parse_timestamp(_require(data, "timestamp", "transaction"), "transaction.timestamp"),
        trade_id=data.get("directTradeID", ""),
    )


def private_bond_from_dict(data: Dict[str, Any]) -> PrivateBondExtension:
    return PrivateBondExtension(
        uid=_require(data, "uid", "private bond"),
        reserve_price=to_decimal(_require(data, "reservePrice", "private bond")),
    )


def document_from_dict(data: Dict[str, Any]) -> LedgerDocument:
    if not isinstance(data, dict):
        raise EncodingError(f"Ledger document must be a JSON object, got {type(data).__name__}")
    return LedgerDocument(
        bonds=tuple(bond_from_dict(b) for b in data.get("bonds") or ()),
        trades=tuple(trade_from_dict(t) for t in data.get("directTrades") or ()),
        transactions=tuple(transaction_from_dict(t) for t in data.get("transactions") or ()),
    )


# ============================================================================
# BYTES
# ============================================================================

def encode_document(doc: LedgerDocument) -> bytes:
    return _dumps(document_to_dict(doc))


def decode_document(raw: Optional[bytes]) -> LedgerDocument:
    """Decode the stored ledger. A missing document is an empty ledger."""
    if raw is None:
        return EMPTY_DOCUMENT
    return document_from_dict(_loads(raw, "ledger"))


def encode_private_bonds(extensions: List[PrivateBondExtension]) -> bytes:
    return _dumps([private_bond_to_dict(e) for e in extensions])


def decode_private_bonds(raw: Optional[bytes]) -> List[PrivateBondExtension]:
    if raw is None:
        return []
    data = _loads(raw, "private bonds")
    if not isinstance(data, list):
        raise EncodingError("Private bonds must be a JSON array")
    return [private_bond_from_dict(item) for item in data]


def decode_bond_spec(payload) -> BondSpec:
    """Decode a bond JSON payload (str, bytes or already-parsed dict)."""
    data = payload if isinstance(payload, dict) else _loads(payload, "bond")
    return bond_spec_from_dict(data)


def decode_bonds(payload) -> List[Bond]:
    """Decode a JSON array of complete bond records."""
    data = payload if isinstance(payload, list) else _loads(payload, "bonds")
    if not isinstance(data, list):
        raise EncodingError("Expected a JSON array of bonds")
    return [bond_from_dict(item) for item in data]
