"""
helpers.py - Builders shared by the bond trading tests

Plain functions, no fixtures: safe to call from hypothesis tests.
"""

import itertools
from datetime import datetime, timedelta, timezone

from bondledger import BondTradingService, Network, TradingConfig, LEDGER_KEY


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def stepping_clock(start: datetime = T0, step: timedelta = timedelta(seconds=1)):
    """Clock returning start, start + step, start + 2*step, ... on each call."""
    ticks = itertools.count()
    return lambda: start + step * next(ticks)


def bond_payload(name: str = "FR RA7777", cusip: str = "US123", original_face: int = 1000, **extra) -> dict:
    """Bond JSON object as a client would send it."""
    payload = {"bond": name, "cusip": cusip, "originalFace": original_face}
    payload.update(extra)
    return payload


def make_service(network: Network, **config) -> BondTradingService:
    config.setdefault("clock", stepping_clock())
    return BondTradingService(network.state, TradingConfig(**config))


def make_org(network: Network, service: BondTradingService, msp_id: str, secret: str = None):
    """Caller for msp_id with its secret already stored."""
    ctx = network.caller(msp_id, f"x509::CN=trader,O={msp_id}")
    service.set_secret(ctx, secret or f"{msp_id}-secret")
    return ctx


def stored_ledger(network: Network):
    """Raw ledger bytes and version, for asserting that nothing was written."""
    return network.state.get_state(LEDGER_KEY)
