"""
registry.py - Asset Registry

Per-asset metadata: circulating and max supply, issuer, unlock delay and the
(inert) transfer fee configuration.

Planning methods are pure: they validate and return a new Asset value without
touching the registry. The Ledger commits the returned value with put() only
after every other precondition of the action has also passed.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from .core import (
    Asset, ZERO,
    AssetNotFound, DuplicateAsset, InsufficientFunds, SupplyExceeded,
    validate_amount, validate_asset_code, validate_delay, validate_fee_ratio,
    validate_precision,
)


class AssetRegistry:
    """Keyed table of Asset entries. Entries are created once and never removed."""

    def __init__(self):
        self._assets: Dict[str, Asset] = {}

    def __contains__(self, code: str) -> bool:
        return code in self._assets

    def __len__(self) -> int:
        return len(self._assets)

    def codes(self) -> List[str]:
        return sorted(self._assets)

    def find(self, code: str) -> Optional[Asset]:
        return self._assets.get(code)

    def get(self, code: str) -> Asset:
        """
        Raises:
            AssetNotFound: If no asset is registered under `code`
        """
        asset = self._assets.get(code)
        if asset is None:
            raise AssetNotFound(f"symbol does not exist: {code}")
        return asset

    def put(self, asset: Asset) -> None:
        self._assets[asset.code] = asset

    def clone(self) -> AssetRegistry:
        cloned = AssetRegistry()
        cloned._assets = dict(self._assets)
        return cloned

    # ========================================================================
    # PLANNING (pure)
    # ========================================================================

    def new_asset(self, code: str, precision: int, max_supply: Decimal, issuer: str) -> Asset:
        """
        Build a fresh registry entry.

        The fee receiver defaults to the issuer and the unlock delay to zero.

        Raises:
            InvalidArgument: Malformed code or precision, non-positive max supply
            DuplicateAsset: If the code is already registered
        """
        validate_asset_code(code)
        validate_precision(precision)
        if code in self._assets:
            raise DuplicateAsset(f"token with symbol already exists: {code}")
        probe = Asset(code=code, precision=precision, max_supply=ZERO, issuer=issuer)
        max_supply = validate_amount(max_supply, probe, "create")
        return replace(probe, max_supply=max_supply, fee_receiver=issuer)

    @staticmethod
    def issued(asset: Asset, amount: Decimal) -> Asset:
        """
        Raises:
            SupplyExceeded: If amount > max_supply - circulating_supply
        """
        if amount > asset.available_supply:
            raise SupplyExceeded(
                f"quantity exceeds available supply: {asset.format(amount)} > "
                f"{asset.format(asset.available_supply)}"
            )
        return replace(asset, circulating_supply=asset.circulating_supply + amount)

    @staticmethod
    def retired(asset: Asset, amount: Decimal) -> Asset:
        if amount > asset.circulating_supply:
            raise InsufficientFunds(
                f"retire exceeds circulating supply: {asset.format(amount)} > "
                f"{asset.format(asset.circulating_supply)}"
            )
        return replace(asset, circulating_supply=asset.circulating_supply - amount)

    @staticmethod
    def with_unlock_delay(asset: Asset, delay: timedelta) -> Asset:
        return replace(asset, unlock_delay=validate_delay(delay))

    @staticmethod
    def with_transfer_fee(asset: Asset, ratio: int, receiver: str) -> Asset:
        return replace(asset, fee_ratio=validate_fee_ratio(ratio), fee_receiver=receiver)
