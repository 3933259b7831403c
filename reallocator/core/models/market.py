"""Market, MarketState and related on-chain data models."""

from dataclasses import dataclass
from decimal import Decimal
from functools import cached_property

from eth_abi import encode
from web3 import Web3

from reallocator.core.constants import WAD, ZERO_ADDRESS


@dataclass(frozen=True)
class Asset:
    """ERC20 token with its USD price snapshot."""

    address: str
    symbol: str
    decimals: int
    price_usd: Decimal = Decimal("0")

    def to_units(self, amount: int) -> Decimal:
        """Convert a raw integer amount to token units."""
        return Decimal(amount) / Decimal(10**self.decimals)

    def to_usd(self, amount: int) -> Decimal:
        """USD value of a raw integer amount."""
        return self.to_units(amount) * self.price_usd


@dataclass(frozen=True)
class MarketParams:
    """Immutable parameters identifying a Morpho Blue market."""

    loan_token: str
    collateral_token: str
    oracle: str
    irm: str
    lltv: int

    @cached_property
    def id(self) -> str:
        """Market id: keccak256 of the ABI-encoded params tuple."""
        encoded = encode(
            ["address", "address", "address", "address", "uint256"],
            [
                Web3.to_checksum_address(self.loan_token),
                Web3.to_checksum_address(self.collateral_token),
                Web3.to_checksum_address(self.oracle),
                Web3.to_checksum_address(self.irm),
                self.lltv,
            ],
        )
        return Web3.to_hex(Web3.keccak(encoded))

    @property
    def is_idle(self) -> bool:
        """Idle markets have no collateral and therefore no borrowers."""
        return self.collateral_token.lower() == ZERO_ADDRESS


@dataclass(frozen=True)
class MarketState:
    """On-chain state of a Morpho Blue market.

    Every transformation (accrual, supply, withdraw, borrow) returns a new
    instance.
    """

    total_supply_assets: int
    total_supply_shares: int
    total_borrow_assets: int
    total_borrow_shares: int
    last_update: int  # unix timestamp
    fee: int  # WAD

    def __post_init__(self):
        if min(
            self.total_supply_assets,
            self.total_supply_shares,
            self.total_borrow_assets,
            self.total_borrow_shares,
        ) < 0:
            raise ValueError("Market totals must be non-negative")
        if not 0 <= self.fee < WAD:
            raise ValueError(f"Fee must be in [0, WAD), got {self.fee}")

    @property
    def liquidity(self) -> int:
        """Assets available to borrow or withdraw."""
        return max(self.total_supply_assets - self.total_borrow_assets, 0)

    @property
    def utilization(self) -> int:
        """Utilization rate scaled by WAD."""
        if self.total_supply_assets == 0:
            return 0
        return self.total_borrow_assets * WAD // self.total_supply_assets


@dataclass(frozen=True)
class Apys:
    """Annualized borrow and supply yields, WAD scaled."""

    borrow_apy: int
    supply_apy: int


@dataclass(frozen=True)
class MarketChainData:
    """Market state accrued to the current block with its IRM readings."""

    market_state: MarketState
    borrow_rate: int  # per second, WAD
    rate_at_target: int  # per second, WAD
    apys: Apys

    @property
    def utilization(self) -> int:
        return self.market_state.utilization
