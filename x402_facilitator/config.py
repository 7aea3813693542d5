"""
Facilitator configuration.

An immutable ``FacilitatorConfig`` is built once (usually by
``FacilitatorConfig.from_env``) and passed into the Router. Nothing in
the package reads the environment after that.

Environment variables (all optional; a ledger is enabled only when both
its signing key and its facilitator address are set):

    ENABLE_REAL_SETTLEMENT            "true" submits to ledgers; anything
                                      else simulates. Default: simulated.
    FACILITATOR_RPC_TIMEOUT_SECONDS   Per-RPC timeout. Default: 10.
    FACILITATOR_SETTLE_TIMEOUT_SECONDS
                                      Deadline for one settlement, including
                                      confirmation. Default: 60.

    RADIUS_TESTNET_RPC_URL            Radius (native USD, pre-signed tx).
    RADIUS_FACILITATOR_PRIVATE_KEY
    RADIUS_FACILITATOR_ADDRESS

    BASE_RPC_URL                      Base / Base Sepolia (ERC-20 delegated).
    BASE_CHAIN_ID                     8453 (mainnet) or 84532 (sepolia).
    BASE_FACILITATOR_PRIVATE_KEY
    BASE_FACILITATOR_ADDRESS
    BASE_SBC_TOKEN_ADDRESS

    SOLANA_RPC_URL                    Solana (SPL delegated).
    FACILITATOR_SOLANA_PRIVATE_KEY    base58 64-byte keypair.
    FACILITATOR_SOLANA_ADDRESS
    SBC_TOKEN_ADDRESS                 SPL mint.
    SBC_DECIMALS
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TypeVar

from x402_facilitator.errors import ConfigError

_N = TypeVar("_N", int, float)


class LedgerFamily(StrEnum):
    """How a ledger authorizes and settles payments."""

    ERC20_DELEGATED = "erc20-delegated"
    NATIVE_PRESIGNED = "native-presigned"
    SPL_DELEGATED = "spl-delegated"


class SettlementMode(StrEnum):
    """Whether settlement touches the ledger."""

    REAL = "real"
    SIMULATED = "simulated"


# Chain constants
RADIUS_TESTNET = "radius-testnet"
RADIUS_TESTNET_CHAIN_ID = 1223953
BASE = "base"
BASE_CHAIN_ID = 8453
BASE_SEPOLIA = "base-sepolia"
BASE_SEPOLIA_CHAIN_ID = 84532
SOLANA_MAINNET = "solana-mainnet-beta"

NATIVE_ASSET = "0x0000000000000000000000000000000000000000"
BASE_SBC_TOKEN = "0xFdcC3dd6671EaB0709A4C0f3F53De9a333d80798"
BASE_SEPOLIA_SBC_TOKEN = "0xf9FB20B8E097904f0aB7d12e9DbeE88f2dcd0F16"
BASE_SEPOLIA_RPC_URL = "https://sepolia.base.org"
SOLANA_MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
SOLANA_SBC_MINT = "DBAzBUXaLj1qANCseUPZz4sp9F8d2sc78C4vKjhbTGMA"
SOLANA_SBC_DECIMALS = 9


@dataclass(frozen=True)
class LedgerConfig:
    """Everything the facilitator knows about one ledger.

    Attributes:
        name: Canonical ledger name (the wire ``network``).
        family: Authorization/settlement family.
        rpc_url: JSON-RPC endpoint.
        signing_key: Facilitator's private key for this ledger (hex for
            EVM, base58 for Solana). Never logged or repr'd.
        identity: Facilitator's public address on this ledger.
        chain_id: EVM chain id; None for non-EVM ledgers.
        asset: Token contract / mint settled on this ledger, or the zero
            address for a native asset.
        asset_decimals: Decimals of ``asset`` (SPL TransferChecked needs it).
        aliases: Extra wire names that resolve to this ledger.
    """

    name: str
    family: LedgerFamily
    rpc_url: str = ""
    signing_key: str | None = field(default=None, repr=False)
    identity: str | None = None
    chain_id: int | None = None
    asset: str = NATIVE_ASSET
    asset_decimals: int = 18
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if bool(self.signing_key) != bool(self.identity):
            raise ConfigError(
                f"{self.name}: signing key and facilitator address must be set together"
            )
        if self.signing_key and not self.rpc_url:
            raise ConfigError(f"{self.name}: rpc_url is required when a signing key is set")
        if self.family in (LedgerFamily.ERC20_DELEGATED, LedgerFamily.NATIVE_PRESIGNED):
            if self.chain_id is None:
                raise ConfigError(f"{self.name}: EVM ledgers need a chain_id")

    @property
    def is_configured(self) -> bool:
        """True when both a signing key and an identity are present."""
        return bool(self.signing_key) and bool(self.identity)


@dataclass(frozen=True)
class FacilitatorConfig:
    """Immutable facilitator configuration.

    Attributes:
        ledgers: Known ledgers. Unconfigured ones are kept so discovery
            and routing can tell "unknown" from "known but disabled".
        settlement_mode: REAL or SIMULATED.
        rpc_timeout_seconds: Timeout applied to every RPC call.
        settle_timeout_seconds: Deadline for one settlement end to end.
        confirmation_poll_seconds: Interval between confirmation polls.
    """

    ledgers: tuple[LedgerConfig, ...] = ()
    settlement_mode: SettlementMode = SettlementMode.SIMULATED
    rpc_timeout_seconds: float = 10.0
    settle_timeout_seconds: float = 60.0
    confirmation_poll_seconds: float = 1.0

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for ledger in self.ledgers:
            for name in (ledger.name, *ledger.aliases):
                if name in seen:
                    raise ConfigError(f"ledger name {name!r} is configured twice")
                seen.add(name)
        if self.rpc_timeout_seconds <= 0 or self.settle_timeout_seconds <= 0:
            raise ConfigError("timeouts must be positive")

    def ledger(self, name: str) -> LedgerConfig | None:
        """Look up a ledger by canonical name or alias."""
        for ledger in self.ledgers:
            if name == ledger.name or name in ledger.aliases:
                return ledger
        return None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FacilitatorConfig:
        """Build a configuration from environment variables.

        Raises:
            ConfigError: If a ledger is half-configured or a numeric
                variable does not parse.
        """
        env = os.environ if environ is None else environ

        def get(key: str, default: str = "") -> str:
            return env.get(key, default).strip()

        def number(key: str, convert: Callable[[str], _N], default: _N) -> _N:
            raw = get(key)
            if not raw:
                return default
            try:
                return convert(raw)
            except ValueError:
                raise ConfigError(f"{key} must be a number, got {raw!r}") from None

        base_chain_id = number("BASE_CHAIN_ID", int, BASE_CHAIN_ID)
        is_base_mainnet = base_chain_id == BASE_CHAIN_ID

        ledgers = (
            LedgerConfig(
                name=RADIUS_TESTNET,
                family=LedgerFamily.NATIVE_PRESIGNED,
                rpc_url=get("RADIUS_TESTNET_RPC_URL"),
                signing_key=get("RADIUS_FACILITATOR_PRIVATE_KEY") or None,
                identity=get("RADIUS_FACILITATOR_ADDRESS") or None,
                chain_id=RADIUS_TESTNET_CHAIN_ID,
                aliases=(str(RADIUS_TESTNET_CHAIN_ID),),
            ),
            LedgerConfig(
                name=BASE if is_base_mainnet else BASE_SEPOLIA,
                family=LedgerFamily.ERC20_DELEGATED,
                rpc_url=get("BASE_RPC_URL", "" if is_base_mainnet else BASE_SEPOLIA_RPC_URL),
                signing_key=get("BASE_FACILITATOR_PRIVATE_KEY") or None,
                identity=get("BASE_FACILITATOR_ADDRESS") or None,
                chain_id=base_chain_id,
                asset=get(
                    "BASE_SBC_TOKEN_ADDRESS",
                    BASE_SBC_TOKEN if is_base_mainnet else BASE_SEPOLIA_SBC_TOKEN,
                ),
                asset_decimals=18 if is_base_mainnet else 6,
                aliases=(str(base_chain_id),),
            ),
            LedgerConfig(
                name=SOLANA_MAINNET,
                family=LedgerFamily.SPL_DELEGATED,
                rpc_url=get("SOLANA_RPC_URL", SOLANA_MAINNET_RPC_URL),
                signing_key=get("FACILITATOR_SOLANA_PRIVATE_KEY") or None,
                identity=get("FACILITATOR_SOLANA_ADDRESS") or None,
                asset=get("SBC_TOKEN_ADDRESS", SOLANA_SBC_MINT),
                asset_decimals=number("SBC_DECIMALS", int, SOLANA_SBC_DECIMALS),
            ),
        )

        real = get("ENABLE_REAL_SETTLEMENT").lower() == "true"
        return cls(
            ledgers=ledgers,
            settlement_mode=SettlementMode.REAL if real else SettlementMode.SIMULATED,
            rpc_timeout_seconds=number("FACILITATOR_RPC_TIMEOUT_SECONDS", float, 10.0),
            settle_timeout_seconds=number("FACILITATOR_SETTLE_TIMEOUT_SECONDS", float, 60.0),
        )
