"""
Tests for the capability registry.

Test plan:
- Only ledgers with key + address get an adapter and appear in kinds
- Unconfigured ledger: canonical name resolves, but not supported
- Aliases resolve to the canonical ledger and its adapter
- Scheme other than "exact" is never supported
- Built adapters have the right family; key/address mismatch → ConfigError
- Override adapters replace built ones; overrides for disabled ledgers
  are ignored
"""

import pytest
from solders.keypair import Keypair

from x402_facilitator.config import (
    BASE,
    RADIUS_TESTNET,
    SOLANA_MAINNET,
    LedgerConfig,
    LedgerFamily,
)
from x402_facilitator.errors import ConfigError
from x402_facilitator.ledgers.evm import Erc20DelegatedAdapter, NativePresignedAdapter
from x402_facilitator.ledgers.solana import SplDelegatedAdapter
from x402_facilitator.models import EXACT_SCHEME, SupportedKind
from x402_facilitator.registry import CapabilityRegistry, build_adapter

from payment_helpers import (
    MERCHANT,
    FakeAdapter,
    FakeTransport,
    base_ledger,
    facilitator_config,
    radius_ledger,
    solana_ledger,
)

UNCONFIGURED_SOLANA = LedgerConfig(name=SOLANA_MAINNET, family=LedgerFamily.SPL_DELEGATED)


def _registry(*ledgers: LedgerConfig, **kwargs) -> CapabilityRegistry:
    return CapabilityRegistry(facilitator_config(*ledgers), transport=FakeTransport(), **kwargs)


class TestSupport:
    def test_configured_ledgers_only(self) -> None:
        registry = _registry(base_ledger(), UNCONFIGURED_SOLANA)
        assert registry.is_supported(EXACT_SCHEME, BASE)
        assert not registry.is_supported(EXACT_SCHEME, SOLANA_MAINNET)
        assert registry.adapter_for(SOLANA_MAINNET) is None

    def test_unconfigured_ledger_still_known(self) -> None:
        registry = _registry(base_ledger(), UNCONFIGURED_SOLANA)
        assert registry.canonical(SOLANA_MAINNET) == SOLANA_MAINNET
        assert registry.canonical("ethereum") is None

    def test_kinds(self) -> None:
        registry = _registry(base_ledger(), radius_ledger(), UNCONFIGURED_SOLANA)
        assert registry.kinds() == (
            SupportedKind(scheme=EXACT_SCHEME, ledger=BASE),
            SupportedKind(scheme=EXACT_SCHEME, ledger=RADIUS_TESTNET),
        )

    def test_alias(self) -> None:
        registry = _registry(base_ledger())
        assert registry.is_supported(EXACT_SCHEME, "8453")
        assert registry.adapter_for("8453") is registry.adapter_for(BASE)

    @pytest.mark.parametrize("scheme", ["upto", "EXACT", ""])
    def test_other_schemes(self, scheme: str) -> None:
        assert not _registry(base_ledger()).is_supported(scheme, BASE)


class TestBuildAdapter:
    def test_families(self) -> None:
        keypair = Keypair()
        registry = _registry(base_ledger(), radius_ledger(), solana_ledger(keypair))
        assert isinstance(registry.adapter_for(BASE), Erc20DelegatedAdapter)
        assert isinstance(registry.adapter_for(RADIUS_TESTNET), NativePresignedAdapter)
        solana = registry.adapter_for(SOLANA_MAINNET)
        assert isinstance(solana, SplDelegatedAdapter)
        assert solana.key_id == str(keypair.pubkey())

    @pytest.mark.parametrize("ledger", [base_ledger(identity=MERCHANT), radius_ledger(identity=MERCHANT)])
    def test_evm_key_mismatch(self, ledger: LedgerConfig) -> None:
        with pytest.raises(ConfigError, match="does not match"):
            build_adapter(ledger, FakeTransport())

    def test_solana_key_mismatch(self) -> None:
        ledger = solana_ledger(Keypair(), identity=str(Keypair().pubkey()))
        with pytest.raises(ConfigError, match="does not match"):
            build_adapter(ledger, FakeTransport())

    def test_unconfigured(self) -> None:
        with pytest.raises(ConfigError, match="no signing key"):
            build_adapter(UNCONFIGURED_SOLANA, FakeTransport())


class TestOverrides:
    def test_override_replaces_built(self) -> None:
        fake = FakeAdapter(base_ledger())
        registry = _registry(base_ledger(), adapters={BASE: fake})
        assert registry.adapter_for(BASE) is fake

    def test_override_for_disabled_ledger_ignored(self) -> None:
        fake = FakeAdapter(UNCONFIGURED_SOLANA)
        registry = _registry(base_ledger(), UNCONFIGURED_SOLANA, adapters={SOLANA_MAINNET: fake})
        assert registry.adapter_for(SOLANA_MAINNET) is None
