"""
Capability registry.

Static table of the ``(scheme, ledger)`` pairs this facilitator will
accept, built once from configuration. A ledger is supported only when
its configuration carries both a signing key and a facilitator address;
ledgers without a key never get an adapter, so nothing downstream can
reach a key that is not there.

Ledger names resolve through aliases (chain ids such as ``"8453"``)
to the canonical name.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from x402_facilitator.config import FacilitatorConfig, LedgerConfig, LedgerFamily
from x402_facilitator.errors import ConfigError
from x402_facilitator.ledgers.base import LedgerAdapter
from x402_facilitator.ledgers.evm import (
    Erc20DelegatedAdapter,
    EvmRpcClient,
    LocalAccountSigner,
    NativePresignedAdapter,
)
from x402_facilitator.ledgers.solana import KeypairSigner, SolanaRpcClient, SplDelegatedAdapter
from x402_facilitator.ledgers.transport import HttpxTransport, JsonRpcTransport
from x402_facilitator.models import EXACT_SCHEME, SupportedKind

logger = logging.getLogger(__name__)


def build_adapter(ledger: LedgerConfig, transport: JsonRpcTransport) -> LedgerAdapter:
    """Build the adapter for a configured ledger.

    Raises:
        ConfigError: If the ledger has no key, or the key does not match
            the configured facilitator address.
    """
    if not ledger.is_configured or ledger.signing_key is None:
        raise ConfigError(f"{ledger.name}: no signing key configured")
    try:
        if ledger.family is LedgerFamily.ERC20_DELEGATED:
            return Erc20DelegatedAdapter(
                ledger,
                EvmRpcClient(ledger.rpc_url, transport),
                LocalAccountSigner(ledger.signing_key),
            )
        if ledger.family is LedgerFamily.NATIVE_PRESIGNED:
            signer = LocalAccountSigner(ledger.signing_key)
            if signer.address.lower() != (ledger.identity or "").lower():
                raise ValueError(f"{ledger.name}: signing key does not match facilitator address")
            return NativePresignedAdapter(ledger, EvmRpcClient(ledger.rpc_url, transport))
        if ledger.family is LedgerFamily.SPL_DELEGATED:
            return SplDelegatedAdapter(
                ledger,
                SolanaRpcClient(ledger.rpc_url, transport),
                KeypairSigner.from_base58(ledger.signing_key),
            )
    except ValueError as exc:
        raise ConfigError(str(exc)) from None
    raise ConfigError(f"{ledger.name}: unknown ledger family {ledger.family!r}")


class CapabilityRegistry:
    """Which ledgers are enabled, and the adapter for each.

    Args:
        config: Facilitator configuration.
        adapters: Prebuilt adapters by canonical ledger name. When given,
            they replace the built ones for those ledgers (tests, custom
            signers). Adapters for unconfigured ledgers are ignored.
        transport: JSON-RPC transport for built adapters. Defaults to
            HttpxTransport with the configured RPC timeout.
    """

    def __init__(
        self,
        config: FacilitatorConfig,
        adapters: Mapping[str, LedgerAdapter] | None = None,
        transport: JsonRpcTransport | None = None,
    ) -> None:
        self._config = config
        self._adapters: dict[str, LedgerAdapter] = {}
        overrides = dict(adapters or {})
        rpc_transport = transport or HttpxTransport(timeout=config.rpc_timeout_seconds)

        for ledger in config.ledgers:
            if not ledger.is_configured:
                logger.info("ledger %s disabled: no facilitator key configured", ledger.name)
                continue
            if ledger.name in overrides:
                self._adapters[ledger.name] = overrides[ledger.name]
            else:
                self._adapters[ledger.name] = build_adapter(ledger, rpc_transport)
            logger.info("ledger %s enabled (%s)", ledger.name, ledger.family)

    @property
    def config(self) -> FacilitatorConfig:
        return self._config

    def canonical(self, ledger: str) -> str | None:
        """Canonical name for ``ledger`` (name or alias), if known at all."""
        found = self._config.ledger(ledger)
        return found.name if found is not None else None

    def is_supported(self, scheme: str, ledger: str) -> bool:
        if scheme != EXACT_SCHEME:
            return False
        name = self.canonical(ledger)
        return name is not None and name in self._adapters

    def kinds(self) -> tuple[SupportedKind, ...]:
        return tuple(SupportedKind(scheme=EXACT_SCHEME, ledger=name) for name in self._adapters)

    def adapter_for(self, ledger: str) -> LedgerAdapter | None:
        name = self.canonical(ledger)
        if name is None:
            return None
        return self._adapters.get(name)
