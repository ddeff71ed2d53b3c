"""Config loading for RiskGate.

Reads ``.riskgate/config.yaml`` (or ``~/.riskgate/config.yaml``).
Raises SystemExit on parse errors, a missing/unsupported ``version`` field, or
invalid enum values. If no config file is found, returns default values.

Config search order:
  1. ``config_path`` argument (if provided, for testing or explicit override)
  2. RISKGATE_CONFIG environment variable (if set)
  3. ``.riskgate/config.yaml`` (working directory, for development)
  4. ``~/.riskgate/config.yaml`` (home directory, for production deployments)

Secrets are never read from the file. Environment variable overrides:
  RISKGATE_PORT              overrides server.port
  RISKGATE_RPC_URL           overrides chain.rpc_url
  RISKGATE_EXPLORER_API_KEY  sets explorer.api_key
  RISKGATE_SIGNER_KEY        sets proof.signer_key (also signs vault forwards)
  RISKGATE_PAY_TO            overrides payment.pay_to
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Optional

import yaml

from riskgate.constants import (
    DEFAULT_MAX_RISK_SCORE,
    DEFAULT_PAYMENT_TIMEOUT_S,
    FACILITATOR_TIMEOUT_S,
    FACT_CACHE_TTL_S,
    MAX_RISK_SCORE,
    MIN_RISK_SCORE,
    SOURCE_TIMEOUT_S,
)
from riskgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1
SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_ENTITLEMENT_SCOPES: frozenset[str] = frozenset({"global", "resource"})
VALID_LEDGER_BACKENDS: frozenset[str] = frozenset({"memory", "sqlite"})

DEFAULT_CONFIG_PATHS = [
    ".riskgate/config.yaml",
    os.path.expanduser("~/.riskgate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass
class ChainConfig:
    """Chain RPC endpoint used for getCode, log scans and contract calls."""

    rpc_url: str = "https://evm-t3.cronos.org"
    network: str = "cronos-testnet"
    chain_id: int = 338
    timeout_s: float = 30.0


@dataclass
class ExplorerConfig:
    """Etherscan-compatible block explorer REST API (Cronoscan by default)."""

    base_url: str = "https://api-testnet.cronoscan.com/api"
    api_key: Optional[str] = None
    timeout_s: float = SOURCE_TIMEOUT_S


@dataclass
class DexConfig:
    """UniswapV2-style router used for liquidity and DEX price quotes."""

    router_address: str = "0x145863Eb42Cf62847A6Ca784e6416C1682b1b2Ae"
    quote_token: str = "USDC"
    tokens: dict[str, str] = field(
        default_factory=lambda: {
            "CRO": "0x5C7F8A570d578ED84E63fdFA7b1eE72dEae1AE23",
            "USDC": "0xc01efAaF7C5C61bEbFAeb358E1161b537b8bC0e0",
            "USDT": "0x66e428c3f67a68878562e79A0234c1F83c208770",
        }
    )


@dataclass
class RetryConfig:
    max_attempts: int = 2
    base_delay_s: float = 0.25
    backoff_factor: float = 2.0


@dataclass
class RiskConfig:
    """Data aggregator policy."""

    cache_ttl_s: float = FACT_CACHE_TTL_S
    source_timeout_s: float = SOURCE_TIMEOUT_S
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class PaymentConfig:
    """x402 challenge parameters and settlement policy.

    entitlement_scope:
      "global"   a settled payment id unlocks every paid resource
      "resource" a settled payment id only unlocks the resource it was issued for
    """

    network: str = "cronos-testnet"
    pay_to: str = ""
    asset: str = "0xc01efAaF7C5C61bEbFAeb358E1161b537b8bC0e0"
    price_base_units: str = "1000000"
    max_timeout_seconds: int = DEFAULT_PAYMENT_TIMEOUT_S
    resource_url: str = "http://localhost:3000"
    facilitator_url: str = "https://facilitator.cronoslabs.org/v2/x402"
    facilitator_timeout_s: float = FACILITATOR_TIMEOUT_S
    entitlement_scope: str = "global"


@dataclass
class ProofConfig:
    signer_key: Optional[str] = None
    ledger_address: Optional[str] = None


@dataclass
class VaultConfig:
    enabled: bool = False
    max_risk_score: int = DEFAULT_MAX_RISK_SCORE
    address: str = ""


@dataclass
class LedgerConfig:
    backend: str = "memory"
    path: str = "~/.riskgate/ledger.db"


@dataclass
class DivergenceConfig:
    enabled: bool = True
    cex_api_url: str = "https://api.crypto.com/exchange/v1"
    timeout_s: float = 10.0


@dataclass
class Config:
    """Root configuration object populated from .riskgate/config.yaml.

    All fields have safe defaults. RiskGate can start without any config file,
    but paid endpoints refuse to start until ``payment.pay_to`` is set.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    chain: ChainConfig = field(default_factory=ChainConfig)
    explorer: ExplorerConfig = field(default_factory=ExplorerConfig)
    dex: DexConfig = field(default_factory=DexConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    proof: ProofConfig = field(default_factory=ProofConfig)
    vault: VaultConfig = field(default_factory=VaultConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    divergence: DivergenceConfig = field(default_factory=DivergenceConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On an invalid enum value or out-of-range risk threshold.
        """
        server_raw = raw.get("server", {})
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 3000),
        )

        chain_raw = raw.get("chain", {})
        chain = ChainConfig(
            rpc_url=chain_raw.get("rpc_url", ChainConfig.rpc_url),
            network=chain_raw.get("network", ChainConfig.network),
            chain_id=chain_raw.get("chain_id", ChainConfig.chain_id),
            timeout_s=chain_raw.get("timeout_s", ChainConfig.timeout_s),
        )

        explorer_raw = raw.get("explorer", {})
        explorer = ExplorerConfig(
            base_url=explorer_raw.get("base_url", ExplorerConfig.base_url),
            timeout_s=explorer_raw.get("timeout_s", SOURCE_TIMEOUT_S),
        )

        dex_raw = raw.get("dex", {})
        dex = DexConfig(
            router_address=dex_raw.get("router_address", DexConfig.router_address),
            quote_token=dex_raw.get("quote_token", DexConfig.quote_token),
        )
        if "tokens" in dex_raw:
            dex.tokens.update(dex_raw["tokens"])

        risk_raw = raw.get("risk", {})
        retry_raw = risk_raw.get("retry", {})
        risk = RiskConfig(
            cache_ttl_s=risk_raw.get("cache_ttl_s", FACT_CACHE_TTL_S),
            source_timeout_s=risk_raw.get("source_timeout_s", SOURCE_TIMEOUT_S),
            retry=RetryConfig(
                max_attempts=retry_raw.get("max_attempts", RetryConfig.max_attempts),
                base_delay_s=retry_raw.get("base_delay_s", RetryConfig.base_delay_s),
                backoff_factor=retry_raw.get("backoff_factor", RetryConfig.backoff_factor),
            ),
        )

        payment_raw = raw.get("payment", {})
        scope = payment_raw.get("entitlement_scope", "global")
        if scope not in VALID_ENTITLEMENT_SCOPES:
            _fail(
                f"CONFIG ERROR: Invalid payment.entitlement_scope: '{scope}'. "
                f"Supported values: {sorted(VALID_ENTITLEMENT_SCOPES)}."
            )
        payment = PaymentConfig(
            network=payment_raw.get("network", PaymentConfig.network),
            pay_to=payment_raw.get("pay_to", ""),
            asset=payment_raw.get("asset", PaymentConfig.asset),
            price_base_units=str(payment_raw.get("price_base_units", PaymentConfig.price_base_units)),
            max_timeout_seconds=payment_raw.get("max_timeout_seconds", DEFAULT_PAYMENT_TIMEOUT_S),
            resource_url=payment_raw.get("resource_url", PaymentConfig.resource_url),
            facilitator_url=payment_raw.get("facilitator_url", PaymentConfig.facilitator_url),
            facilitator_timeout_s=payment_raw.get("facilitator_timeout_s", FACILITATOR_TIMEOUT_S),
            entitlement_scope=scope,
        )

        proof_raw = raw.get("proof", {})
        proof = ProofConfig(ledger_address=proof_raw.get("ledger_address"))

        vault_raw = raw.get("vault", {})
        max_risk = vault_raw.get("max_risk_score", DEFAULT_MAX_RISK_SCORE)
        if not isinstance(max_risk, int) or not MIN_RISK_SCORE <= max_risk <= MAX_RISK_SCORE:
            _fail(
                f"CONFIG ERROR: vault.max_risk_score must be an integer between "
                f"{MIN_RISK_SCORE} and {MAX_RISK_SCORE}, got {max_risk!r}."
            )
        vault = VaultConfig(
            enabled=vault_raw.get("enabled", False),
            max_risk_score=max_risk,
            address=vault_raw.get("address", ""),
        )

        ledger_raw = raw.get("ledger", {})
        backend = ledger_raw.get("backend", "memory")
        if backend not in VALID_LEDGER_BACKENDS:
            _fail(
                f"CONFIG ERROR: Invalid ledger.backend: '{backend}'. "
                f"Supported values: {sorted(VALID_LEDGER_BACKENDS)}."
            )
        ledger = LedgerConfig(
            backend=backend,
            path=ledger_raw.get("path", LedgerConfig.path),
        )

        divergence_raw = raw.get("divergence", {})
        divergence = DivergenceConfig(
            enabled=divergence_raw.get("enabled", True),
            cex_api_url=divergence_raw.get("cex_api_url", DivergenceConfig.cex_api_url),
            timeout_s=divergence_raw.get("timeout_s", DivergenceConfig.timeout_s),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            chain=chain,
            explorer=explorer,
            dex=dex,
            risk=risk,
            payment=payment,
            proof=proof,
            vault=vault,
            ledger=ledger,
            divergence=divergence,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def _fail(msg: str) -> None:
    print(msg, file=sys.stderr)
    raise SystemExit(1)


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate RiskGate configuration.

    If no file is found at any search path, returns default Config (not an error).
    If a file is found but invalid, writes the error to stderr and raises SystemExit(1).
    Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid enum value, or invalid ``RISKGATE_PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("RISKGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("no_config_file_found", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("loading_config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "RiskGate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0":
        logger.warning(
            "SECURITY WARNING: RiskGate is bound on 0.0.0.0 (all interfaces). "
            "Put it behind a reverse proxy with TLS."
        )

    logger.info(
        "config_loaded",
        path=found_path,
        version=config.version,
        network=config.payment.network,
        ledger_backend=config.ledger.backend,
        vault_enabled=config.vault.enabled,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If RISKGATE_PORT is set but not a valid integer.
    """
    env_port = os.environ.get("RISKGATE_PORT")
    if env_port is not None:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _fail(
                f"CONFIG ERROR: RISKGATE_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )

    rpc_url = os.environ.get("RISKGATE_RPC_URL")
    if rpc_url:
        config.chain.rpc_url = rpc_url

    explorer_key = os.environ.get("RISKGATE_EXPLORER_API_KEY")
    if explorer_key:
        config.explorer.api_key = explorer_key

    signer_key = os.environ.get("RISKGATE_SIGNER_KEY")
    if signer_key:
        config.proof.signer_key = signer_key

    pay_to = os.environ.get("RISKGATE_PAY_TO")
    if pay_to:
        config.payment.pay_to = pay_to
