"""Shared constants for RiskGate.

All scoring thresholds, cache TTLs, block windows and numeric caps used across
modules are defined here. No magic numbers in other modules: import from here.
"""

# ─── Risk score bounds ───────────────────────────────────────────────────────

MIN_RISK_SCORE: int = 0
MAX_RISK_SCORE: int = 100

# Starting point before fact weights are applied.
BASE_RISK_SCORE: int = 50

# ─── Holder thresholds ───────────────────────────────────────────────────────

HOLDERS_ESTABLISHED: int = 1000   # > → -10
HOLDERS_MODERATE: int = 100       # > → -5
HOLDERS_FEW: int = 10             # < → +15 and "few holders" warning

# ─── Contract age thresholds (days) ──────────────────────────────────────────

AGE_MATURE_DAYS: int = 365        # > → -10
AGE_SEASONED_DAYS: int = 90       # > → -5
AGE_NEW_DAYS: int = 7             # < → +10 and "very new" warning

# ─── Liquidity thresholds (quote-token units) ────────────────────────────────

LIQUIDITY_DEEP: float = 100_000.0     # > → -15
LIQUIDITY_MODERATE: float = 10_000.0  # > → -5
LIQUIDITY_LOW: float = 1_000.0        # 0 < liq < → +15; < → warning

# ─── Bytecode analysis ───────────────────────────────────────────────────────

# Deployed size in bytes. < LOW → "low", < MEDIUM → "medium", else "high".
BYTECODE_SIZE_LOW: int = 1000
BYTECODE_SIZE_MEDIUM: int = 5000

# EIP-1967 implementation slot / beacon markers found in proxy bytecode.
PROXY_BYTECODE_MARKERS: tuple[str, ...] = ("eip1967", "360894a1", "a3f0ad74")

# EVM opcodes used by the bytecode walk. PUSH1..PUSH32 carry 1..32 immediate bytes.
SELFDESTRUCT_OPCODE: int = 0xFF
PUSH1_OPCODE: int = 0x60
PUSH32_OPCODE: int = 0x7F

# ─── Aggregator ──────────────────────────────────────────────────────────────

# Per-(fact, contract) cache lifetime.
FACT_CACHE_TTL_S: float = 300.0

# Bounded timeout for one primary or secondary source call.
SOURCE_TIMEOUT_S: float = 8.0

# Bounded timeout for the getCode short-circuit check.
CODE_CHECK_TIMEOUT_S: float = 5.0

# Transfer-log holder scan windows. Public RPC providers cap eth_getLogs at
# 2000 blocks; the retry window is used when the provider still refuses.
HOLDER_SCAN_BLOCK_WINDOW: int = 1900
HOLDER_SCAN_RETRY_BLOCK_WINDOW: int = 1000

# Contract-creation search via getCode history.
AGE_SCAN_BLOCK_WINDOW: int = 10_000
AGE_SCAN_BLOCK_STEP: int = 1_000

# DEX liquidity estimate: quote for one whole token times this multiplier.
LIQUIDITY_QUOTE_MULTIPLIER: float = 1000.0

SECONDS_PER_DAY: int = 86_400

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"

# ─── Payments (x402) ─────────────────────────────────────────────────────────

X402_VERSION: int = 1
X402_SCHEME: str = "exact"
PAYMENT_ID_HEADER: str = "X-Payment-Id"
DEFAULT_PAYMENT_TIMEOUT_S: int = 300
FACILITATOR_TIMEOUT_S: float = 15.0
SETTLED_EVENT: str = "payment.settled"

# ─── Transaction gate ────────────────────────────────────────────────────────

DEFAULT_MAX_RISK_SCORE: int = 30
RPC_TIMEOUT_S: float = 30.0

# ─── Divergence ──────────────────────────────────────────────────────────────

DIVERGENCE_THRESHOLD_LOW_PCT: float = 0.5
DIVERGENCE_THRESHOLD_HIGH_PCT: float = 5.0

# ─── HTTP surface ────────────────────────────────────────────────────────────

ANALYSIS_RATE_LIMIT: str = "30/minute"
PAYMENT_RATE_LIMIT: str = "10/minute"
BLOCKED_TX_DEFAULT_LIMIT: int = 20
BLOCKED_TX_MAX_LIMIT: int = 100
