"""Minimal ABI fragments for the contracts RiskGate reads and writes."""

# keccak("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

ROUTER_ABI = [
    {
        "name": "getAmountsOut",
        "inputs": [
            {"type": "uint256", "name": "amountIn"},
            {"type": "address[]", "name": "path"},
        ],
        "outputs": [{"type": "uint256[]", "name": "amounts"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ERC20_ABI = [
    {"name": "totalSupply", "outputs": [{"type": "uint256", "name": ""}], "inputs": [],
     "stateMutability": "view", "type": "function"},
    {"name": "decimals", "outputs": [{"type": "uint8", "name": ""}], "inputs": [],
     "stateMutability": "view", "type": "function"},
]

RISK_LEDGER_ABI = [
    {
        "name": "storeResult",
        "inputs": [
            {"type": "address", "name": "contractAddress"},
            {"type": "uint256", "name": "score"},
            {"type": "bytes32", "name": "proofHash"},
            {"type": "uint256", "name": "timestamp"},
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "name": "getResult",
        "inputs": [
            {"type": "address", "name": "contractAddress"},
            {"type": "uint256", "name": "timestamp"},
        ],
        "outputs": [
            {"type": "uint256", "name": "score"},
            {"type": "bytes32", "name": "proofHash"},
            {"type": "uint256", "name": "resultTimestamp"},
            {"type": "address", "name": "oracleAddress"},
            {"type": "bool", "name": "exists"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]
