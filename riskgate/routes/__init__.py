"""HTTP routers: risk analysis, divergence and the risk-gated vault."""
