from riskgate.vault.forwarder import CallForwarder, ChainCallForwarder
from riskgate.vault.gate import TransactionGate

__all__ = ["CallForwarder", "ChainCallForwarder", "TransactionGate"]
