"""Source adapters: the only code that talks to the block explorer and chain RPC.

Every adapter method either returns a value or raises
``UpstreamDataUnavailable``; fallback and defaulting are the aggregator's job.
"""
