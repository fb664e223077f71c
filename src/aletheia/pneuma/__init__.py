"""
Pneuma - Node interaction layer for aletheia.

Provides the session (JSON-RPC + REST gateway channels over httpx), the
transaction builder, header sources and the Merkle proof runtime used to
verify query results against a trusted app hash.
"""
