"""Ethereum node access: JSON-RPC transport and ABI log decoding."""
