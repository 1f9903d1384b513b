"""Solana RPC layer with endpoint failover and rate limiting."""

from solgen.rpc.client import SolanaRpcClient, parse_address
from solgen.rpc.pool import EndpointPool, RateLimiter

__all__ = ["EndpointPool", "RateLimiter", "SolanaRpcClient", "parse_address"]
