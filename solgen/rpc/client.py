"""Solana JSON-RPC client with endpoint failover."""

import asyncio
import base64
import itertools
from collections.abc import Awaitable, Callable
from time import monotonic
from typing import Any, TypeVar

import aiohttp
from loguru import logger
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from solgen.config import load_network_config
from solgen.exceptions import (
    ExhaustedEndpointsError,
    InvalidInputError,
    RateLimitedError,
    RpcError,
    TransactionFailedError,
    TransactionUnconfirmedError,
    TransientError,
)
from solgen.models import lamports_to_sol, short_address, sol_to_lamports
from solgen.rpc.pool import ConfigProvider, EndpointPool, RateLimiter
from solgen.wallet.derivation import keypair_from_secret

P = TypeVar("P")
T = TypeVar("T")


def parse_address(address: str) -> Pubkey:
    """Parse a base58 address.

    Raises:
        InvalidInputError: If the address is empty or malformed.
    """
    if not address or not address.strip():
        raise InvalidInputError("Invalid address format: empty address")
    try:
        return Pubkey.from_string(address.strip())
    except ValueError as e:
        raise InvalidInputError(f"Invalid address format: {address}") from e


class SolanaRpcClient:
    """Async JSON-RPC client for balance queries and SOL transfers.

    Every request waits for a rate-limiter slot. Throttled or failing
    endpoints are rotated out; each endpoint is tried twice before the
    call fails with ExhaustedEndpointsError.

    Usage:
        async with SolanaRpcClient() as client:
            balance = await client.get_balance(address)
            signature = await client.broadcast_transfer(secret, [to], 0.01)
    """

    # Wait after a failed attempt before trying the next endpoint
    FAILOVER_COOLDOWN: float = 0.5
    # Every endpoint gets this many attempts per call
    ATTEMPTS_PER_ENDPOINT: int = 2

    COMMITMENT = "confirmed"
    # Provider-level resend count, distinct from endpoint failover
    PROVIDER_MAX_RETRIES = 3
    CONFIRM_TIMEOUT: float = 60.0
    CONFIRM_POLL_INTERVAL: float = 1.0

    # Substrings that identify throttling in provider error messages
    RATE_LIMIT_SIGNATURES = (
        "403",
        "429",
        "access forbidden",
        "too many requests",
        "rate limit",
    )
    # JSON-RPC error codes
    INVALID_PARAMS_CODE = -32602
    PREFLIGHT_FAILURE_CODE = -32002

    def __init__(
        self,
        pool: EndpointPool | None = None,
        limiter: RateLimiter | None = None,
        config_provider: ConfigProvider = load_network_config,
    ) -> None:
        """Initialize the client.

        Args:
            pool: Endpoint pool. Defaults to one built from live configuration.
            limiter: Shared rate limiter. Defaults to a new one.
            config_provider: Source of live network configuration.
        """
        self._config_provider = config_provider
        self._pool = pool or EndpointPool(config_provider)
        self._limiter = limiter or RateLimiter(config_provider)
        self._session: aiohttp.ClientSession | None = None
        self._request_ids = itertools.count(1)

    @property
    def pool(self) -> EndpointPool:
        return self._pool

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def __aenter__(self) -> "SolanaRpcClient":
        await self._ensure_session()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure session exists, creating if needed."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(
                total=self._config_provider().request_timeout
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Wire
    # =========================================================================

    def _is_rate_limit_message(self, message: str) -> bool:
        lowered = message.lower()
        return any(sig in lowered for sig in self.RATE_LIMIT_SIGNATURES)

    def _classify_rpc_error(self, method: str, error: dict[str, Any]) -> Exception:
        """Map a JSON-RPC error object to an exception."""
        code = error.get("code")
        message = str(error.get("message", "Unknown RPC error"))

        if self._is_rate_limit_message(message):
            return RateLimitedError(message, status_code=None)
        if code == self.INVALID_PARAMS_CODE:
            return InvalidInputError(f"Invalid address format: {message}")
        if method == "sendTransaction" and code == self.PREFLIGHT_FAILURE_CODE:
            return TransactionFailedError(f"Transaction rejected: {message}")
        return TransientError(f"RPC error {code}: {message}")

    async def _post(self, endpoint: str, method: str, params: list[Any]) -> Any:
        """Send one JSON-RPC request and return its result.

        Raises:
            RateLimitedError: HTTP 403/429 or a throttling error message.
            TransientError: Other HTTP or JSON-RPC errors.
            InvalidInputError: The node rejected our parameters.
            TransactionFailedError: sendTransaction failed preflight.
            aiohttp.ClientError, asyncio.TimeoutError: Transport failures.
        """
        session = await self._ensure_session()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": method,
            "params": params,
        }

        async with session.post(endpoint, json=payload) as response:
            if response.status in (403, 429):
                raise RateLimitedError(
                    f"HTTP {response.status} from {endpoint}",
                    status_code=response.status,
                )
            if response.status != 200:
                text = await response.text()
                if self._is_rate_limit_message(text):
                    raise RateLimitedError(text[:200], status_code=response.status)
                raise TransientError(
                    f"HTTP {response.status} from {endpoint}: {text[:200]}",
                    status_code=response.status,
                )
            try:
                body: dict[str, Any] = await response.json(content_type=None)
            except ValueError as e:
                # Proxies and captive pages answer 200 with HTML
                raise TransientError(
                    f"Malformed JSON-RPC response from {endpoint}",
                    status_code=response.status,
                ) from e

        if not isinstance(body, dict):
            raise TransientError(f"Malformed JSON-RPC response from {endpoint}")
        if body.get("error"):
            raise self._classify_rpc_error(method, body["error"])
        return body.get("result")

    # =========================================================================
    # Failover
    # =========================================================================

    async def _with_failover(
        self,
        description: str,
        prepare: Callable[[], P],
        attempt: Callable[[str, P], Awaitable[T]],
    ) -> T:
        """Run an operation with rate limiting and endpoint failover.

        Args:
            description: What is being done, for logs and errors.
            prepare: Validates input and returns the parsed form.
                     InvalidInputError from here is never retried.
            attempt: Performs the operation against one endpoint.

        Raises:
            InvalidInputError: Input failed validation.
            ExhaustedEndpointsError: All attempts failed.
        """
        self._pool.refresh()
        max_attempts = self.ATTEMPTS_PER_ENDPOINT * self._pool.size
        last_error: Exception | None = None

        for attempt_no in range(1, max_attempts + 1):
            await self._limiter.wait_for_slot()
            prepared = prepare()
            endpoint = self._pool.current_endpoint()
            logger.debug(
                "{} (attempt {}/{}) via {}",
                description,
                attempt_no,
                max_attempts,
                endpoint,
            )

            try:
                return await attempt(endpoint, prepared)
            except RateLimitedError as e:
                logger.warning(
                    "Rate limit or access error on {}: {}, switching endpoint",
                    endpoint,
                    str(e),
                )
                last_error = e
            except TransientError as e:
                logger.warning("Error on {}: {}, switching endpoint", endpoint, str(e))
                last_error = e
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(
                    "Connection error on {}: {!r}, switching endpoint", endpoint, e
                )
                last_error = TransientError(f"Connection error: {e!r}")

            self._pool.advance()
            await asyncio.sleep(self.FAILOVER_COOLDOWN)

        logger.error("Failed to {} after {} attempts", description, max_attempts)
        raise ExhaustedEndpointsError(
            f"Failed to {description} after trying all endpoints",
            attempts=max_attempts,
        ) from last_error

    # =========================================================================
    # Balances
    # =========================================================================

    async def get_balance(self, address: str) -> float:
        """Get the balance of an address in SOL.

        Raises:
            InvalidInputError: If the address is malformed.
            ExhaustedEndpointsError: If no endpoint answered.
        """

        async def attempt(endpoint: str, pubkey: Pubkey) -> float:
            result = await self._post(
                endpoint, "getBalance", [str(pubkey), {"commitment": self.COMMITMENT}]
            )
            lamports = result.get("value") if isinstance(result, dict) else None
            if not isinstance(lamports, int):
                raise TransientError(f"Malformed getBalance response: {result!r}")
            balance = lamports_to_sol(lamports)
            logger.debug(
                "Balance for {}: {} lamports ({} SOL)",
                short_address(str(pubkey)),
                lamports,
                balance,
            )
            return balance

        return await self._with_failover(
            f"fetch balance for {short_address(address)}",
            lambda: parse_address(address),
            attempt,
        )

    async def get_balances(
        self,
        addresses: list[str],
        max_concurrency: int = 4,
    ) -> dict[str, float | None]:
        """Fetch several balances with bounded fan-out.

        Requests still queue on the rate limiter. A failed lookup maps to
        None ("balance unknown") instead of failing the whole batch.
        """
        semaphore = asyncio.Semaphore(max(1, max_concurrency))

        async def fetch(address: str) -> float | None:
            async with semaphore:
                try:
                    return await self.get_balance(address)
                except (RpcError, InvalidInputError) as e:
                    logger.warning(
                        "Balance unknown for {}: {}", short_address(address), str(e)
                    )
                    return None

        results = await asyncio.gather(*(fetch(a) for a in addresses))
        return dict(zip(addresses, results))

    # =========================================================================
    # Transactions
    # =========================================================================

    async def _fetch_blockhash(self, endpoint: str) -> Hash:
        await self._limiter.wait_for_slot()
        result = await self._post(
            endpoint, "getLatestBlockhash", [{"commitment": self.COMMITMENT}]
        )
        try:
            return Hash.from_string(result["value"]["blockhash"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransientError(f"Malformed getLatestBlockhash response: {result!r}") from e

    async def get_latest_blockhash(self) -> str:
        """Get a recent blockhash from the network."""

        async def attempt(endpoint: str, _: None) -> str:
            result = await self._post(
                endpoint, "getLatestBlockhash", [{"commitment": self.COMMITMENT}]
            )
            try:
                return str(result["value"]["blockhash"])
            except (KeyError, TypeError) as e:
                raise TransientError(
                    f"Malformed getLatestBlockhash response: {result!r}"
                ) from e

        return await self._with_failover("fetch latest blockhash", lambda: None, attempt)

    def _prepare_transfer(
        self,
        signer_secret: str,
        recipients: list[str],
        amount_each: float,
    ) -> tuple[Keypair, list[Pubkey], int]:
        """Validate transfer input and return (signer, recipients, lamports)."""
        if not recipients:
            raise InvalidInputError("Transfer needs at least one recipient")
        lamports = sol_to_lamports(amount_each)
        if lamports <= 0:
            raise InvalidInputError(f"Invalid amount: {amount_each}")
        signer = keypair_from_secret(signer_secret)
        return signer, [parse_address(r) for r in recipients], lamports

    @staticmethod
    def build_transfer(
        signer: Keypair,
        recipients: list[Pubkey],
        lamports: int,
        blockhash: Hash,
    ) -> Transaction:
        """Build and sign one transaction paying every recipient."""
        instructions = [
            transfer(
                TransferParams(
                    from_pubkey=signer.pubkey(),
                    to_pubkey=recipient,
                    lamports=lamports,
                )
            )
            for recipient in recipients
        ]
        message = Message.new_with_blockhash(instructions, signer.pubkey(), blockhash)
        return Transaction([signer], message, blockhash)

    async def _submit(self, endpoint: str, tx: Transaction) -> str:
        """Send a signed transaction and wait for confirmation."""
        signature = str(tx.signatures[0])
        encoded = base64.b64encode(bytes(tx)).decode("ascii")
        options = {
            "encoding": "base64",
            "skipPreflight": False,
            "preflightCommitment": self.COMMITMENT,
            "maxRetries": self.PROVIDER_MAX_RETRIES,
        }

        await self._limiter.wait_for_slot()
        try:
            await self._post(endpoint, "sendTransaction", [encoded, options])
        except aiohttp.ClientConnectorError:
            # Never reached the node, safe to fail over
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransactionUnconfirmedError(
                f"Connection lost while submitting {signature}: {e!r}", signature
            ) from e

        await self._confirm(endpoint, signature)
        return signature

    async def _confirm(self, endpoint: str, signature: str) -> None:
        """Poll until the transaction reaches confirmed commitment.

        Raises:
            TransactionFailedError: The transaction failed on-chain.
            TransactionUnconfirmedError: Not confirmed before the timeout.
        """
        deadline = monotonic() + self.CONFIRM_TIMEOUT

        while True:
            await self._limiter.wait_for_slot()
            try:
                result = await self._post(
                    endpoint,
                    "getSignatureStatuses",
                    [[signature], {"searchTransactionHistory": False}],
                )
                statuses = result.get("value") if isinstance(result, dict) else None
                status = statuses[0] if statuses else None
            except (RateLimitedError, TransientError, aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.debug("Status poll for {} failed: {!r}", signature, e)
                status = None

            if status:
                if status.get("err"):
                    raise TransactionFailedError(
                        f"Transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return

            if monotonic() >= deadline:
                raise TransactionUnconfirmedError(
                    f"Transaction {signature} not confirmed within "
                    f"{self.CONFIRM_TIMEOUT:.0f}s",
                    signature,
                )
            await asyncio.sleep(self.CONFIRM_POLL_INTERVAL)

    async def broadcast_transfer(
        self,
        signer_secret: str,
        recipients: list[str],
        amount_each: float,
    ) -> str:
        """Send `amount_each` SOL to every recipient in one transaction.

        All transfers land together or not at all.

        Args:
            signer_secret: Signer secret key, as a JSON byte array or hex.
            recipients: Base58 recipient addresses.
            amount_each: Amount in SOL sent to each recipient.

        Returns:
            The transaction signature.

        Raises:
            InvalidInputError: Malformed key, address or amount.
            TransactionFailedError: Rejected by preflight or failed on-chain.
            TransactionUnconfirmedError: Submitted but not confirmed.
            ExhaustedEndpointsError: No endpoint accepted the transaction.
        """

        async def attempt(
            endpoint: str, prepared: tuple[Keypair, list[Pubkey], int]
        ) -> str:
            signer, pubkeys, lamports = prepared
            blockhash = await self._fetch_blockhash(endpoint)
            tx = self.build_transfer(signer, pubkeys, lamports, blockhash)
            signature = await self._submit(endpoint, tx)
            logger.info(
                "Transfer confirmed: {} SOL x {} from {}, signature {}",
                amount_each,
                len(pubkeys),
                short_address(str(signer.pubkey())),
                signature,
            )
            return signature

        return await self._with_failover(
            f"send {amount_each} SOL to {len(recipients)} recipient(s)",
            lambda: self._prepare_transfer(signer_secret, recipients, amount_each),
            attempt,
        )
