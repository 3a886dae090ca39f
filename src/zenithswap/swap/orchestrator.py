"""Swap orchestrator.

Drives one swap session through its lifecycle:

    IDLE -> QUOTING -> QUOTED -> INITIATING -> PENDING_DEPOSIT
         -> BTC_CONFIRMING -> EVM_FULFILLING -> COMPLETED

with ERROR reachable from any non-terminal state and ``reset()`` returning to
IDLE from anywhere. All state changes, including those coming from the status
poller, go through the same ``SessionStore``; the session is persisted after
every change and restored once at startup.

Failures of the wallet or the resolver during ``request_quote`` and
``confirm_swap`` end the attempt in ERROR, and so does any unexpected
exception: QUOTING and INITIATING never outlive their operation. Calling an
operation in the wrong state, without a wallet, or with invalid input raises
instead and leaves the session untouched.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, Optional

from zenithswap.chains import is_btc_token
from zenithswap.config import Settings, get_settings
from zenithswap.errors import (
    InvalidInputError,
    NetworkMismatchError,
    QuoteFetchError,
    SignatureRejectedError,
    SwapInitiationError,
    SwapStateError,
    WalletError,
    WalletNotConnectedError,
    WalletPromptTimeoutError,
)
from zenithswap.resolver.client import ExchangeAPIClient
from zenithswap.resolver.contracts import InitiateSwapRequest, QuoteParams, SwapStatusResponse
from zenithswap.storage.snapshot import PersistedSnapshot, PersistenceAdapter
from zenithswap.swap.formatting import amount_in_units, format_quote
from zenithswap.swap.poller import SleepFunc, StatusPoller
from zenithswap.swap.state import (
    DEFAULT_MESSAGES,
    Quote,
    SessionListener,
    SessionStore,
    SwapSession,
    SwapStatus,
    parse_server_status,
)
from zenithswap.swap.validation import ValidationResult, validate_amount, validate_btc_address
from zenithswap.wallet.gateway import WalletGateway

logger = logging.getLogger(__name__)

# Statuses from which a new quote may be requested (no swap ID held)
QUOTABLE_STATUSES = frozenset({SwapStatus.IDLE, SwapStatus.QUOTED, SwapStatus.ERROR})


class SwapOrchestrator:
    """Owns the swap session and coordinates wallet, resolver and poller."""

    def __init__(
        self,
        wallet: WalletGateway,
        api: ExchangeAPIClient,
        persistence: PersistenceAdapter,
        settings: Optional[Settings] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initialize orchestrator.

        Args:
            wallet: Wallet gateway (connection, network, signing)
            api: Resolver client
            persistence: Session snapshot persistence
            settings: Application settings (defaults to get_settings())
            sleep: Sleep function handed to the status poller
        """
        self.wallet = wallet
        self.api = api
        self.persistence = persistence
        self.settings = settings or get_settings()
        self._sleep = sleep
        self._store = SessionStore()
        self._poller: Optional[StatusPoller] = None
        self._operation: Optional[str] = None
        self._epoch = 0
        self._restored = False

    # ======================
    # Read side
    # ======================

    @property
    def session(self) -> SwapSession:
        return self._store.session

    @property
    def poller(self) -> Optional[StatusPoller]:
        return self._poller

    @property
    def is_processing(self) -> bool:
        return self._operation is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Get notified with every new session snapshot."""
        return self._store.subscribe(listener)

    def validate_amount(self, raw) -> ValidationResult:
        """Validate a human amount against the configured bounds."""
        return validate_amount(
            raw,
            minimum=self.settings.min_swap_amount,
            maximum=self.settings.max_swap_amount,
        )

    # ======================
    # Operations
    # ======================

    async def request_quote(
        self,
        params: QuoteParams,
        destination_address: Optional[str] = None,
    ) -> Optional[Quote]:
        """Fetch and store a quote.

        Args:
            params: Quote request; ``amount`` is in the source token's smallest unit
            destination_address: BTC address to receive funds (falls back to the
                one in ``params`` and then to the one kept from the last session)

        Returns:
            The quote, or None if the attempt ended in ERROR

        Raises:
            SwapStateError: An operation is in flight or a swap is still held
            WalletNotConnectedError: No wallet connected
            InvalidInputError: Amount or destination address rejected
        """
        self._check_idle("request a quote")
        session = self.session
        if session.swap_id is not None or session.status not in QUOTABLE_STATUSES:
            raise SwapStateError(
                f"Cannot request a quote while status is {session.status.value}; reset first"
            )
        if not self.wallet.is_connected:
            raise WalletNotConnectedError("Please connect your wallet first.")

        try:
            amount = amount_in_units(params)
        except ValueError:
            raise InvalidInputError("Please enter a valid number") from None
        amount_check = self.validate_amount(amount)
        if not amount_check:
            raise InvalidInputError(amount_check.error)

        destination = destination_address or params.btc_destination_address
        if is_btc_token(params.to_chain_id, params.to_token_address):
            destination = destination or session.btc_destination_address
            address_check = validate_btc_address(destination)
            if not address_check:
                raise InvalidInputError(address_check.error)
            destination = destination.strip()
        params = params.model_copy(update={"btc_destination_address": destination})

        epoch = self._begin("quote")
        try:
            self._store.update(status=SwapStatus.QUOTING, quote=None)

            try:
                await self.wallet.require_correct_network()
            except NetworkMismatchError as e:
                if not self._superseded(epoch):
                    self._fail(str(e))
                return None
            if self._superseded(epoch):
                return None

            try:
                raw = await self.api.get_quote(params)
            except QuoteFetchError as e:
                if not self._superseded(epoch):
                    self._fail("Failed to get quote. Please try again.", e)
                return None
            if self._superseded(epoch):
                return None

            try:
                quote = format_quote(params, raw)
            except ValueError as e:
                self._fail("Received an invalid quote. Please try again.", e)
                return None

            self._store.update(
                status=SwapStatus.QUOTED,
                status_message=(
                    f"Quote received: {quote.from_amount} {quote.from_token} -> "
                    f"{quote.to_amount} {quote.to_token}"
                ),
                quote=quote,
                btc_destination_address=destination or session.btc_destination_address,
            )
            self.persist()
            logger.info(f"Quote {quote.quote_id} stored (rate {quote.rate})")
            return quote
        except Exception as e:
            if not self._superseded(epoch):
                self._fail("Failed to get quote. Please try again.", e)
            return None
        finally:
            self._end(epoch)

    async def confirm_swap(self) -> bool:
        """Initiate the swap for the held quote and start status polling.

        Retrying after a rejected signature is allowed: the quote is kept and
        no swap ID is assigned until the resolver accepts the swap.

        Returns:
            True if the swap was initiated

        Raises:
            SwapStateError: No confirmable quote, or an operation is in flight
            WalletNotConnectedError: No wallet connected
        """
        self._check_idle("confirm the swap")
        session = self.session
        if (
            session.quote is None
            or session.swap_id is not None
            or session.status not in (SwapStatus.QUOTED, SwapStatus.ERROR)
        ):
            raise SwapStateError(f"No quote to confirm (status {session.status.value})")
        if not self.wallet.is_connected:
            raise WalletNotConnectedError("Please connect your wallet first.")

        quote = session.quote
        epoch = self._begin("initiate")
        try:
            self._store.update(status=SwapStatus.INITIATING)

            try:
                await self.wallet.require_correct_network()
            except NetworkMismatchError as e:
                if not self._superseded(epoch):
                    self._fail(str(e))
                return False
            if self._superseded(epoch):
                return False

            try:
                refund_key = await self.wallet.get_refund_key()
            except SignatureRejectedError as e:
                if not self._superseded(epoch):
                    self._fail("Signature request was rejected. Confirm again to retry.", e)
                return False
            except WalletPromptTimeoutError as e:
                if not self._superseded(epoch):
                    self._fail("The wallet did not respond in time. Confirm again to retry.", e)
                return False
            except WalletError as e:
                if not self._superseded(epoch):
                    self._fail(f"Wallet error: {e}", e)
                return False
            if self._superseded(epoch):
                return False
            if not self.wallet.is_connected:
                self._fail("Wallet disconnected. Reconnect and confirm again.")
                return False

            request = InitiateSwapRequest(
                quote_id=quote.quote_id,
                user_btc_refund_pubkey=refund_key,
                user_evm_address=self.wallet.address,
                btc_destination_address=self.session.btc_destination_address,
            )
            try:
                response = await self.api.initiate_swap(request)
            except SwapInitiationError as e:
                if not self._superseded(epoch):
                    self._fail("Failed to initiate swap. Please try again.", e)
                return False
            if self._superseded(epoch):
                return False

            self._store.update(
                status=SwapStatus.PENDING_DEPOSIT,
                status_message=f"Swap initiated. Waiting for deposit to {response.btc_deposit_address}",
                swap_id=response.swap_id,
                btc_deposit_address=response.btc_deposit_address,
                deposit_expires_at=response.expires_at,
                confirmation_count=0,
                evm_tx_hash=None,
                btc_tx_hash=None,
            )
            self.persist()
            logger.info(f"Swap {response.swap_id} initiated for quote {quote.quote_id}")
            self._start_poller(response.swap_id)
            return True
        except Exception as e:
            if not self._superseded(epoch):
                self._fail("Failed to initiate swap. Please try again.", e)
            return False
        finally:
            self._end(epoch)

    def reset(self, clear_destination: bool = False) -> SwapSession:
        """Return to IDLE, dropping the quote and any swap.

        The poller is stopped before the swap ID is cleared. Any operation
        still awaiting the wallet or the resolver is abandoned.
        """
        self._stop_poller()
        self._epoch += 1
        self._operation = None

        destination = None if clear_destination else self.session.btc_destination_address
        session = self._store.replace_session(SwapSession(btc_destination_address=destination))
        self.persistence.clear()
        logger.info("Swap session reset")
        return session

    def restore(self) -> SwapSession:
        """Load the persisted session once at startup.

        A swap that has not finished gets a new status poller. Operations that
        were interrupted mid-flight fall back to the last stable state.
        Must be called with a running event loop if a swap may be resumed.
        """
        if self._restored:
            logger.warning("Session already restored, ignoring")
            return self.session
        self._restored = True

        snapshot = self.persistence.load()
        if snapshot is None:
            return self.session

        session = snapshot.to_session()
        if session.status == SwapStatus.QUOTING:
            session = SwapSession(btc_destination_address=session.btc_destination_address)
        elif session.status == SwapStatus.INITIATING:
            status = SwapStatus.QUOTED if session.quote else SwapStatus.IDLE
            session = replace(session, status=status, status_message=DEFAULT_MESSAGES[status])

        try:
            self._store.replace_session(session)
        except SwapStateError as e:
            logger.error(f"Discarding inconsistent persisted session: {e}")
            self.persistence.clear()
            return self.session

        logger.info(f"Restored session in status {session.status.value}")
        if session.is_active:
            self._start_poller(session.swap_id)
        return self.session

    def persist(self) -> bool:
        """Write the current session snapshot."""
        return self.persistence.save(PersistedSnapshot.from_session(self.session))

    async def close(self) -> None:
        """Stop the poller and wait for it to exit."""
        poller = self._poller
        self._stop_poller()
        if poller is not None:
            await poller.join()

    # ======================
    # Status updates
    # ======================

    def apply_status_update(
        self, swap_id: str, response: SwapStatusResponse
    ) -> Optional[SwapStatus]:
        """Apply a status report for ``swap_id``.

        Reports for a swap other than the current one are ignored, as are
        reports arriving after a terminal status.

        Returns:
            The session status after the update, or None if ignored
        """
        session = self.session
        if session.swap_id is None or session.swap_id != swap_id:
            logger.debug(f"Ignoring status for stale swap {swap_id}")
            return None
        if session.status.is_terminal:
            return session.status

        status = parse_server_status(response.status)
        if status is None or status in (SwapStatus.IDLE, SwapStatus.QUOTING, SwapStatus.QUOTED, SwapStatus.INITIATING):
            logger.warning(f"Unexpected status {response.status!r} for swap {swap_id}")
            status = session.status

        changes = {
            "status": status,
            "status_message": response.message or DEFAULT_MESSAGES[status],
            "confirmation_count": max(session.confirmation_count, response.confirmation_count or 0),
        }
        if response.evm_tx_hash:
            changes["evm_tx_hash"] = response.evm_tx_hash
        if response.btc_tx_hash:
            changes["btc_tx_hash"] = response.btc_tx_hash

        self._store.update(**changes)
        self.persist()

        if status.is_terminal:
            self._stop_poller()
        return status

    def handle_swap_not_found(self, swap_id: str) -> Optional[SwapStatus]:
        """The resolver no longer knows ``swap_id``.

        With a transaction hash already on record the swap went far enough
        that funds may have moved, so it becomes UNKNOWN (or COMPLETED when
        ``assume_completed_when_missing`` is set). Without one it is an ERROR.
        """
        session = self.session
        if session.swap_id is None or session.swap_id != swap_id or session.status.is_terminal:
            return None

        if session.has_tx_hash:
            if self.settings.assume_completed_when_missing:
                status = SwapStatus.COMPLETED
                message = "Swap completed (resolver no longer tracks it; transaction on record)."
            else:
                status = SwapStatus.UNKNOWN
                message = DEFAULT_MESSAGES[SwapStatus.UNKNOWN]
        else:
            status = SwapStatus.ERROR
            message = "Swap not found on the resolver. Do not send funds to the deposit address."

        self._store.update(status=status, status_message=message)
        self.persist()
        self._stop_poller()
        return status

    # ======================
    # Internals
    # ======================

    def _check_idle(self, action: str) -> None:
        if self._operation is not None:
            raise SwapStateError(f"Cannot {action}: {self._operation} already in progress")

    def _begin(self, operation: str) -> int:
        self._operation = operation
        return self._epoch

    def _end(self, epoch: int) -> None:
        if epoch == self._epoch:
            self._operation = None

    def _superseded(self, epoch: int) -> bool:
        if epoch != self._epoch:
            logger.info("Operation abandoned after session reset")
            return True
        return False

    def _fail(self, message: str, error: Optional[Exception] = None) -> None:
        if error is not None:
            logger.error(f"{message} ({type(error).__name__}: {error})")
        else:
            logger.error(message)
        self._store.update(status=SwapStatus.ERROR, status_message=message)
        self.persist()

    def _start_poller(self, swap_id: str) -> None:
        self._stop_poller()
        self._poller = StatusPoller(
            api=self.api,
            swap_id=swap_id,
            on_update=self.apply_status_update,
            on_not_found=self.handle_swap_not_found,
            interval=self.settings.poll_interval,
            sleep=self._sleep,
        )
        self._poller.start()

    def _stop_poller(self) -> None:
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
