"""Local referral state and its reconciliation with the API.

The backend keeps no information about the user or the app, so it cannot
list the referrals an installation created. Instead the store keeps every
generated referral locally and checks them one by one against the API.

It also tracks the one code this installation received through a referral
link. A user can redeem only one code, ever:

1. ``save_received_code(code, ReceivedCodeState.INSTALLED)`` when the app
   was opened via a link
2. ``save_received_code(code, ReceivedCodeState.REDEEMED)`` once
   ``use_code`` reported success (``redeem_received_code`` does both the
   call and the bookkeeping)
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Iterable

from pydantic import TypeAdapter, ValidationError

from idoheart.client import IDoHeartClient
from idoheart.exceptions import (
    AlreadyRedeemedError,
    DebugModeRequiredError,
    IDoHeartError,
    NoAPIKeyError,
    RequestFailedError,
    SelfRedemptionError,
    StorageError,
)
from idoheart.logging_config import get_logger
from idoheart.models import ReceivedCode, ReceivedCodeState, Referral, UseCodeResult, now
from idoheart.settings import Settings
from idoheart.storage import RECEIVED_CODE_KEY, SENT_REFERRALS_KEY, JsonFileStorage

logger = get_logger(__name__)

_referral_list = TypeAdapter(list[Referral])


class StoreEvent(Enum):
    """Kind of state change emitted to subscribers."""

    SENT_REFERRALS_CHANGED = "sent_referrals_changed"
    RECEIVED_CODE_CHANGED = "received_code_changed"


Listener = Callable[[StoreEvent, "ReferralStore"], Any]


class ReferralStore:
    """Referrals sent by this installation and the code it received."""

    def __init__(
        self,
        client: IDoHeartClient,
        storage: Any,
        allow_self_redemption: bool = False,
        debug: bool = False,
    ):
        """Initialize the store.

        Call ``load()`` before use to read the persisted state.

        Args:
            client: API client used for checks, generation and redemption
            storage: Key/value storage (``get``/``set``/``remove``)
            allow_self_redemption: Allow saving or redeeming own codes
            debug: Enable debug-only facilities
        """
        self.client = client
        self.storage = storage
        self.allow_self_redemption = allow_self_redemption
        self.debug = debug
        self._sent_referrals: list[Referral] = []
        self._received_code: ReceivedCode | None = None
        self._listeners: list[Listener] = []
        self._lock = asyncio.Lock()
        self._redeem_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: IDoHeartClient | None = None,
    ) -> "ReferralStore":
        """Build a loaded store backed by the configured JSON file."""
        client = client or IDoHeartClient(
            api_key=settings.api_key,
            base_url=settings.base_url,
            is_logging=settings.is_logging,
        )
        store = cls(
            client=client,
            storage=JsonFileStorage(settings.storage_path),
            allow_self_redemption=settings.allow_self_redemption,
            debug=settings.debug,
        )
        store.load()
        return store

    # ==================== STATE ====================

    @property
    def sent_referrals(self) -> tuple[Referral, ...]:
        """All referrals this installation generated, in creation order."""
        return tuple(self._sent_referrals)

    @property
    def used_referrals(self) -> tuple[Referral, ...]:
        """Referrals used at least once."""
        return tuple(r for r in self._sent_referrals if r.is_used)

    @property
    def used_referrals_count(self) -> int:
        """Total number of redemptions across all sent referrals."""
        return sum(r.used_count for r in self.used_referrals)

    @property
    def received_code(self) -> ReceivedCode | None:
        return self._received_code

    @property
    def has_redeemed(self) -> bool:
        return self._received_code is not None and self._received_code.is_redeemed

    # ==================== PERSISTENCE ====================

    def load(self) -> None:
        """Read persisted state, falling back to empty defaults."""
        self._received_code = None
        raw_received = self._read(RECEIVED_CODE_KEY)
        if raw_received is not None:
            try:
                self._received_code = ReceivedCode.model_validate(raw_received)
            except ValidationError as e:
                logger.warning("received_code_invalid", error=str(e))

        self._sent_referrals = []
        raw_referrals = self._read(SENT_REFERRALS_KEY)
        if raw_referrals is not None:
            try:
                self._sent_referrals = self._unique(
                    _referral_list.validate_python(raw_referrals)
                )
            except ValidationError as e:
                logger.warning("sent_referrals_invalid", error=str(e))

        logger.info(
            "store_loaded",
            sent_referrals=[f"{r.code}, {r.used_count}" for r in self._sent_referrals],
            received_code=self._received_code.code if self._received_code else None,
            redeemed=self.has_redeemed,
        )

    def _read(self, key: str) -> Any | None:
        try:
            return self.storage.get(key)
        except StorageError as e:
            logger.warning("storage_read_failed", key=key, error=str(e))
            return None

    def _persist(self, key: str, value: Any | None) -> None:
        """Write one key. Failures are logged, never raised."""
        try:
            if value is None:
                self.storage.remove(key)
            else:
                self.storage.set(key, value)
        except (StorageError, OSError, TypeError, ValueError) as e:
            logger.error("storage_write_failed", key=key, error=str(e))

    def _save_sent_referrals(self) -> None:
        self._persist(
            SENT_REFERRALS_KEY,
            [r.to_json_dict() for r in self._sent_referrals],
        )
        logger.debug(
            "sent_referrals_saved",
            sent_referrals=[f"{r.code}, {r.used_count}" for r in self._sent_referrals],
        )

    def _save_received_code(self) -> None:
        self._persist(
            RECEIVED_CODE_KEY,
            self._received_code.to_json_dict() if self._received_code else None,
        )

    # ==================== NOTIFICATIONS ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state change listener.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception as e:
                logger.warning("listener_failed", event_name=event.value, error=str(e))

    # ==================== SENT REFERRALS ====================

    @staticmethod
    def _unique(referrals: Iterable[Referral]) -> list[Referral]:
        seen: set[str] = set()
        unique = []
        for referral in referrals:
            if referral.code in seen:
                continue
            seen.add(referral.code)
            unique.append(referral)
        return unique

    def add_referral(self, referral: Referral) -> bool:
        """Add a newly generated referral.

        A referral whose code is already known is ignored.

        Returns:
            True if the referral was added
        """
        if self.sent_referral(referral.code) is not None:
            logger.warning("referral_already_known", code=referral.code)
            return False

        self._sent_referrals.append(referral)
        self._save_sent_referrals()
        logger.info("referral_added", code=referral.code)
        self._notify(StoreEvent.SENT_REFERRALS_CHANGED)
        return True

    def sent_referral(self, code: str) -> Referral | None:
        """Retrieve a locally stored referral by code."""
        return next((r for r in self._sent_referrals if r.code == code), None)

    async def generate_referral(self) -> Referral:
        """Create a referral via the API and keep it locally."""
        referral = await self.client.generate_code()
        self.add_referral(referral)
        return referral

    async def reconcile_sent_referrals(self, preserve_unconfirmed: bool = False) -> None:
        """Check every local referral against the API.

        Codes are checked one at a time in local order. The local list is
        then replaced by the referrals the server confirmed, so a code that
        fails the check disappears locally. With ``preserve_unconfirmed``
        only codes the server reports as not found (404) are dropped; other
        failures keep the local copy. Referrals added while the pass is
        running were not part of it and are kept after the checked ones.

        Raises:
            NoAPIKeyError: If the client is not configured. Nothing changes.
        """
        async with self._lock:
            checked = list(self._sent_referrals)
            checked_codes = {r.code for r in checked}
            reconciled: list[Referral] = []
            for referral in checked:
                logger.debug("checking_referral", code=referral.code)
                try:
                    remote = await self.client.check_code(referral.code)
                except NoAPIKeyError:
                    raise
                except IDoHeartError as e:
                    not_found = isinstance(e, RequestFailedError) and e.not_found
                    logger.warning(
                        "referral_not_confirmed",
                        code=referral.code,
                        error=e.message,
                        not_found=not_found,
                    )
                    if preserve_unconfirmed and not not_found:
                        reconciled.append(referral)
                    continue

                logger.debug(
                    "referral_confirmed",
                    code=remote.code,
                    used_count=remote.used_count,
                )
                reconciled.append(remote)

            added_meanwhile = [r for r in self._sent_referrals if r.code not in checked_codes]
            self._sent_referrals = self._unique(reconciled + added_meanwhile)
            logger.info(
                "sent_referrals_reconciled",
                sent_referrals=[f"{r.code}, {r.used_count}" for r in self._sent_referrals],
                used_referrals_count=self.used_referrals_count,
            )
            self._save_sent_referrals()
            self._notify(StoreEvent.SENT_REFERRALS_CHANGED)

    # ==================== RECEIVED CODE ====================

    def _is_own_code(self, code: str) -> bool:
        return not self.allow_self_redemption and self.sent_referral(code) is not None

    def save_received_code(self, code: str, state: ReceivedCodeState) -> bool:
        """Record the code this installation received.

        The newest call wins, including a downgrade from redeemed back to
        installed for the same code. A redeemed record is never replaced by
        a different code; use ``reset_received_code`` for that.

        Returns:
            True if the record was saved
        """
        if self._is_own_code(code):
            # Does not stop a reinstall from redeeming its own old code
            logger.warning("own_referral_code_not_saved", code=code)
            return False

        current = self._received_code
        if current is not None and current.is_redeemed and current.code != code:
            logger.warning(
                "received_code_already_redeemed",
                code=code,
                redeemed_code=current.code,
            )
            return False

        self._received_code = ReceivedCode(code=code, timestamp=now(), state=state)
        self._save_received_code()
        logger.info("received_code_saved", code=code, state=state.value)
        self._notify(StoreEvent.RECEIVED_CODE_CHANGED)
        return True

    async def redeem_received_code(self, code: str | None = None) -> UseCodeResult:
        """Redeem ``code``, or the stored received code, via the API.

        On success the received code moves to the redeemed state. API errors
        propagate to the caller.

        Raises:
            AlreadyRedeemedError: If a code was redeemed before
            SelfRedemptionError: If the code is one of this installation's own
            IDoHeartError: If there is no code to redeem
        """
        async with self._redeem_lock:
            if self.has_redeemed:
                raise AlreadyRedeemedError(self._received_code.code)

            if code is None:
                if self._received_code is None:
                    raise IDoHeartError("No received code to redeem")
                code = self._received_code.code

            if self._is_own_code(code):
                raise SelfRedemptionError(code)

            result = await self.client.use_code(code)
            if result.success:
                self.save_received_code(code, ReceivedCodeState.REDEEMED)
            else:
                logger.warning("redeem_rejected", code=code, used_count=result.used_count)
            return result

    def reset_received_code(self) -> None:
        """Forget the received code. Debug only."""
        if not self.debug:
            raise DebugModeRequiredError("reset_received_code requires debug mode")
        self._received_code = None
        self._save_received_code()
        logger.info("received_code_reset")
        self._notify(StoreEvent.RECEIVED_CODE_CHANGED)
