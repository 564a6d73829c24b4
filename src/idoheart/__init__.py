"""IDoHeart referral SDK.

Usage::

    client = IDoHeartClient()
    client.configure(api_key="abc...")
    store = ReferralStore(client, JsonFileStorage("~/.idoheart/store.json"))
    store.load()

    referral = await store.generate_referral()
    await store.reconcile_sent_referrals()
"""

from idoheart.client import IDoHeartClient
from idoheart.exceptions import (
    AlreadyRedeemedError,
    CorruptStorageError,
    DebugModeRequiredError,
    DecodingFailedError,
    IDoHeartError,
    InvalidURLError,
    NoAPIKeyError,
    RequestFailedError,
    SelfRedemptionError,
    StorageError,
)
from idoheart.models import ReceivedCode, ReceivedCodeState, Referral, UseCodeResult
from idoheart.storage import JsonFileStorage, MemoryStorage
from idoheart.store import ReferralStore, StoreEvent

__all__ = [
    "AlreadyRedeemedError",
    "CorruptStorageError",
    "DebugModeRequiredError",
    "DecodingFailedError",
    "IDoHeartClient",
    "IDoHeartError",
    "InvalidURLError",
    "JsonFileStorage",
    "MemoryStorage",
    "NoAPIKeyError",
    "ReceivedCode",
    "ReceivedCodeState",
    "Referral",
    "ReferralStore",
    "RequestFailedError",
    "SelfRedemptionError",
    "StorageError",
    "StoreEvent",
    "UseCodeResult",
]
