"""Linkcal — Calendar Linking and Meeting Synchronization

Philosophy:
    One person, many calendars. A user links every Google and Microsoft
    mailbox they work from, and Linkcal keeps a single local picture of
    their meetings consistent with each remote calendar.

Sync Pipeline:
    1. Token Manager — exchange the stored refresh token for an access token
    2. Provider Adapter — fetch raw events inside the sliding fetch window
    3. Validator — drop malformed and self-generated placeholder events
    4. Deduplicator — collapse repeated external ids (last one wins)
    5. Diff Engine — compute insert/update/delete sets against the store
    6. Sync Applier — commit deletes, inserts, then updates
    7. Forwarder — optional busy-time placeholders on other linked accounts

Components:
    models.py: Data models (LinkedAccount, NormalizedMeeting, Meeting)
    store.py: SQLite persistence for accounts and meetings
    token_manager.py: OAuth refresh and refresh-token rotation
    providers/: Platform-specific calendar adapters
    sync/: Validation, dedupe, diff, apply, orchestration
    forwarder.py: Timeblock placeholders between linked accounts
    webhooks.py: Push-notification dispatch to the sync engine
"""

from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "args"
DATA_PATH = PROJECT_ROOT / "data"
DB_PATH = DATA_PATH / "linkcal.db"

__version__ = "0.1.0"
