"""
Lorehub — Reward Progression for a Knowledge-Sharing Community
===============================================================
Members write posts, comment, like, bookmark and follow each other.
Lorehub turns that activity into daily quests, permanent achievements
and a coin economy spent in a cosmetic shop.

Package layout::

    lorehub/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Slot types, profile limits, notification types
    ├── errors.py          # Domain exception hierarchy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session helper, async bridge
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default achievement + shop catalogs
    ├── engine/
    │   ├── events.py      # ActionEvent envelope + ActionType
    │   ├── quests.py      # Quest catalog + pure progress/expiry rules
    │   ├── achievements.py # Criteria parsing + unlock evaluation
    │   └── dispatch.py    # ActionDispatcher (action → subscribers)
    ├── services/
    │   ├── ledger.py              # Row locks, coin credit/debit
    │   ├── quest_service.py       # Daily quest lifecycle
    │   ├── achievement_service.py # Lifetime counters + unlocks
    │   ├── shop_service.py        # Purchases + slot activation
    │   ├── profile_service.py     # Profile edits (cosmetic slots)
    │   ├── action_service.py      # Posts, comments, likes, follows …
    │   └── notification_service.py # Notifier → notifications table
    └── api/
        ├── main.py        # FastAPI app + quest sweep task
        ├── deps.py        # Engine, config, JWT identity
        └── routes/        # quests, achievements, shop, users, posts, admin
"""

__version__ = "0.1.0"
