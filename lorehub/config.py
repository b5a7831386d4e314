"""
lorehub.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for deployment settings (community identity, API
port, quest timing) and, optionally, a replacement quest catalog.
Secrets and connection strings stay in the environment (``.env``).

Usage::

    from lorehub.config import load_config

    cfg = load_config()               # reads ./config.yaml by default
    print(cfg.community_name)         # "Lorehub Dev"
    print(cfg.quest_catalog.types())  # ("create_post", "comment_post", "like_post")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from lorehub.engine.quests import DEFAULT_QUEST_CATALOG, QuestCatalog, QuestTemplate


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LorehubConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # API
    api_port: int

    # Quests
    quest_duration_hours: int = 24
    quest_sweep_interval_minutes: int = 60
    quest_catalog: QuestCatalog = field(default=DEFAULT_QUEST_CATALOG)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> LorehubConfig:
    """Read *path* and return a :class:`LorehubConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    duration = int(raw.get("quest_duration_hours", 24))
    quests = raw.get("quests")
    if quests:
        catalog = QuestCatalog(
            templates=tuple(_parse_quest_template(q) for q in quests),
            duration_hours=duration,
        )
    else:
        catalog = DEFAULT_QUEST_CATALOG.with_duration(duration)

    return LorehubConfig(
        community_name=raw["community_name"],
        api_port=int(raw["api_port"]),
        quest_duration_hours=duration,
        quest_sweep_interval_minutes=int(raw.get("quest_sweep_interval_minutes", 60)),
        quest_catalog=catalog,
    )


def _parse_quest_template(raw: dict) -> QuestTemplate:
    return QuestTemplate(
        type=raw["type"],
        title=raw["title"],
        description=raw.get("description", ""),
        target_amount=int(raw["target_amount"]),
        reward=int(raw["reward"]),
        action=raw["action"],
    )
