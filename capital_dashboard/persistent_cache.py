"""Local JSON snapshot of a user's state, used when the database is unavailable."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from . import config
from .state import FinanceState, state_from_dict, state_to_dict

logger = logging.getLogger(__name__)


def snapshot_path(user_id: str, cache_dir: Path | None = None) -> Path:
    safe_id = re.sub(r'[^A-Za-z0-9_\-]', '_', user_id) or 'default'
    return (cache_dir or config.CACHE_DIR) / f"{safe_id}.json"


def load_snapshot(user_id: str, cache_dir: Path | None = None) -> FinanceState:
    target = snapshot_path(user_id, cache_dir)
    if not target.exists():
        return FinanceState()
    try:
        with target.open('r', encoding='utf-8') as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            return FinanceState()
        return state_from_dict(data)
    except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
        logger.warning("Ignoring unreadable snapshot %s: %s", target, e)
        return FinanceState()


def save_snapshot(user_id: str, state: FinanceState, cache_dir: Path | None = None) -> None:
    target = snapshot_path(user_id, cache_dir)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open('w', encoding='utf-8') as handle:
        json.dump(state_to_dict(state), handle, indent=2, sort_keys=True, ensure_ascii=False)
