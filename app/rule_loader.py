import json
import os
from pathlib import Path
from threading import Lock

# Path to JSON files
DATA_PATH = Path(__file__).resolve().parent / "data"

# Development mode flag
DEV_MODE = os.environ.get("DEV_MODE") == "1"

# Module-level caches
_cached_parser_rules = None
_cached_validation_rules = None

# Lock to make cache thread-safe
_cache_lock = Lock()


def load_json(file_name: str):
    """Load a JSON file from the data folder."""
    file_path = DATA_PATH / file_name
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def reset_cache():
    """Manually reset all caches."""
    global _cached_parser_rules, _cached_validation_rules
    with _cache_lock:
        _cached_parser_rules = None
        _cached_validation_rules = None


def _load_parser_rules():
    global _cached_parser_rules
    _cached_parser_rules = load_json("parser_rules.json")


def _load_validation_rules():
    global _cached_validation_rules
    _cached_validation_rules = load_json("validation_rules.json")


with _cache_lock:
    _load_parser_rules()
    _load_validation_rules()


def get_parser_rules():
    with _cache_lock:
        if DEV_MODE or _cached_parser_rules is None:
            _load_parser_rules()
        return _cached_parser_rules


def get_validation_rules():
    with _cache_lock:
        if DEV_MODE or _cached_validation_rules is None:
            _load_validation_rules()
        return _cached_validation_rules


def get_base_costs():
    """Flatten the base cost table into rows for listing."""
    rules = get_parser_rules()
    return [
        {"item_type": item_type, "category": category, "base_cost": cost}
        for item_type, costs in rules["base_costs"].items()
        for category, cost in costs.items()
    ]
