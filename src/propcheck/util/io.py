"""Strict YAML / JSON loading with Pydantic validation."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError

from propcheck.models.rules import FirmCatalog, RuleSet
from propcheck.util.errors import CatalogLoadError


def _load_yaml_mapping(path: Path, what: str) -> Dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise CatalogLoadError(f"{what} YAML could not be parsed: {e}") from e
    if not isinstance(raw, dict):
        raise CatalogLoadError(f"{what} YAML must parse to a mapping at top level.")
    return raw


def load_catalog_yaml(path: str | Path) -> FirmCatalog:
    """Load and validate a FirmCatalog from a YAML file."""
    raw = _load_yaml_mapping(Path(path), "Catalog")
    try:
        return FirmCatalog.model_validate(raw)
    except ValidationError as e:
        raise CatalogLoadError(f"Catalog validation failed: {e}") from e


def load_rules_yaml(path: str | Path) -> RuleSet:
    """Load and validate a single RuleSet from a YAML file."""
    raw = _load_yaml_mapping(Path(path), "Rule set")
    try:
        return RuleSet.model_validate(raw)
    except ValidationError as e:
        raise CatalogLoadError(f"Rule set validation failed: {e}") from e


def load_json(path: str | Path) -> Dict[str, Any]:
    """Load a JSON file and return it as a dict."""
    path = Path(path)
    obj = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(obj, dict):
        raise ValueError("JSON fixture must be an object.")
    return obj


def load_jsonl(path: str | Path) -> List[Dict[str, Any]]:
    """Load a JSONL file, skipping blank lines."""
    rows = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line:
            rows.append(json.loads(line))
    return rows
