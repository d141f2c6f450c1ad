# subledger/store.py
# Collaborators the reconciler talks to: obligation lookup, category lookup,
# the append-only ledger and the anchor update.
from __future__ import annotations

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from subledger.models import (
    Benefit,
    Category,
    LedgerEntry,
    Obligation,
    normalize_benefit,
    normalize_category,
    normalize_obligation,
)

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_PREFIX = "spend"

# Fields a caller may patch through update_obligation
PATCHABLE_FIELDS = (
    "name",
    "amount",
    "cadence",
    "interval_days",
    "category_id",
    "start_date",
    "last_logged_date",
    "end_date",
    "notes",
)

# Fields a caller may patch through update_benefit
BENEFIT_PATCHABLE_FIELDS = (
    "name",
    "amount",
    "cadence",
    "interval_days",
    "start_date",
    "valid_period_start",
    "valid_period_end",
    "used",
    "credit_card",
)


class StoreError(Exception):
    """Generic read/write failure in a collaborator store."""


class NotFoundError(StoreError):
    pass


class ConflictError(StoreError):
    pass


def _now_stamp() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _row_id(row: Dict[str, Any]) -> str:
    return str(row.get("id") or row.get("ID") or "").strip()


def next_id_after(existing_ids: Iterable[str], prefix: str = DEFAULT_LEDGER_PREFIX) -> str:
    """``prefix-N`` where N is one past the largest numeric suffix seen."""
    pat = re.compile(rf"^{re.escape(prefix)}-(\d+)$", re.IGNORECASE)
    highest = 0
    for raw in existing_ids:
        m = pat.match(str(raw or "").strip())
        if m:
            highest = max(highest, int(m.group(1)))
    return f"{prefix}-{highest + 1}"


class ObligationStore(ABC):
    @abstractmethod
    def load_obligation(self, obligation_id: str) -> Optional[Obligation]:
        ...

    @abstractmethod
    def list_obligations(self) -> List[Obligation]:
        ...

    @abstractmethod
    def resolve_category(self, category_id: str) -> Optional[Category]:
        ...

    @abstractmethod
    def next_ledger_id(self) -> str:
        ...

    @abstractmethod
    def append_ledger_entry(self, entry: LedgerEntry) -> str:
        ...

    @abstractmethod
    def advance_anchor(self, obligation_id: str, new_last_logged: date) -> Obligation:
        ...

    @abstractmethod
    def create_obligation(self, obligation: Obligation) -> Obligation:
        ...

    @abstractmethod
    def update_obligation(self, obligation_id: str, patch: Dict[str, Any]) -> Obligation:
        ...

    # ---- card benefits ----
    @abstractmethod
    def list_benefits(self) -> List[Benefit]:
        ...

    @abstractmethod
    def load_benefit(self, benefit_id: str) -> Optional[Benefit]:
        ...

    @abstractmethod
    def create_benefit(self, benefit: Benefit) -> Benefit:
        ...

    @abstractmethod
    def update_benefit(self, benefit_id: str, patch: Dict[str, Any]) -> Benefit:
        ...

    @abstractmethod
    def delete_benefit(self, benefit_id: str) -> None:
        ...


def _apply_patch(item, patch: Dict[str, Any], fields=PATCHABLE_FIELDS):
    unknown = set(patch) - set(fields)
    if unknown:
        raise StoreError(f"unknown fields: {sorted(unknown)}")
    return replace(item, updated_at=_now_stamp(), **patch)


# ------------------ in-memory ------------------
class MemoryStore(ObligationStore):
    """Dict-backed store for tests and local experiments."""

    def __init__(self, obligations=(), categories=(), ledger=(), benefits=(),
                 ledger_prefix: str = DEFAULT_LEDGER_PREFIX):
        self.obligations: Dict[str, Obligation] = {o.id: o for o in obligations}
        self.categories: Dict[str, Category] = {c.id: c for c in categories}
        self.ledger: List[LedgerEntry] = list(ledger)
        self.benefits: Dict[str, Benefit] = {b.id: b for b in benefits}
        self.ledger_prefix = ledger_prefix
        self._lock = threading.Lock()

    def load_obligation(self, obligation_id):
        return self.obligations.get(obligation_id)

    def list_obligations(self):
        return list(self.obligations.values())

    def resolve_category(self, category_id):
        return self.categories.get(category_id)

    def next_ledger_id(self):
        return next_id_after((e.id for e in self.ledger), self.ledger_prefix)

    def append_ledger_entry(self, entry):
        with self._lock:
            self.ledger.append(entry)
        return entry.id

    def advance_anchor(self, obligation_id, new_last_logged):
        with self._lock:
            ob = self.obligations.get(obligation_id)
            if ob is None:
                raise NotFoundError(obligation_id)
            if ob.last_logged_date != new_last_logged:
                ob = replace(ob, last_logged_date=new_last_logged, updated_at=_now_stamp())
                self.obligations[obligation_id] = ob
            return ob

    def create_obligation(self, obligation):
        with self._lock:
            if obligation.id in self.obligations:
                raise ConflictError(obligation.id)
            self.obligations[obligation.id] = obligation
        return obligation

    def update_obligation(self, obligation_id, patch):
        with self._lock:
            ob = self.obligations.get(obligation_id)
            if ob is None:
                raise NotFoundError(obligation_id)
            ob = _apply_patch(ob, patch)
            self.obligations[obligation_id] = ob
            return ob

    def list_benefits(self):
        return list(self.benefits.values())

    def load_benefit(self, benefit_id):
        return self.benefits.get(benefit_id)

    def create_benefit(self, benefit):
        with self._lock:
            if benefit.id in self.benefits:
                raise ConflictError(benefit.id)
            self.benefits[benefit.id] = benefit
        return benefit

    def update_benefit(self, benefit_id, patch):
        with self._lock:
            b = self.benefits.get(benefit_id)
            if b is None:
                raise NotFoundError(benefit_id)
            b = _apply_patch(b, patch, BENEFIT_PATCHABLE_FIELDS)
            self.benefits[benefit_id] = b
            return b

    def delete_benefit(self, benefit_id):
        with self._lock:
            if self.benefits.pop(benefit_id, None) is None:
                raise NotFoundError(benefit_id)


# ------------------ JSON files ------------------
class JsonFileStore(ObligationStore):
    """
    File-backed store under one directory:
      subscriptions.json  list of obligation objects (camelCase keys)
      categories.json     list of {id, name, type}
      benefits.json       list of card benefit objects (camelCase keys)
      ledger.ndjson       one ledger entry per line, append-only
    """

    def __init__(self, base_dir: Path, ledger_prefix: str = DEFAULT_LEDGER_PREFIX):
        self.base_dir = Path(base_dir)
        self.ledger_prefix = ledger_prefix
        self._lock = threading.Lock()

    @property
    def subscriptions_path(self) -> Path:
        return self.base_dir / "subscriptions.json"

    @property
    def categories_path(self) -> Path:
        return self.base_dir / "categories.json"

    @property
    def ledger_path(self) -> Path:
        return self.base_dir / "ledger.ndjson"

    @property
    def benefits_path(self) -> Path:
        return self.base_dir / "benefits.json"

    # ---- raw I/O ----
    def _read_list(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, ValueError) as e:
            raise StoreError(f"could not read {path.name}: {e}") from e
        if not isinstance(data, list):
            raise StoreError(f"{path.name} must hold a JSON list")
        return [r for r in data if isinstance(r, dict)]

    def _write_list(self, path: Path, rows: List[Dict[str, Any]]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise StoreError(f"could not write {path.name}: {e}") from e

    def _read_ledger_rows(self) -> List[Dict[str, Any]]:
        if not self.ledger_path.exists():
            return []
        rows = []
        try:
            with self.ledger_path.open("r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        rows.append(json.loads(line))
                    except ValueError:
                        logger.warning("Skipping malformed ledger line in %s", self.ledger_path)
        except OSError as e:
            raise StoreError(f"could not read ledger: {e}") from e
        return rows

    def _obligation_rows(self) -> List[Dict[str, Any]]:
        return self._read_list(self.subscriptions_path)

    def _replace_row(self, path: Path, row_id: str, normalize, build):
        with self._lock:
            rows = self._read_list(path)
            for i, row in enumerate(rows):
                if _row_id(row) == row_id:
                    updated = build(normalize(row))
                    rows[i] = updated.to_dict()
                    self._write_list(path, rows)
                    return updated
        raise NotFoundError(row_id)

    def _replace_obligation(self, obligation_id: str, build) -> Obligation:
        return self._replace_row(self.subscriptions_path, obligation_id, normalize_obligation, build)

    # ---- interface ----
    def load_obligation(self, obligation_id):
        for row in self._obligation_rows():
            if _row_id(row) == obligation_id:
                return normalize_obligation(row)
        return None

    def list_obligations(self):
        return [normalize_obligation(r) for r in self._obligation_rows()]

    def resolve_category(self, category_id):
        for row in self._read_list(self.categories_path):
            cat = normalize_category(row)
            if cat and cat.id == category_id:
                return cat
        return None

    def next_ledger_id(self):
        return next_id_after((r.get("id") for r in self._read_ledger_rows()), self.ledger_prefix)

    def append_ledger_entry(self, entry):
        line = json.dumps(entry.to_dict(), separators=(",", ":")).encode("utf-8")
        with self._lock:
            try:
                self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
                # surrounding newlines keep a torn previous write from gluing lines
                with self.ledger_path.open("ab") as f:
                    f.write(b"\n")
                    f.write(line)
                    f.write(b"\n")
            except OSError as e:
                raise StoreError(f"could not append ledger entry: {e}") from e
        return entry.id

    def advance_anchor(self, obligation_id, new_last_logged):
        def build(ob: Obligation) -> Obligation:
            if ob.last_logged_date == new_last_logged:
                return ob
            return replace(ob, last_logged_date=new_last_logged, updated_at=_now_stamp())
        return self._replace_obligation(obligation_id, build)

    def create_obligation(self, obligation):
        with self._lock:
            rows = self._obligation_rows()
            if any(_row_id(r) == obligation.id for r in rows):
                raise ConflictError(obligation.id)
            rows.append(obligation.to_dict())
            self._write_list(self.subscriptions_path, rows)
        return obligation

    def update_obligation(self, obligation_id, patch):
        return self._replace_obligation(obligation_id, lambda ob: _apply_patch(ob, patch))

    def list_benefits(self):
        return [normalize_benefit(r) for r in self._read_list(self.benefits_path)]

    def load_benefit(self, benefit_id):
        for row in self._read_list(self.benefits_path):
            if _row_id(row) == benefit_id:
                return normalize_benefit(row)
        return None

    def create_benefit(self, benefit):
        with self._lock:
            rows = self._read_list(self.benefits_path)
            if any(_row_id(r) == benefit.id for r in rows):
                raise ConflictError(benefit.id)
            rows.append(benefit.to_dict())
            self._write_list(self.benefits_path, rows)
        return benefit

    def update_benefit(self, benefit_id, patch):
        return self._replace_row(
            self.benefits_path,
            benefit_id,
            normalize_benefit,
            lambda b: _apply_patch(b, patch, BENEFIT_PATCHABLE_FIELDS),
        )

    def delete_benefit(self, benefit_id):
        with self._lock:
            rows = self._read_list(self.benefits_path)
            kept = [r for r in rows if _row_id(r) != benefit_id]
            if len(kept) == len(rows):
                raise NotFoundError(benefit_id)
            self._write_list(self.benefits_path, kept)
