"""Typed views over loosely shaped RPC rows.

Each RPC row is narrowed into one of these shapes as soon as it is received;
nothing past this module handles raw rows except as an opaque ``record``
carried inside result ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _score(value: float | None) -> str:
    return "" if value is None else f" (match {value:.3f})"


def _truncate(text: str, max_length: int = 240) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


@dataclass(slots=True, frozen=True)
class DonorHit:
    entity_id: int | None
    name: str
    total: float | None
    donation_count: int | None
    best_match: float | None
    employer: str
    occupation: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DonorHit":
        return cls(
            entity_id=_as_int(row.get("transaction_entity_id") or row.get("entity_id")),
            name=_as_str(row.get("entity_name") or row.get("name")),
            total=_as_float(row.get("total_to_recipient") or row.get("total_amount")),
            donation_count=_as_int(row.get("donation_count")),
            best_match=_as_float(row.get("best_match")),
            employer=_as_str(row.get("top_employer")),
            occupation=_as_str(row.get("top_occupation")),
        )

    @property
    def title(self) -> str:
        return self.name or f"Donor {self.entity_id}"

    @property
    def summary(self) -> str:
        parts: list[str] = []
        if self.total is not None:
            count = f" across {self.donation_count} donations" if self.donation_count else ""
            parts.append(f"${self.total:,.2f}{count}")
        if self.employer:
            parts.append(f"employer: {self.employer}")
        if self.occupation:
            parts.append(f"occupation: {self.occupation}")
        return "; ".join(parts) + _score(self.best_match)


@dataclass(slots=True, frozen=True)
class BillHit:
    bill_id: int | None
    bill_number: str
    title: str
    score: float | None
    vote: str
    vote_date: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "BillHit":
        bill_number = _as_str(row.get("bill_number"))
        title = _as_str(
            row.get("summary_title") or row.get("short_title") or row.get("title")
        )
        return cls(
            bill_id=_as_int(row.get("bill_id")),
            bill_number=bill_number,
            title=title or bill_number or f"Bill {row.get('bill_id')}",
            score=_as_float(row.get("score") if "score" in row else row.get("similarity")),
            vote=_as_str(row.get("vote")),
            vote_date=_as_str(row.get("vote_date")),
        )

    @property
    def summary(self) -> str:
        parts: list[str] = []
        if self.bill_number:
            parts.append(self.bill_number)
        if self.vote:
            voted = f"voted {self.vote}"
            if self.vote_date:
                voted += f" on {self.vote_date}"
            parts.append(voted)
        return _truncate("; ".join(parts) + _score(self.score))


@dataclass(slots=True, frozen=True)
class RtsHit:
    position_id: int | None
    bill_id: int | None
    bill_number: str
    entity: str
    position: str
    comment: str
    score: float | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RtsHit":
        return cls(
            position_id=_as_int(row.get("position_id") or row.get("rts_id") or row.get("id")),
            bill_id=_as_int(row.get("bill_id")),
            bill_number=_as_str(row.get("bill_number")),
            entity=_as_str(
                row.get("entity_name") or row.get("organization") or row.get("name")
            ),
            position=_as_str(row.get("position")),
            comment=_as_str(row.get("comment") or row.get("comments")),
            score=_as_float(row.get("score") if "score" in row else row.get("similarity")),
        )

    @property
    def title(self) -> str:
        who = self.entity or "Stakeholder"
        target = self.bill_number or (f"bill {self.bill_id}" if self.bill_id else "")
        position = self.position or "position"
        return f"{who}: {position} {target}".strip()

    @property
    def summary(self) -> str:
        return _truncate(self.comment) + _score(self.score)
