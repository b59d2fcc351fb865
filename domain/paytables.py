from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .errors import PaytableError
from .payouts import KENO_MAX_PICKS

MAX_MULTIPLIER = 1000.0

# Risk tiers in increasing order of risk. Each row is indexed by hit count,
# so the row for N picks has N + 1 entries.
DEFAULT_KENO_TABLE: Dict[str, Any] = {
    "max_multiplier": MAX_MULTIPLIER,
    "tiers": [
        {
            "risk": "low",
            "rows": {
                "1": [0.70, 1.85],
                "2": [0.00, 2.00, 3.80],
                "3": [0.00, 1.10, 1.38, 26.00],
                "4": [0.00, 0.00, 2.20, 7.90, 90.00],
                "5": [0.00, 0.00, 1.50, 4.20, 13.00, 300.0],
                "6": [0.00, 0.00, 1.10, 2.00, 6.20, 100.0, 700.0],
                "7": [0.00, 0.00, 1.10, 1.60, 3.50, 15.00, 225.0, 700.0],
                "8": [0.00, 0.00, 1.10, 1.50, 2.00, 5.50, 39.00, 100.0, 800.0],
                "9": [0.00, 0.00, 1.10, 1.30, 1.70, 2.50, 7.50, 50.00, 250.0, 1000],
                "10": [0.00, 0.00, 1.10, 1.20, 1.30, 1.80, 3.50, 13.00, 50.00, 250.0, 1000],
            },
        },
        {
            "risk": "medium",
            "rows": {
                "1": [0.40, 2.75],
                "2": [0.00, 1.80, 5.10],
                "3": [0.00, 0.00, 2.80, 50.00],
                "4": [0.00, 0.00, 1.70, 10.00, 100.0],
                "5": [0.00, 0.00, 1.40, 4.00, 14.00, 390.0],
                "6": [0.00, 0.00, 0.00, 3.00, 9.00, 180.0, 710.0],
                "7": [0.00, 0.00, 0.00, 2.00, 7.00, 30.00, 400.0, 800.0],
                "8": [0.00, 0.00, 0.00, 2.00, 4.00, 11.00, 67.00, 400.0, 900.0],
                "9": [0.00, 0.00, 0.00, 2.00, 2.50, 5.00, 15.00, 100.0, 500.0, 1000],
                "10": [0.00, 0.00, 0.00, 1.60, 2.00, 4.00, 7.00, 26.00, 100.0, 500.0, 1000],
            },
        },
        {
            "risk": "high",
            "rows": {
                "1": [0.00, 3.96],
                "2": [0.00, 0.00, 17.10],
                "3": [0.00, 0.00, 0.00, 81.50],
                "4": [0.00, 0.00, 0.00, 10.00, 259.0],
                "5": [0.00, 0.00, 0.00, 4.50, 48.00, 450.0],
                "6": [0.00, 0.00, 0.00, 0.00, 11.00, 350.0, 710.0],
                "7": [0.00, 0.00, 0.00, 0.00, 7.00, 90.00, 400.0, 800.0],
                "8": [0.00, 0.00, 0.00, 0.00, 5.00, 20.00, 270.0, 600.0, 900.0],
                "9": [0.00, 0.00, 0.00, 0.00, 4.00, 11.00, 56.00, 500.0, 800.0, 1000],
                "10": [0.00, 0.00, 0.00, 0.00, 3.50, 8.00, 13.00, 63.00, 500.0, 800.0, 1000],
            },
        },
    ],
}


@dataclass(frozen=True)
class KenoPaytable:
    """
    Validated keno multipliers keyed by (risk, picks, hits).

    Build instances with `from_config`; the constructor does not validate.
    """

    risks: Tuple[str, ...]
    rows: Mapping[str, Mapping[int, Tuple[float, ...]]]
    max_multiplier: float = MAX_MULTIPLIER

    def multiplier(self, risk: str, picks: int, hits: int) -> float:
        row = self.rows.get(risk, {}).get(picks, ())
        if 0 <= hits < len(row):
            return row[hits]
        return 0.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "KenoPaytable":
        try:
            max_multiplier = float(config.get("max_multiplier", MAX_MULTIPLIER))
            tiers = config["tiers"]
        except (TypeError, ValueError, KeyError) as exc:
            raise PaytableError(f"keno paytable is malformed: {exc}") from exc

        if not tiers:
            raise PaytableError("keno paytable has no risk tiers")

        risks: List[str] = []
        rows: Dict[str, Dict[int, Tuple[float, ...]]] = {}
        for tier in tiers:
            risk = tier.get("risk") if isinstance(tier, Mapping) else None
            if not risk or risk in rows:
                raise PaytableError(f"risk tier name missing or repeated: {risk!r}")
            risks.append(risk)
            rows[risk] = _parse_rows(risk, tier.get("rows", {}), max_multiplier)

        _check_risk_order(risks, rows)
        return cls(risks=tuple(risks), rows=rows, max_multiplier=max_multiplier)


def _parse_rows(risk: str, raw: Mapping[str, Sequence[float]], max_multiplier: float) -> Dict[int, Tuple[float, ...]]:
    parsed: Dict[int, Tuple[float, ...]] = {}
    for picks in range(1, KENO_MAX_PICKS + 1):
        row = raw.get(str(picks), raw.get(picks))  # type: ignore[call-overload]
        if row is None:
            raise PaytableError(f"{risk}: no row for {picks} picks")
        if len(row) != picks + 1:
            raise PaytableError(
                f"{risk}: row for {picks} picks has {len(row)} entries, expected {picks + 1}"
            )
        values = tuple(float(v) for v in row)
        if any(v < 0 or v > max_multiplier for v in values):
            raise PaytableError(f"{risk}: row for {picks} picks has a multiplier outside 0..{max_multiplier:g}")
        parsed[picks] = values
    return parsed


def _check_risk_order(risks: Sequence[str], rows: Mapping[str, Mapping[int, Tuple[float, ...]]]) -> None:
    # A riskier tier must never pay less for a full hit than a safer one.
    for lower, higher in zip(risks, risks[1:]):
        for picks in range(1, KENO_MAX_PICKS + 1):
            if rows[higher][picks][-1] < rows[lower][picks][-1]:
                raise PaytableError(
                    f"{higher} pays less than {lower} for {picks}/{picks} hits"
                )


def load_keno_paytable(path: str | Path | None = None) -> KenoPaytable:
    """Load the keno paytable from a JSON file, or the built-in one."""

    if path is None:
        return KenoPaytable.from_config(DEFAULT_KENO_TABLE)

    try:
        config = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise PaytableError(f"cannot read keno paytable {path}: {exc}") from exc
    return KenoPaytable.from_config(config)
