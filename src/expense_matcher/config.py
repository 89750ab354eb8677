"""
Configuration management (SSOT).

This module defines ALL configuration for the expense matcher.
All config keys are defined here; no other module should invent config keys.

Key invariants:
- Matching weights are tuning parameters and must sum to 1.0
- Confidence thresholds live on the 0-100 scale used by stored matches
- The minimum confidence floor applies to every caller (lookup and sweep)
  and never exceeds the weakest possible candidate score, so a sweep at
  threshold 0 matches every receipt that has candidates
"""

import os
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from pathlib import Path

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


DEFAULT_DATE_FORMATS = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%d.%m.%Y",
    "%Y/%m/%d",
]


@dataclass
class MatchingConfig:
    """Candidate windows, scoring weights and thresholds."""

    # Symmetric window around the receipt date (days); card posting drifts
    date_window_days: int = 7
    # Amount window: absolute OR relative tolerance against the receipt total
    amount_tolerance_abs: Decimal = Decimal("1.00")
    amount_tolerance_pct: float = 10.0
    # Sub-score weights (sum to 1.0); merchant text is the weakest signal
    weight_amount: float = 0.45
    weight_date: float = 0.35
    weight_text: float = 0.20
    # Candidates scoring below this are never persisted; at most
    # lowest_candidate_score()
    min_confidence: float = 4.0
    # Default threshold for the auto-match sweep
    auto_match_threshold: float = 70.0

    def lowest_candidate_score(self) -> Decimal:
        """Confidence of the weakest transaction that can still be a candidate.

        That is a transaction at the edge of the date window, with an amount
        at the tolerance bound and no merchant agreement: only its date
        sub-score contributes.
        """
        window = self.date_window_days
        edge = 100.0 * (1 - window / (window + 1))
        score = Decimal(str(self.weight_date)) * Decimal(str(edge))
        return score.quantize(Decimal("0.01"), rounding=ROUND_DOWN)


@dataclass
class ImportConfig:
    """Statement import settings."""

    # Accepted date formats, tried in order
    date_formats: list[str] = field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))
    # Card used when the export carries no card column
    default_card_last_four: str | None = None


@dataclass
class Config:
    """Application configuration (SSOT)."""

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    importing: ImportConfig = field(default_factory=ImportConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/expense_matcher.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []
        m = self.matching

        if m.date_window_days < 0:
            errors.append("matching.date_window_days must be >= 0")
        if m.amount_tolerance_abs < 0:
            errors.append("matching.amount_tolerance_abs must be >= 0")
        if m.amount_tolerance_pct < 0:
            errors.append("matching.amount_tolerance_pct must be >= 0")

        weights = {
            "weight_amount": m.weight_amount,
            "weight_date": m.weight_date,
            "weight_text": m.weight_text,
        }
        for name, value in weights.items():
            if value < 0:
                errors.append(f"matching.{name} must be >= 0")
        if abs(sum(weights.values()) - 1.0) > 1e-6:
            errors.append("matching weights must sum to 1.0")

        for name in ("min_confidence", "auto_match_threshold"):
            value = getattr(m, name)
            if not 0 <= value <= 100:
                errors.append(f"matching.{name} must be between 0 and 100")

        if m.date_window_days >= 0 and m.weight_date >= 0:
            lowest = m.lowest_candidate_score()
            if Decimal(str(m.min_confidence)) > lowest:
                errors.append(
                    f"matching.min_confidence must be <= {lowest}, the score of the "
                    "weakest candidate, or sweeps at threshold 0 would miss candidates"
                )

        if not self.importing.date_formats:
            errors.append("importing.date_formats must not be empty")

        return errors


def _to_decimal(value: object, key: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ConfigValidationError([f"{key} is not a number: {value!r}"]) from e


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    A missing file yields the defaults. Environment variables override
    config values:
    - EXPENSE_MATCHER_DB (state database path)
    - EXPENSE_MATCHER_DATE_WINDOW_DAYS
    - EXPENSE_MATCHER_MIN_CONFIDENCE
    - EXPENSE_MATCHER_AUTO_MATCH_THRESHOLD

    Raises:
        ConfigValidationError: If the resulting configuration is invalid.
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    defaults = MatchingConfig()

    # Matching config
    matching_data = data.get("matching", {})
    matching = MatchingConfig(
        date_window_days=int(
            os.environ.get(
                "EXPENSE_MATCHER_DATE_WINDOW_DAYS",
                matching_data.get("date_window_days", defaults.date_window_days),
            )
        ),
        amount_tolerance_abs=_to_decimal(
            matching_data.get("amount_tolerance_abs", defaults.amount_tolerance_abs),
            "matching.amount_tolerance_abs",
        ),
        amount_tolerance_pct=float(
            matching_data.get("amount_tolerance_pct", defaults.amount_tolerance_pct)
        ),
        weight_amount=float(matching_data.get("weight_amount", defaults.weight_amount)),
        weight_date=float(matching_data.get("weight_date", defaults.weight_date)),
        weight_text=float(matching_data.get("weight_text", defaults.weight_text)),
        min_confidence=float(
            os.environ.get(
                "EXPENSE_MATCHER_MIN_CONFIDENCE",
                matching_data.get("min_confidence", defaults.min_confidence),
            )
        ),
        auto_match_threshold=float(
            os.environ.get(
                "EXPENSE_MATCHER_AUTO_MATCH_THRESHOLD",
                matching_data.get("auto_match_threshold", defaults.auto_match_threshold),
            )
        ),
    )

    # Import config
    import_data = data.get("importing", {})
    importing = ImportConfig(
        date_formats=import_data.get("date_formats", list(DEFAULT_DATE_FORMATS)),
        default_card_last_four=import_data.get("default_card_last_four"),
    )

    # State DB
    state_db = os.environ.get(
        "EXPENSE_MATCHER_DB", data.get("state_db_path", "data/expense_matcher.db")
    )

    config = Config(
        matching=matching,
        importing=importing,
        state_db_path=Path(state_db),
    )

    errors = config.validate()
    if errors:
        raise ConfigValidationError(errors)

    return config


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Expense Matcher Configuration
#
# Confidence values use a 0-100 scale.

# Candidate generation and scoring
matching:
  date_window_days: 7          # Receipt date +/- this many days
  amount_tolerance_abs: 1.00   # Absolute amount tolerance...
  amount_tolerance_pct: 10.0   # ...OR relative tolerance (percent)
  weight_amount: 0.45          # Weights must sum to 1.0
  weight_date: 0.35
  weight_text: 0.20            # Merchant OCR is the least reliable signal
  min_confidence: 4            # Never store proposals below this score
                               # (at most weight_date * 100 / (window + 1))
  auto_match_threshold: 70     # Default threshold for the auto-match sweep

# Statement import
importing:
  date_formats:
    - "%Y-%m-%d"
    - "%m/%d/%Y"
    - "%m/%d/%y"
    - "%d.%m.%Y"
    - "%Y/%m/%d"
  default_card_last_four: null

# State database path
state_db_path: "data/expense_matcher.db"
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
