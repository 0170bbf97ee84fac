"""
P&L Tree Settings

Layout geometry and engine defaults, overridable through environment variables.
"""

import os
from dataclasses import dataclass

from financial_models import SignConvention


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_sign_convention(name: str, default: SignConvention) -> SignConvention:
    raw = (os.getenv(name) or "").strip().lower()
    try:
        return SignConvention(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class PnLTreeSettings:
    """Card geometry (pixels) and aggregation defaults"""
    card_width: float = 220
    card_height: float = 100
    column_gap: float = 32
    vertical_gap: float = 110
    horizontal_padding: float = 20
    vertical_padding: float = 20
    sign_convention: SignConvention = SignConvention.AS_ENTERED

    @property
    def column_width(self) -> float:
        return self.card_width

    @classmethod
    def from_env(cls) -> "PnLTreeSettings":
        return cls(
            card_width=_env_float("PNL_TREE_CARD_WIDTH", 220),
            card_height=_env_float("PNL_TREE_CARD_HEIGHT", 100),
            column_gap=_env_float("PNL_TREE_COLUMN_GAP", 32),
            vertical_gap=_env_float("PNL_TREE_VERTICAL_GAP", 110),
            horizontal_padding=_env_float("PNL_TREE_HORIZONTAL_PADDING", 20),
            vertical_padding=_env_float("PNL_TREE_VERTICAL_PADDING", 20),
            sign_convention=_env_sign_convention(
                "PNL_SIGN_CONVENTION", SignConvention.AS_ENTERED
            ),
        )


# Blueprint horizon bounds
DEFAULT_MONTH_COUNT = _env_int("PNL_DEFAULT_MONTH_COUNT", 36)
MIN_MONTH_COUNT = 12
MAX_MONTH_COUNT = 48
MAX_INDENT_LEVEL = 6
