# ============================================
# board/utils/conf.py
# ============================================
from django.conf import settings

DEFAULTS = {
    'RANK_MAX_LENGTH': 12,
    'PARENT_MAX_DEPTH': 10,
    'CONFLICT_RETRIES': 3,
    'FORECAST_WINDOW': 5,
}


def board_setting(name: str):
    """Read a knob from settings.BOARD, falling back to the built-in default."""
    return getattr(settings, 'BOARD', {}).get(name, DEFAULTS[name])
