"""
pulse_identity/models/common.py — Базовые типы домена.
"""

from pydantic import BaseModel


class PulseBase(BaseModel):
    """Базовая Pydantic-модель для схем PulseOps Identity."""

    model_config = {"str_strip_whitespace": True}
