"""
pulse_identity.db — Порт хранилища профилей и его адаптеры.
"""

from pulse_identity.db.store import ProfileStore  # noqa: F401
