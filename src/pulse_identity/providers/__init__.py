"""
pulse_identity.providers — Порт identity-провайдера и его адаптеры.
"""

from pulse_identity.providers.base import DisabledIdentityProvider, IdentityProvider  # noqa: F401
