"""
pulse_identity — ядро жизненного цикла сессии и автоматического
создания профилей PulseOps (клиницисты и организации).
"""

__version__ = "0.3.0"
