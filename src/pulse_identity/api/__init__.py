"""pulse_identity.api — HTTP-роутеры локального хоста сессии."""
