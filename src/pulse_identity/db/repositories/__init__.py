"""
pulse_identity.db.repositories — Адаптеры хранилища профилей (PostgreSQL, Supabase).
"""
