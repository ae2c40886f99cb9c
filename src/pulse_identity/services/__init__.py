"""
pulse_identity.services — Бизнес-логика ядра сессий.

    • demo_accounts  — демо-аккаунты
    • provisioner    — профиль по умолчанию
    • reconciler     — сессия → ApplicationUser
    • callback       — OAuth-редирект
    • auth_service   — вход / регистрация / выход
"""
