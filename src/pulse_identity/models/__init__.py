"""
pulse_identity.models — Модели данных домена.

Реэкспорт основных классов для удобства:
    from pulse_identity.models import ApplicationUser, Identity
"""

from pulse_identity.models.enums import CallbackStatus, CredentialingStatus, UserRole  # noqa: F401
from pulse_identity.models.identity import AuthSession, Identity, SignUpResult, TokenPair  # noqa: F401
from pulse_identity.models.profile import (  # noqa: F401
    ClinicianSeed,
    OrganizationSeed,
    ProvisionResult,
)
from pulse_identity.models.user import (  # noqa: F401
    ApplicationUser,
    CallbackOutcome,
    LoginOutcome,
    OAuthRedirect,
    RegistrationOutcome,
    RegistrationRequest,
)
