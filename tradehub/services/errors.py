"""
Exceptions métier levées par la couche services.

Les erreurs d'entrée des calculateurs restent des ``ValueError``.
Tout ce qui correspond à un statut HTTP distinct a son propre type ici ;
``tradehub.app.main`` les convertit en réponses JSON.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    code = "DOMAIN_ERROR"

    def __init__(self, message: str, *, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(DomainError):
    code = "NOT_FOUND"


class ForbiddenError(DomainError):
    code = "FORBIDDEN"


class ConflictError(DomainError):
    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    code = "INVALID_TRANSITION"


class ExpiredError(DomainError):
    code = "EXPIRED"


class RuleViolationError(DomainError):
    code = "WHOLESALE_VALIDATION_FAILED"


class PaymentGatewayError(DomainError):
    code = "PAYMENT_GATEWAY_ERROR"


class SignatureError(DomainError):
    code = "INVALID_SIGNATURE"
