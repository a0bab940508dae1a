"""Erreurs métier levées par les services et traduites en HTTP dans main.py."""


class BioLinkError(Exception):
    kind = "BioLinkError"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(BioLinkError):
    kind = "NotFound"
    status_code = 404


class Unauthorized(BioLinkError):
    # Répondu comme un 404 : on ne révèle jamais la ressource d'un autre utilisateur
    kind = "Unauthorized"
    status_code = 404


class InvalidOwnership(Unauthorized):
    kind = "InvalidOwnership"


class CapacityExceeded(BioLinkError):
    kind = "CapacityExceeded"
    status_code = 403


class ValidationError(BioLinkError):
    kind = "ValidationError"
    status_code = 422


class PremiumRequired(BioLinkError):
    kind = "PremiumRequired"
    status_code = 403


class AlreadyExists(BioLinkError):
    kind = "AlreadyExists"
    status_code = 409
