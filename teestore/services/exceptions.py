# teestore/services/exceptions.py
from __future__ import annotations

from decimal import Decimal

from teestore.domain.enums import CouponFailureReason


class ServiceError(Exception):
    """Clase base para errores de la capa de servicio."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class DomainValidationError(ServiceError):
    """Entrada de dominio inválida."""
    pass


class ResourceNotFoundError(ServiceError):
    """Recurso no encontrado."""
    pass


class ConflictError(ServiceError):
    """Conflicto de estado en la operación."""
    pass


class DiscountRejectedError(ServiceError):
    """Un cupón o promoción no puede aplicarse al pedido."""

    def __init__(self, reason: CouponFailureReason, detail: str, shortfall: Decimal | None = None):
        self.reason = reason
        self.shortfall = shortfall
        super().__init__(detail)
