"""
Errores de dominio de la logística de semillas.

Cada tipo se traduce a un código HTTP distinto en la capa API
(ver manejador_excepciones). Los mensajes incluyen los números e
identificadores involucrados para que el cliente pueda explicar el rechazo.
"""

import logging

from django import db
from rest_framework import status

logger = logging.getLogger(__name__)


class LogisticaError(Exception):
    """Base de todos los errores de dominio."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, mensaje: str):
        super().__init__(mensaje)
        self.mensaje = mensaje


class NotFoundError(LogisticaError):
    """El recurso referenciado no existe."""

    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(LogisticaError):
    """La unidad del usuario no le permite leer/escribir el recurso."""

    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(LogisticaError):
    """Datos de entrada mal formados (estado inválido, unidad faltante, etc.)."""

    status_code = status.HTTP_400_BAD_REQUEST


class BusinessRuleError(LogisticaError):
    """Se violaría una regla de negocio (presupuesto, saldo, estado terminal...)."""

    status_code = status.HTTP_409_CONFLICT


class IntegrityError(LogisticaError):
    """
    El libro de movimientos no cuadra con el saldo del lote, o se intentó
    modificar un movimiento ya registrado. Indica un bug: nunca se corrige solo.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def _codigos(codigos):
    if isinstance(codigos, dict):
        for valor in codigos.values():
            yield from _codigos(valor)
    elif isinstance(codigos, (list, tuple)):
        for valor in codigos:
            yield from _codigos(valor)
    else:
        yield codigos


def manejador_excepciones(exc, context):
    """
    EXCEPTION_HANDLER de DRF: los errores de dominio salen como
    {"detail": mensaje} con su código; el resto lo maneja DRF.

    Un campo único duplicado es una regla de negocio (409), no un 400.
    """
    # Imports diferidos: models.py importa este módulo al cargar la app.
    from rest_framework import exceptions as drf_exceptions
    from rest_framework.response import Response
    from rest_framework.views import exception_handler, set_rollback

    if isinstance(exc, LogisticaError):
        set_rollback()
        if isinstance(exc, IntegrityError):
            logger.error("Error de integridad: %s", exc.mensaje)
        return Response({"detail": exc.mensaje}, status=exc.status_code)

    if isinstance(exc, db.IntegrityError):
        set_rollback()
        logger.warning("Violación de restricción en BD: %s", exc)
        return Response(
            {"detail": "El registro viola una restricción de unicidad o de referencia."},
            status=status.HTTP_409_CONFLICT,
        )

    response = exception_handler(exc, context)
    if (
        response is not None
        and isinstance(exc, drf_exceptions.ValidationError)
        and "unique" in set(_codigos(exc.get_codes()))
    ):
        response.status_code = status.HTTP_409_CONFLICT
    return response
