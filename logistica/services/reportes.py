from decimal import Decimal

from django.db.models import Count, Sum

from logistica.models import LoteProduccion, OrdenIngreso, OrdenSalida
from logistica.roles import Actor, es_elevado, filtrar_por_unidad
from logistica.services.catalogos import a_entero
from logistica.services.lotes_produccion import ESTADOS_DISPONIBLES


def inventario_por_variedad(actor: Actor) -> list[dict]:
    """
    Stock vendible agrupado por variedad, semilla y categoría.

    Se agrupa por id; los nombres solo se muestran. Dos categorías con el
    mismo nombre quedan en filas distintas.
    """
    qs = filtrar_por_unidad(
        LoteProduccion.objects.filter(estado__in=ESTADOS_DISPONIBLES, cantidad_unidades__gt=0),
        actor,
    )
    filas = (
        qs.values(
            "variedad_id",
            "variedad__nombre",
            "variedad__semilla_id",
            "variedad__semilla__nombre",
            "categoria_salida_id",
            "categoria_salida__nombre",
        )
        .annotate(
            total_unidades=Sum("cantidad_unidades"),
            total_kg=Sum("total_kg"),
            cantidad_lotes=Count("id"),
        )
        .order_by("variedad__semilla__nombre", "variedad__nombre", "categoria_salida__nombre", "categoria_salida_id")
    )

    return [
        {
            "id_variedad": fila["variedad_id"],
            "variedad": fila["variedad__nombre"],
            "id_semilla": fila["variedad__semilla_id"],
            "semilla": fila["variedad__semilla__nombre"],
            "id_categoria": fila["categoria_salida_id"],
            "categoria": fila["categoria_salida__nombre"],
            "total_unidades": fila["total_unidades"] or 0,
            "total_kg": fila["total_kg"] or Decimal("0"),
            "cantidad_lotes": fila["cantidad_lotes"],
        }
        for fila in filas
    ]


def _filtro_unidad(qs, actor: Actor, id_unidad):
    qs = filtrar_por_unidad(qs, actor)
    if id_unidad not in (None, "") and es_elevado(actor):
        qs = qs.filter(unidad_id=a_entero(id_unidad, "id_unidad"))
    return qs


def _por_estado(qs, campo_peso: str) -> list[dict]:
    filas = (
        qs.values("estado")
        .annotate(cantidad=Count("id", distinct=True), peso_total=Sum(campo_peso))
        .order_by("estado")
    )
    return [
        {
            "estado": fila["estado"],
            "cantidad": fila["cantidad"],
            "peso_total": fila["peso_total"] or Decimal("0"),
        }
        for fila in filas
    ]


def estadisticas_ordenes_ingreso(actor: Actor, id_unidad=None) -> list[dict]:
    """
    Cantidad de órdenes y peso neto por estado. Un elevado puede filtrar por unidad.
    """
    qs = _filtro_unidad(OrdenIngreso.objects.all(), actor, id_unidad)
    return _por_estado(qs, "peso_neto")


def estadisticas_lotes(actor: Actor, id_unidad=None) -> list[dict]:
    qs = _filtro_unidad(LoteProduccion.objects.all(), actor, id_unidad)

    filas = (
        qs.values("estado")
        .annotate(
            cantidad=Count("id"),
            peso_total=Sum("total_kg"),
            total_unidades=Sum("cantidad_unidades"),
        )
        .order_by("estado")
    )
    return [
        {
            "estado": fila["estado"],
            "cantidad": fila["cantidad"],
            "peso_total": fila["peso_total"] or Decimal("0"),
            "total_unidades": fila["total_unidades"] or 0,
        }
        for fila in filas
    ]


def estadisticas_ordenes_salida(actor: Actor, id_unidad=None) -> list[dict]:
    """
    Cantidad de órdenes y kg despachados por estado (suma de sus detalles).
    """
    qs = _filtro_unidad(OrdenSalida.objects.all(), actor, id_unidad)
    return _por_estado(qs, "detalles__total_kg")
