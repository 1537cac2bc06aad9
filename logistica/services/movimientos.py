import logging
from decimal import Decimal

from logistica.exceptions import IntegrityError, ValidationError
from logistica.models import LoteProduccion, MovimientoLote, OrdenSalida, TipoMovimiento

logger = logging.getLogger(__name__)


def registrar_movimiento(
    *,
    lote: LoteProduccion,
    tipo: str,
    cantidad_unidades: int,
    kg_movidos: Decimal,
    usuario_id=None,
    orden_salida: OrdenSalida | None = None,
    observaciones: str = "",
) -> MovimientoLote:
    """
    Escribe una fila del libro de movimientos.

    El lote ya debe estar actualizado (en la misma transacción): el saldo
    que se guarda es el saldo del lote DESPUÉS del movimiento.
    """
    if tipo not in TipoMovimiento.values:
        raise ValidationError(f"Tipo de movimiento inválido: {tipo}.")

    if cantidad_unidades < 0 or kg_movidos < 0:
        raise ValidationError(
            "La cantidad y los kg de un movimiento se registran sin signo."
        )

    return MovimientoLote.objects.create(
        lote=lote,
        nro_lote=lote.nro_lote,
        tipo_movimiento=tipo,
        cantidad_unidades=cantidad_unidades,
        kg_movidos=kg_movidos,
        saldo_unidades=lote.cantidad_unidades,
        saldo_kg=lote.total_kg,
        orden_salida=orden_salida,
        observaciones=observaciones,
        usuario_id=usuario_id,
    )


def historial_por_lote(lote_id: int):
    """
    Movimientos de un lote, del más reciente al más antiguo.
    """
    return (
        MovimientoLote.objects.select_related("usuario")
        .filter(lote_id=lote_id)
        .order_by("-fecha_movimiento", "-id")
    )


def movimientos_por_orden_salida(orden_salida_id: int):
    return (
        MovimientoLote.objects.select_related("usuario")
        .filter(orden_salida_id=orden_salida_id)
        .order_by("-fecha_movimiento", "-id")
    )


def resumen_movimientos(lote_id: int) -> dict:
    """
    Reconstruye el saldo del lote a partir del libro:

        saldo = entradas - salidas - mermas + ajustes

    Los ajustes se guardan sin signo; su signo es la variación del saldo
    respecto al movimiento anterior del mismo lote.
    """
    movimientos = MovimientoLote.objects.filter(lote_id=lote_id).order_by("id")

    totales = {
        TipoMovimiento.ENTRADA: Decimal("0"),
        TipoMovimiento.SALIDA: Decimal("0"),
        TipoMovimiento.MERMA: Decimal("0"),
        TipoMovimiento.AJUSTE: Decimal("0"),
    }
    saldo_anterior = Decimal("0")
    ajustes_inconsistentes = []
    ultimo = None

    for mov in movimientos:
        if mov.tipo_movimiento == TipoMovimiento.AJUSTE:
            variacion = mov.saldo_kg - saldo_anterior
            if abs(variacion) != mov.kg_movidos:
                ajustes_inconsistentes.append(mov.pk)
            totales[TipoMovimiento.AJUSTE] += variacion
        else:
            totales[mov.tipo_movimiento] += mov.kg_movidos
        saldo_anterior = mov.saldo_kg
        ultimo = mov

    saldo_calculado = (
        totales[TipoMovimiento.ENTRADA]
        - totales[TipoMovimiento.SALIDA]
        - totales[TipoMovimiento.MERMA]
        + totales[TipoMovimiento.AJUSTE]
    )

    lote = LoteProduccion.objects.filter(pk=lote_id).first()
    saldo_lote = lote.total_kg if lote is not None else None
    # Un lote eliminado se cierra con un ajuste a cero.
    saldo_esperado = saldo_lote if lote is not None else Decimal("0")

    cuadra = (
        saldo_calculado == saldo_esperado
        and not ajustes_inconsistentes
        and (ultimo is None or ultimo.saldo_kg == saldo_esperado)
    )

    return {
        "id_lote_produccion": lote_id,
        "total_entradas": totales[TipoMovimiento.ENTRADA],
        "total_salidas": totales[TipoMovimiento.SALIDA],
        "total_mermas": totales[TipoMovimiento.MERMA],
        "total_ajustes": totales[TipoMovimiento.AJUSTE],
        "saldo_calculado": saldo_calculado,
        "saldo_lote": saldo_lote,
        "saldo_ultimo_movimiento": ultimo.saldo_kg if ultimo else None,
        "cantidad_movimientos": movimientos.count(),
        "ajustes_inconsistentes": ajustes_inconsistentes,
        "cuadra": cuadra,
    }


def verificar_conciliacion(lote: LoteProduccion) -> dict:
    """
    Falla con IntegrityError si el libro no cuadra con el saldo guardado
    del lote (kg calculados, último saldo en kg y en unidades).
    """
    resumen = resumen_movimientos(lote.pk)

    ultimo = historial_por_lote(lote.pk).first()
    if ultimo is None:
        raise IntegrityError(f"El lote {lote.nro_lote} no tiene movimientos registrados.")

    if resumen["saldo_calculado"] != lote.total_kg:
        logger.error(
            "Lote %s descuadrado: libro %s kg, lote %s kg",
            lote.nro_lote, resumen["saldo_calculado"], lote.total_kg,
        )
        raise IntegrityError(
            f"El libro del lote {lote.nro_lote} suma {resumen['saldo_calculado']} kg "
            f"pero el lote registra {lote.total_kg} kg."
        )

    if ultimo.saldo_kg != lote.total_kg or ultimo.saldo_unidades != lote.cantidad_unidades:
        raise IntegrityError(
            f"El último movimiento del lote {lote.nro_lote} registra saldo "
            f"{ultimo.saldo_unidades} unidades / {ultimo.saldo_kg} kg, "
            f"pero el lote tiene {lote.cantidad_unidades} unidades / {lote.total_kg} kg."
        )

    if resumen["ajustes_inconsistentes"]:
        raise IntegrityError(
            f"Ajustes del lote {lote.nro_lote} cuyo kg_movidos no coincide con la "
            f"variación del saldo: {resumen['ajustes_inconsistentes']}."
        )

    return resumen
