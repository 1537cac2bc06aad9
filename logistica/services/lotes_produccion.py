import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from logistica.exceptions import BusinessRuleError, NotFoundError, ValidationError
from logistica.models import (
    Categoria,
    EstadoLote,
    EstadoOrdenIngreso,
    LoteProduccion,
    TipoMovimiento,
    Variedad,
)
from logistica.roles import Actor, filtrar_por_unidad, verificar_acceso_unidad
from logistica.services import movimientos, ordenes_ingreso
from logistica.services.catalogos import a_decimal, a_entero, filtrar_cambios, obtener_catalogo
from logistica.services.secuencias import PREFIJO_LOTE_PRODUCCION, siguiente_codigo

logger = logging.getLogger(__name__)


CAMPOS_CREACION = (
    "id_orden_ingreso",
    "id_variedad",
    "id_categoria_salida",
    "cantidad_unidades",
    "kg_por_unidad",
    "presentacion",
    "tipo_servicio",
    "fecha_produccion",
    "estado",
)

CAMPOS_EDITABLES = (
    "id_variedad",
    "id_categoria_salida",
    "cantidad_unidades",
    "kg_por_unidad",
    "presentacion",
    "tipo_servicio",
    "fecha_produccion",
)

# Los demás estados solo los asignan las ventas.
ESTADOS_INICIALES = (EstadoLote.DISPONIBLE, EstadoLote.RESERVADO)

ESTADOS_DISPONIBLES = (EstadoLote.DISPONIBLE, EstadoLote.PARCIALMENTE_VENDIDO)


def lotes_visibles(actor: Actor):
    qs = LoteProduccion.objects.select_related(
        "orden_ingreso",
        "variedad__semilla",
        "categoria_salida",
        "unidad",
        "usuario_creador",
    )
    return filtrar_por_unidad(qs, actor)


def lotes_disponibles(actor: Actor):
    """
    Lotes con saldo que se pueden vender (disponible o parcialmente vendido).
    """
    return lotes_visibles(actor).filter(
        estado__in=ESTADOS_DISPONIBLES,
        cantidad_unidades__gt=0,
    )


def obtener_lote(lote_id, *, actor: Actor, bloquear: bool = False) -> LoteProduccion:
    qs = LoteProduccion.objects.select_for_update() if bloquear else LoteProduccion.objects.all()
    try:
        lote = qs.get(pk=lote_id)
    except (LoteProduccion.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Lote de producción con ID {lote_id} no encontrado.")

    verificar_acceso_unidad(actor, lote.unidad_id, f"el lote {lote.nro_lote}")
    return lote


def obtener_por_numero(nro_lote: str, *, actor: Actor) -> LoteProduccion:
    try:
        lote = LoteProduccion.objects.get(nro_lote=nro_lote)
    except LoteProduccion.DoesNotExist:
        raise NotFoundError(f"Lote {nro_lote} no encontrado.")

    verificar_acceso_unidad(actor, lote.unidad_id, f"el lote {nro_lote}")
    return lote


def _validar_variedad(variedad: Variedad, orden) -> None:
    if variedad.semilla_id != orden.semilla_id:
        raise ValidationError(
            f"La variedad {variedad} no pertenece a la semilla de la orden "
            f"{orden.numero_orden} (semilla {orden.semilla_id})."
        )


@transaction.atomic
def crear_lote(*, datos: dict, actor: Actor) -> LoteProduccion:
    """
    Crea un lote de producción a partir de una orden de ingreso.

    Paso a paso:
    1) Bloquear la orden de ingreso (NotFoundError / AuthorizationError)
    2) Rechazar si la orden está cancelada
    3) Verificar el presupuesto:
           asignado + cantidad_unidades * kg_por_unidad <= peso_neto
    4) Asignar LP-YYYYMM-NNNN y guardar el lote con su foto original
    5) Registrar el movimiento de entrada
    6) Recalcular el estado de la orden
    """
    datos = filtrar_cambios(datos, CAMPOS_CREACION)

    orden = ordenes_ingreso.obtener_orden_ingreso(
        datos.get("id_orden_ingreso"), actor=actor, bloquear=True
    )

    if orden.estado == EstadoOrdenIngreso.CANCELADO:
        raise BusinessRuleError(
            f"No se pueden crear lotes para la orden {orden.numero_orden}: está cancelada."
        )

    cantidad = a_entero(datos.get("cantidad_unidades"), "cantidad_unidades", minimo=1)
    kg_por_unidad = a_decimal(datos.get("kg_por_unidad"), "kg_por_unidad")
    if kg_por_unidad <= 0:
        raise ValidationError(f"kg_por_unidad debe ser > 0 (recibido: {kg_por_unidad}).")

    estado = datos.get("estado") or EstadoLote.DISPONIBLE
    if estado not in EstadoLote.values:
        raise ValidationError(f"Estado de lote no válido: {estado}.")
    if estado not in ESTADOS_INICIALES:
        raise ValidationError(
            f"Un lote nuevo solo puede crearse como {' o '.join(ESTADOS_INICIALES)}."
        )

    variedad = obtener_catalogo(Variedad, datos.get("id_variedad"), "la variedad")
    _validar_variedad(variedad, orden)
    categoria = obtener_catalogo(Categoria, datos.get("id_categoria_salida"), "la categoría de salida")

    nuevo_kg = LoteProduccion.calcular_kg(cantidad, kg_por_unidad)
    asignado = orden.lotes.aggregate(total=Sum("total_kg_original"))["total"] or Decimal("0")

    if asignado + nuevo_kg > orden.peso_neto:
        exceso = asignado + nuevo_kg - orden.peso_neto
        logger.warning(
            "Lote rechazado en %s: presupuesto %s, asignado %s, nuevo %s",
            orden.numero_orden, orden.peso_neto, asignado, nuevo_kg,
        )
        raise BusinessRuleError(
            f"El lote excede el peso neto de la orden {orden.numero_orden}. "
            f"Presupuesto: {orden.peso_neto} kg, ya asignado: {asignado} kg, "
            f"nuevo lote: {nuevo_kg} kg, exceso: {exceso} kg."
        )

    lote = LoteProduccion(
        orden_ingreso=orden,
        variedad=variedad,
        categoria_salida=categoria,
        unidad_id=orden.unidad_id,
        cantidad_unidades=cantidad,
        kg_por_unidad=kg_por_unidad,
        total_kg=nuevo_kg,
        cantidad_original=cantidad,
        total_kg_original=nuevo_kg,
        presentacion=datos.get("presentacion") or "",
        tipo_servicio=datos.get("tipo_servicio") or "",
        fecha_produccion=datos.get("fecha_produccion"),
        estado=estado,
        usuario_creador_id=actor.id_usuario,
    )
    lote.nro_lote = siguiente_codigo(PREFIJO_LOTE_PRODUCCION)
    lote.save()

    movimientos.registrar_movimiento(
        lote=lote,
        tipo=TipoMovimiento.ENTRADA,
        cantidad_unidades=cantidad,
        kg_movidos=nuevo_kg,
        usuario_id=actor.id_usuario,
        observaciones=f"Producción desde la orden de ingreso {orden.numero_orden}",
    )

    ordenes_ingreso.al_modificar_lote(orden.pk)

    logger.info(
        "Lote %s creado desde %s: %s unidades x %s kg = %s kg",
        lote.nro_lote, orden.numero_orden, cantidad, kg_por_unidad, nuevo_kg,
    )
    return lote


def _verificar_no_vendido(lote: LoteProduccion, accion: str) -> None:
    if lote.estado == EstadoLote.VENDIDO:
        raise BusinessRuleError(f"No se puede {accion} el lote {lote.nro_lote}: está vendido.")


@transaction.atomic
def actualizar_lote(lote_id, *, cambios: dict, actor: Actor) -> LoteProduccion:
    """
    Patch parcial con lista blanca (CAMPOS_EDITABLES).

    - Un lote vendido no se modifica.
    - total_kg se recalcula con los valores resultantes; la foto original
      (cantidad_original / total_kg_original) no se toca.
    - El saldo no puede superar el peso original del lote.
    - Si el saldo cambia, se registra un ajuste en el libro.
    """
    cambios = filtrar_cambios(cambios, CAMPOS_EDITABLES)
    lote = obtener_lote(lote_id, actor=actor, bloquear=True)
    _verificar_no_vendido(lote, "modificar")

    cantidad_anterior = lote.cantidad_unidades
    kg_anterior = lote.total_kg

    if "cantidad_unidades" in cambios:
        lote.cantidad_unidades = a_entero(cambios["cantidad_unidades"], "cantidad_unidades", minimo=1)

    if "kg_por_unidad" in cambios:
        kg_por_unidad = a_decimal(cambios["kg_por_unidad"], "kg_por_unidad")
        if kg_por_unidad <= 0:
            raise ValidationError(f"kg_por_unidad debe ser > 0 (recibido: {kg_por_unidad}).")
        if kg_por_unidad != lote.kg_por_unidad and lote.detalles_salida.exists():
            raise BusinessRuleError(
                f"No se puede cambiar kg_por_unidad del lote {lote.nro_lote}: "
                "ya tiene ventas registradas con el peso actual."
            )
        lote.kg_por_unidad = kg_por_unidad

    if "id_variedad" in cambios:
        variedad = obtener_catalogo(Variedad, cambios["id_variedad"], "la variedad")
        _validar_variedad(variedad, lote.orden_ingreso)
        lote.variedad = variedad

    if "id_categoria_salida" in cambios:
        lote.categoria_salida = obtener_catalogo(
            Categoria, cambios["id_categoria_salida"], "la categoría de salida"
        )

    for campo in ("presentacion", "tipo_servicio"):
        if campo in cambios:
            setattr(lote, campo, cambios[campo] or "")
    if "fecha_produccion" in cambios:
        lote.fecha_produccion = cambios["fecha_produccion"]

    lote.recalcular_total_kg()

    if lote.total_kg > lote.total_kg_original:
        raise BusinessRuleError(
            f"El saldo del lote {lote.nro_lote} ({lote.total_kg} kg) no puede superar "
            f"su peso original ({lote.total_kg_original} kg)."
        )

    lote.save()

    if lote.cantidad_unidades != cantidad_anterior or lote.total_kg != kg_anterior:
        movimientos.registrar_movimiento(
            lote=lote,
            tipo=TipoMovimiento.AJUSTE,
            cantidad_unidades=abs(lote.cantidad_unidades - cantidad_anterior),
            kg_movidos=abs(lote.total_kg - kg_anterior),
            usuario_id=actor.id_usuario,
            observaciones=(
                f"Corrección de saldo: {cantidad_anterior} → {lote.cantidad_unidades} unidades, "
                f"{kg_anterior} → {lote.total_kg} kg"
            ),
        )

    ordenes_ingreso.al_modificar_lote(lote.orden_ingreso_id)
    return lote


@transaction.atomic
def cambiar_estado_lote(lote_id, nuevo_estado: str, *, actor: Actor) -> LoteProduccion:
    if nuevo_estado not in EstadoLote.values:
        raise ValidationError(f"Estado de lote no válido: {nuevo_estado}.")

    lote = obtener_lote(lote_id, actor=actor, bloquear=True)
    _verificar_no_vendido(lote, "cambiar el estado de")

    if lote.estado != nuevo_estado:
        logger.info("Lote %s: %s → %s", lote.nro_lote, lote.estado, nuevo_estado)
        lote.estado = nuevo_estado
        lote.save(update_fields=["estado", "updated_at"])
    return lote


@transaction.atomic
def registrar_merma_lote(
    lote_id,
    *,
    cantidad_unidades: int,
    motivo: str,
    actor: Actor,
) -> LoteProduccion:
    """
    Registra una MERMA (pérdida, daño, humedad) sobre el saldo del lote.

    - No permite dejar el saldo en negativo.
    - El motivo es obligatorio.
    - Si el saldo llega a 0 el lote pasa a descartado.
    """
    cantidad = a_entero(cantidad_unidades, "cantidad_unidades", minimo=1)
    if not motivo or not motivo.strip():
        raise ValidationError("El motivo de la merma es obligatorio.")

    lote = obtener_lote(lote_id, actor=actor, bloquear=True)
    _verificar_no_vendido(lote, "registrar merma en")

    if cantidad > lote.cantidad_unidades:
        raise BusinessRuleError(
            f"No se puede registrar la merma en el lote {lote.nro_lote}: "
            f"disponible {lote.cantidad_unidades}, merma {cantidad}."
        )

    kg_anterior = lote.total_kg
    lote.cantidad_unidades -= cantidad
    lote.recalcular_total_kg()
    if lote.cantidad_unidades == 0:
        lote.estado = EstadoLote.DESCARTADO
    lote.save()

    movimientos.registrar_movimiento(
        lote=lote,
        tipo=TipoMovimiento.MERMA,
        cantidad_unidades=cantidad,
        kg_movidos=kg_anterior - lote.total_kg,
        usuario_id=actor.id_usuario,
        observaciones=motivo,
    )

    logger.info("Merma de %s unidades en el lote %s: %s", cantidad, lote.nro_lote, motivo)
    return lote


@transaction.atomic
def eliminar_lote(lote_id, *, actor: Actor) -> None:
    """
    Elimina un lote que no fue vendido ni usado en órdenes de salida.
    El libro se cierra con un ajuste a cero y se conserva.
    """
    lote = obtener_lote(lote_id, actor=actor, bloquear=True)
    _verificar_no_vendido(lote, "eliminar")

    lineas = lote.detalles_salida.count()
    if lineas:
        raise BusinessRuleError(
            f"No se puede eliminar el lote {lote.nro_lote}: figura en {lineas} "
            "línea(s) de órdenes de salida."
        )

    orden_id = lote.orden_ingreso_id
    cantidad_anterior = lote.cantidad_unidades
    kg_anterior = lote.total_kg

    lote.cantidad_unidades = 0
    lote.total_kg = Decimal("0.00")
    movimientos.registrar_movimiento(
        lote=lote,
        tipo=TipoMovimiento.AJUSTE,
        cantidad_unidades=cantidad_anterior,
        kg_movidos=kg_anterior,
        usuario_id=actor.id_usuario,
        observaciones=f"Eliminación del lote {lote.nro_lote}",
    )

    logger.info("Lote %s eliminado (%s kg)", lote.nro_lote, kg_anterior)
    lote.delete()

    ordenes_ingreso.al_modificar_lote(orden_id, eliminado=True)
