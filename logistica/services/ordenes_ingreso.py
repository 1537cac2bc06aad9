import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum

from logistica.exceptions import BusinessRuleError, NotFoundError, ValidationError
from logistica.models import (
    Categoria,
    Conductor,
    Cooperador,
    EstadoOrdenIngreso,
    OrdenIngreso,
    Semilla,
    Semillera,
    Unidad,
    Variedad,
    Vehiculo,
)
from logistica.roles import Actor, filtrar_por_unidad, resolver_unidad, verificar_acceso_unidad
from logistica.services.catalogos import a_decimal, filtrar_cambios, obtener_catalogo
from logistica.services.secuencias import PREFIJO_ORDEN_INGRESO, siguiente_codigo

logger = logging.getLogger(__name__)


# id de entrada → (campo del modelo, modelo, etiqueta para mensajes)
REFERENCIAS = {
    "id_semillera": ("semillera", Semillera, "la semillera"),
    "id_cooperador": ("cooperador", Cooperador, "el cooperador"),
    "id_conductor": ("conductor", Conductor, "el conductor"),
    "id_vehiculo": ("vehiculo", Vehiculo, "el vehículo"),
    "id_semilla": ("semilla", Semilla, "la semilla"),
    "id_variedad": ("variedad", Variedad, "la variedad"),
    "id_categoria_ingreso": ("categoria_ingreso", Categoria, "la categoría de ingreso"),
}

CAMPOS_PESO = ("peso_bruto", "peso_tara", "peso_neto", "peso_liquido", "peso_hectolitrico")
CAMPOS_PORCENTAJE = (
    "porcentaje_humedad",
    "porcentaje_impureza",
    "porcentaje_grano_danado",
    "porcentaje_grano_verde",
)
CAMPOS_TEXTO = (
    "nro_lote_campo",
    "nro_cupon",
    "lugar_ingreso",
    "lugar_salida",
    "observaciones",
)
CAMPOS_FECHA = ("hora_ingreso", "hora_salida")

CAMPOS_EDITABLES = (
    tuple(REFERENCIAS)
    + CAMPOS_PESO
    + CAMPOS_PORCENTAJE
    + CAMPOS_TEXTO
    + CAMPOS_FECHA
    + ("id_unidad",)
)
CAMPOS_CREACION = CAMPOS_EDITABLES + ("estado",)

ESTADOS_MANUALES = (EstadoOrdenIngreso.COMPLETADO, EstadoOrdenIngreso.CANCELADO)


def _campos_desde_datos(datos: dict) -> dict:
    """
    Traduce el payload a valores de modelo: ids → instancias, números
    validados, textos normalizados. No incluye unidad ni estado.
    """
    campos = {}
    for clave, valor in datos.items():
        if clave in REFERENCIAS:
            campo, modelo, etiqueta = REFERENCIAS[clave]
            campos[campo] = obtener_catalogo(modelo, valor, etiqueta)
        elif clave in CAMPOS_PESO:
            campos[clave] = a_decimal(valor, clave, minimo=Decimal("0"))
        elif clave in CAMPOS_PORCENTAJE:
            campos[clave] = a_decimal(
                valor, clave, minimo=Decimal("0"), maximo=Decimal("100"), max_digitos=5
            )
        elif clave in CAMPOS_TEXTO:
            campos[clave] = "" if valor is None else str(valor)
        elif clave in CAMPOS_FECHA:
            campos[clave] = valor
    return campos


def _validar_procedencia(orden: OrdenIngreso) -> None:
    if orden.cooperador.semillera_id != orden.semillera_id:
        raise ValidationError(
            f"El cooperador {orden.cooperador_id} no pertenece a la semillera {orden.semillera_id}."
        )
    if orden.variedad.semilla_id != orden.semilla_id:
        raise ValidationError(
            f"La variedad {orden.variedad_id} no pertenece a la semilla {orden.semilla_id}."
        )


def ordenes_visibles(actor: Actor):
    """
    Órdenes de ingreso que el actor puede ver (todas si es elevado).
    """
    qs = OrdenIngreso.objects.select_related(
        "semillera",
        "cooperador",
        "conductor",
        "vehiculo",
        "semilla",
        "variedad",
        "categoria_ingreso",
        "unidad",
        "usuario_creador",
    )
    return filtrar_por_unidad(qs, actor)


@transaction.atomic
def crear_orden_ingreso(*, datos: dict, actor: Actor) -> OrdenIngreso:
    """
    Registra una entrega de semilla en bruto.

    - Un usuario no elevado solo crea en su unidad (otra unidad → AuthorizationError).
    - Un elevado debe indicar id_unidad.
    - numero_orden se asigna como OI-YYYYMM-NNNN.
    - estado 'pendiente' salvo que se indique otro estado válido.
    """
    datos = filtrar_cambios(datos, CAMPOS_CREACION)

    id_unidad = resolver_unidad(actor, datos.pop("id_unidad", None))
    estado = datos.pop("estado", None) or EstadoOrdenIngreso.PENDIENTE
    if estado not in EstadoOrdenIngreso.values:
        raise ValidationError(f"Estado no válido: {estado}.")

    faltantes = [clave for clave in REFERENCIAS if datos.get(clave) in (None, "")]
    if faltantes:
        raise ValidationError(f"Faltan campos obligatorios: {', '.join(faltantes)}.")

    campos = _campos_desde_datos(datos)
    unidad = obtener_catalogo(Unidad, id_unidad, "la unidad")

    orden = OrdenIngreso(
        **campos,
        unidad=unidad,
        estado=estado,
        usuario_creador_id=actor.id_usuario,
    )
    _validar_procedencia(orden)

    orden.numero_orden = siguiente_codigo(PREFIJO_ORDEN_INGRESO)
    orden.save()

    logger.info(
        "Orden de ingreso %s creada en unidad %s (peso neto %s kg)",
        orden.numero_orden, unidad.pk, orden.peso_neto,
    )
    return orden


def obtener_orden_ingreso(orden_id, *, actor: Actor, bloquear: bool = False) -> OrdenIngreso:
    """
    NotFoundError si no existe; AuthorizationError si es de otra unidad.
    Con bloquear=True la fila queda bloqueada hasta el fin de la transacción.
    """
    qs = OrdenIngreso.objects.select_for_update() if bloquear else OrdenIngreso.objects.all()
    try:
        orden = qs.get(pk=orden_id)
    except (OrdenIngreso.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Orden de ingreso con ID {orden_id} no encontrada.")

    verificar_acceso_unidad(actor, orden.unidad_id, f"la orden de ingreso {orden.numero_orden}")
    return orden


def obtener_por_numero(numero_orden: str, *, actor: Actor) -> OrdenIngreso:
    try:
        orden = OrdenIngreso.objects.get(numero_orden=numero_orden)
    except OrdenIngreso.DoesNotExist:
        raise NotFoundError(f"Orden de ingreso {numero_orden} no encontrada.")

    verificar_acceso_unidad(actor, orden.unidad_id, f"la orden de ingreso {numero_orden}")
    return orden


@transaction.atomic
def recalcular_estado(orden_id, *, por_eliminacion: bool = False) -> OrdenIngreso:
    """
    Deriva el estado de la orden a partir de sus lotes:

    - cancelado: no se toca.
    - 0 lotes → pendiente.
    - suma(total_kg_original) >= peso_neto → completado.
    - si no → en_proceso, salvo que la orden esté completada manualmente y
      el cambio no sea una eliminación de lote.

    Llamarla dos veces seguidas deja el mismo estado.
    """
    try:
        orden = OrdenIngreso.objects.select_for_update().get(pk=orden_id)
    except OrdenIngreso.DoesNotExist:
        raise NotFoundError(f"Orden de ingreso con ID {orden_id} no encontrada.")

    if orden.estado == EstadoOrdenIngreso.CANCELADO:
        return orden

    agregado = orden.lotes.aggregate(total=Sum("total_kg_original"), cantidad=Count("id"))
    total = agregado["total"] or Decimal("0")

    if agregado["cantidad"] == 0:
        nuevo_estado = EstadoOrdenIngreso.PENDIENTE
    elif total >= orden.peso_neto:
        nuevo_estado = EstadoOrdenIngreso.COMPLETADO
    elif orden.estado == EstadoOrdenIngreso.COMPLETADO and not por_eliminacion:
        nuevo_estado = EstadoOrdenIngreso.COMPLETADO
    else:
        nuevo_estado = EstadoOrdenIngreso.EN_PROCESO

    if nuevo_estado != orden.estado:
        logger.info(
            "Orden de ingreso %s: %s → %s (%s de %s kg asignados)",
            orden.numero_orden, orden.estado, nuevo_estado, total, orden.peso_neto,
        )
        orden.estado = nuevo_estado
        orden.save(update_fields=["estado", "updated_at"])

    return orden


def al_modificar_lote(orden_id, *, eliminado: bool = False) -> OrdenIngreso:
    """
    Evento "un lote de esta orden cambió". Lo invoca el servicio de lotes
    después de crear, modificar o eliminar un lote.
    """
    return recalcular_estado(orden_id, por_eliminacion=eliminado)


@transaction.atomic
def cambiar_estado(orden_id, nuevo_estado: str, *, actor: Actor) -> OrdenIngreso:
    """
    Cambio manual de estado. Solo admite completado o cancelado y es irreversible.
    """
    if nuevo_estado not in EstadoOrdenIngreso.values:
        raise ValidationError(f"Estado no válido: {nuevo_estado}.")
    if nuevo_estado not in ESTADOS_MANUALES:
        raise ValidationError(
            f"El estado {nuevo_estado} se calcula automáticamente; "
            "manualmente solo se puede completar o cancelar."
        )

    orden = obtener_orden_ingreso(orden_id, actor=actor, bloquear=True)

    if orden.es_terminal:
        logger.warning(
            "Transición rechazada en %s: %s → %s", orden.numero_orden, orden.estado, nuevo_estado
        )
        raise BusinessRuleError(
            f"La orden {orden.numero_orden} ya está en estado {orden.estado}; "
            f"la transición a {nuevo_estado} es irreversible."
        )

    cantidad_lotes = orden.lotes.count()

    if nuevo_estado == EstadoOrdenIngreso.CANCELADO and cantidad_lotes > 0:
        logger.warning(
            "Cancelación rechazada en %s: %s lote(s) asociados", orden.numero_orden, cantidad_lotes
        )
        raise BusinessRuleError(
            f"No se puede cancelar la orden {orden.numero_orden}: "
            f"tiene {cantidad_lotes} lote(s) de producción asociado(s)."
        )

    if nuevo_estado == EstadoOrdenIngreso.COMPLETADO and cantidad_lotes == 0:
        raise BusinessRuleError(
            f"No se puede completar la orden {orden.numero_orden}: no tiene lotes de producción."
        )

    logger.info("Orden de ingreso %s: %s → %s (manual)", orden.numero_orden, orden.estado, nuevo_estado)
    orden.estado = nuevo_estado
    orden.save(update_fields=["estado", "updated_at"])
    return orden


def _verificar_editable(orden: OrdenIngreso, accion: str) -> None:
    if orden.estado == EstadoOrdenIngreso.COMPLETADO:
        raise BusinessRuleError(f"No se puede {accion} la orden {orden.numero_orden}: está completada.")

    cantidad_lotes = orden.lotes.count()
    if cantidad_lotes > 0:
        raise BusinessRuleError(
            f"No se puede {accion} la orden {orden.numero_orden}: tiene {cantidad_lotes} "
            "lote(s) de producción; elimínelos primero."
        )


@transaction.atomic
def actualizar_orden_ingreso(orden_id, *, cambios: dict, actor: Actor) -> OrdenIngreso:
    """
    Patch parcial con lista blanca de campos (CAMPOS_EDITABLES).
    Rechazado si la orden está completada o ya tiene lotes.
    """
    cambios = filtrar_cambios(cambios, CAMPOS_EDITABLES)
    orden = obtener_orden_ingreso(orden_id, actor=actor, bloquear=True)
    _verificar_editable(orden, "modificar")

    if "id_unidad" in cambios:
        id_unidad = resolver_unidad(actor, cambios.pop("id_unidad"))
        orden.unidad = obtener_catalogo(Unidad, id_unidad, "la unidad")

    for campo, valor in _campos_desde_datos(cambios).items():
        setattr(orden, campo, valor)

    _validar_procedencia(orden)
    orden.save()
    return orden


@transaction.atomic
def eliminar_orden_ingreso(orden_id, *, actor: Actor) -> None:
    orden = obtener_orden_ingreso(orden_id, actor=actor, bloquear=True)
    _verificar_editable(orden, "eliminar")
    logger.info("Orden de ingreso %s eliminada", orden.numero_orden)
    orden.delete()


def resumen_produccion(orden_id, *, actor: Actor) -> dict:
    """
    Cuánto del peso neto de la orden ya se asignó a lotes y qué queda disponible.
    """
    orden = obtener_orden_ingreso(orden_id, actor=actor)
    lotes = list(orden.lotes.order_by("id"))

    kg_asignados = sum((lote.total_kg_original for lote in lotes), Decimal("0"))
    kg_en_stock = sum((lote.total_kg for lote in lotes), Decimal("0"))
    unidades_producidas = sum(lote.cantidad_original for lote in lotes)

    if orden.peso_neto > 0:
        porcentaje = (kg_asignados / orden.peso_neto * 100).quantize(Decimal("0.01"))
    else:
        porcentaje = Decimal("0.00")

    return {
        "orden_ingreso": {
            "id": orden.pk,
            "numero_orden": orden.numero_orden,
            "estado": orden.estado,
            "peso_neto": orden.peso_neto,
        },
        "produccion": {
            "total_kg_producido": kg_asignados,
            "total_kg_en_stock": kg_en_stock,
            "total_unidades_producidas": unidades_producidas,
            "cantidad_lotes": len(lotes),
            "peso_disponible": orden.peso_neto - kg_asignados,
            "porcentaje_utilizado": porcentaje,
        },
        "lotes": [
            {
                "id": lote.pk,
                "nro_lote": lote.nro_lote,
                "cantidad_original": lote.cantidad_original,
                "cantidad_unidades": lote.cantidad_unidades,
                "kg_por_unidad": lote.kg_por_unidad,
                "total_kg_original": lote.total_kg_original,
                "total_kg": lote.total_kg,
                "presentacion": lote.presentacion,
                "estado": lote.estado,
            }
            for lote in lotes
        ],
    }
