import logging
from collections import OrderedDict
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.utils.dateparse import parse_date

from logistica.exceptions import AuthorizationError, BusinessRuleError, NotFoundError, ValidationError
from logistica.models import (
    Cliente,
    Conductor,
    DetalleOrdenSalida,
    EstadoLote,
    EstadoOrdenSalida,
    LoteProduccion,
    OrdenSalida,
    Semilla,
    Semillera,
    TipoMovimiento,
    Unidad,
    Vehiculo,
)
from logistica.roles import Actor, es_elevado, filtrar_por_unidad, resolver_unidad, verificar_acceso_unidad
from logistica.services import movimientos
from logistica.services.catalogos import a_decimal, a_entero, filtrar_cambios, obtener_catalogo
from logistica.services.secuencias import PREFIJO_ORDEN_SALIDA, siguiente_codigo

logger = logging.getLogger(__name__)


CAMPOS_CREACION = (
    "id_semillera",
    "id_semilla",
    "id_cliente",
    "id_conductor",
    "id_vehiculo",
    "id_unidad",
    "fecha_salida",
    "deposito",
    "observaciones",
    "estado",
    "total_costo_servicio",
    "detalles",
)

CAMPOS_DETALLE = ("id_lote_produccion", "cantidad_unidades", "kg_por_unidad", "tamano")

CAMPOS_EDITABLES = (
    "id_cliente",
    "id_conductor",
    "id_vehiculo",
    "fecha_salida",
    "deposito",
    "observaciones",
    "total_costo_servicio",
)

REFERENCIAS_EDITABLES = {
    "id_cliente": ("cliente", Cliente, "el cliente"),
    "id_conductor": ("conductor", Conductor, "el conductor"),
    "id_vehiculo": ("vehiculo", Vehiculo, "el vehículo"),
}

# Un lote descartado o vendido no se puede despachar.
ESTADOS_LOTE_VENDIBLES = (
    EstadoLote.DISPONIBLE,
    EstadoLote.RESERVADO,
    EstadoLote.PARCIALMENTE_VENDIDO,
)


def ordenes_visibles(actor: Actor):
    qs = OrdenSalida.objects.select_related(
        "semillera",
        "semilla",
        "cliente",
        "conductor",
        "vehiculo",
        "unidad",
        "usuario_creador",
    ).prefetch_related("detalles__variedad", "detalles__categoria")
    return filtrar_por_unidad(qs, actor)


def _a_fecha(valor, campo: str):
    if valor in (None, ""):
        return None
    if isinstance(valor, date):
        return valor
    try:
        fecha = parse_date(str(valor))
    except ValueError:
        fecha = None
    if fecha is None:
        raise ValidationError(f"El campo {campo} debe ser una fecha AAAA-MM-DD (recibido: {valor!r}).")
    return fecha


def ordenes_entre_fechas(actor: Actor, *, fecha_desde=None, fecha_hasta=None):
    """
    Órdenes visibles con fecha_salida dentro de [fecha_desde, fecha_hasta].
    Cualquiera de los dos extremos puede omitirse.
    """
    desde = _a_fecha(fecha_desde, "fecha_desde")
    hasta = _a_fecha(fecha_hasta, "fecha_hasta")
    if desde and hasta and desde > hasta:
        raise ValidationError(f"fecha_desde ({desde}) es posterior a fecha_hasta ({hasta}).")

    qs = ordenes_visibles(actor)
    if desde:
        qs = qs.filter(fecha_salida__gte=desde)
    if hasta:
        qs = qs.filter(fecha_salida__lte=hasta)
    return qs


def obtener_orden_salida(orden_id, *, actor: Actor, bloquear: bool = False) -> OrdenSalida:
    qs = OrdenSalida.objects.select_for_update() if bloquear else OrdenSalida.objects.all()
    try:
        orden = qs.get(pk=orden_id)
    except (OrdenSalida.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Orden de salida con ID {orden_id} no encontrada.")

    verificar_acceso_unidad(actor, orden.unidad_id, f"la orden de salida {orden.numero_orden}")
    return orden


def obtener_por_numero(numero_orden: str, *, actor: Actor) -> OrdenSalida:
    try:
        orden = OrdenSalida.objects.get(numero_orden=numero_orden)
    except OrdenSalida.DoesNotExist:
        raise NotFoundError(f"Orden de salida {numero_orden} no encontrada.")

    verificar_acceso_unidad(actor, orden.unidad_id, f"la orden de salida {numero_orden}")
    return orden


def _leer_lineas(detalles) -> list[dict]:
    if not isinstance(detalles, (list, tuple)) or not detalles:
        raise ValidationError("La orden de salida debe tener al menos un detalle.")

    lineas = []
    for posicion, detalle in enumerate(detalles, start=1):
        if not isinstance(detalle, dict):
            raise ValidationError(f"El detalle {posicion} no es un objeto.")
        detalle = filtrar_cambios(detalle, CAMPOS_DETALLE)

        kg_por_unidad = detalle.get("kg_por_unidad")
        lineas.append(
            {
                "posicion": posicion,
                "id_lote": a_entero(detalle.get("id_lote_produccion"), "id_lote_produccion"),
                "cantidad": a_entero(detalle.get("cantidad_unidades"), "cantidad_unidades", minimo=1),
                "kg_por_unidad": (
                    None if kg_por_unidad in (None, "")
                    else a_decimal(kg_por_unidad, "kg_por_unidad")
                ),
                "tamano": detalle.get("tamano") or "",
            }
        )
    return lineas


def _bloquear_lotes(ids) -> dict:
    """
    Bloquea los lotes en orden de id (orden fijo para evitar interbloqueos).
    """
    ids = sorted(set(ids))
    lotes = OrderedDict(
        (lote.pk, lote)
        for lote in LoteProduccion.objects.select_for_update().filter(pk__in=ids).order_by("pk")
    )
    faltantes = [pk for pk in ids if pk not in lotes]
    if faltantes:
        raise NotFoundError(
            f"Lote(s) de producción no encontrado(s): {', '.join(str(pk) for pk in faltantes)}."
        )
    return lotes


def _validar_lineas(lineas, lotes, *, semillera, semilla, id_unidad, actor) -> None:
    """
    Valida TODAS las líneas antes de escribir nada:
    - acceso a la unidad del lote y lote de la misma unidad que la orden
    - lote vendible (no descartado ni vendido)
    - procedencia: semillera de la orden de ingreso y semilla de la variedad
    - kg_por_unidad de la línea igual al del lote
    - suma de unidades pedidas por lote <= saldo del lote
    """
    procedencia = {
        pk: (id_semillera, id_semilla)
        for pk, id_semillera, id_semilla in LoteProduccion.objects.filter(pk__in=lotes.keys()).values_list(
            "pk", "orden_ingreso__semillera_id", "variedad__semilla_id"
        )
    }

    solicitado = {}
    for linea in lineas:
        lote = lotes[linea["id_lote"]]

        if not es_elevado(actor) and lote.unidad_id != actor.id_unidad:
            raise AuthorizationError(f"No tiene acceso al lote {lote.nro_lote}.")

        if lote.unidad_id != id_unidad:
            raise BusinessRuleError(
                f"El lote {lote.nro_lote} pertenece a la unidad {lote.unidad_id}, "
                f"la orden de salida a la unidad {id_unidad}."
            )

        if lote.estado not in ESTADOS_LOTE_VENDIBLES:
            raise BusinessRuleError(
                f"El lote {lote.nro_lote} está {lote.estado} y no se puede despachar."
            )

        id_semillera, id_semilla = procedencia[lote.pk]
        if id_semillera != semillera.pk:
            raise BusinessRuleError(
                f"El lote {lote.nro_lote} proviene de la semillera {id_semillera}, "
                f"no de la semillera {semillera.pk} ({semillera.nombre})."
            )
        if id_semilla != semilla.pk:
            raise BusinessRuleError(
                f"El lote {lote.nro_lote} es de la semilla {id_semilla}, "
                f"no de la semilla {semilla.pk} ({semilla.nombre})."
            )

        if linea["kg_por_unidad"] is not None and linea["kg_por_unidad"] != lote.kg_por_unidad:
            raise BusinessRuleError(
                f"El detalle {linea['posicion']} indica {linea['kg_por_unidad']} kg por unidad, "
                f"pero el lote {lote.nro_lote} tiene {lote.kg_por_unidad} kg por unidad."
            )

        solicitado[lote.pk] = solicitado.get(lote.pk, 0) + linea["cantidad"]
        if solicitado[lote.pk] > lote.cantidad_unidades:
            raise BusinessRuleError(
                f"El lote {lote.nro_lote} no tiene suficientes unidades. "
                f"Disponible: {lote.cantidad_unidades}, solicitado: {solicitado[lote.pk]}."
            )


@transaction.atomic
def crear_orden_salida(*, datos: dict, actor: Actor) -> OrdenSalida:
    """
    Crea una orden de salida y descuenta los lotes, todo o nada.

    Paso a paso:
    1) Bloquear los lotes referenciados y validar todas las líneas
    2) Asignar OS-YYYYMM-NNNN
    3) Guardar la cabecera
    4) Por línea: guardar el detalle (con la foto de variedad/categoría/nro_lote),
       descontar el lote (vendido si llega a 0, si no parcialmente_vendido)
       y registrar el movimiento de salida con el saldo resultante
    Cualquier error revierte todo lo anterior.
    """
    datos = filtrar_cambios(datos, CAMPOS_CREACION)

    id_unidad = resolver_unidad(actor, datos.get("id_unidad"))
    unidad = obtener_catalogo(Unidad, id_unidad, "la unidad")

    estado = datos.get("estado") or EstadoOrdenSalida.PENDIENTE
    if estado not in EstadoOrdenSalida.values:
        raise ValidationError(f"Estado no válido: {estado}.")
    if estado == EstadoOrdenSalida.CANCELADO:
        raise ValidationError("Una orden de salida no se puede crear cancelada.")

    if not datos.get("fecha_salida"):
        raise ValidationError("Debe indicar la fecha de salida.")

    costo = datos.get("total_costo_servicio")
    if costo not in (None, ""):
        costo = a_decimal(costo, "total_costo_servicio", minimo=Decimal("0"), max_digitos=12)
    else:
        costo = None

    semillera = obtener_catalogo(Semillera, datos.get("id_semillera"), "la semillera")
    semilla = obtener_catalogo(Semilla, datos.get("id_semilla"), "la semilla")
    cliente = obtener_catalogo(Cliente, datos.get("id_cliente"), "el cliente")
    conductor = obtener_catalogo(Conductor, datos.get("id_conductor"), "el conductor")
    vehiculo = obtener_catalogo(Vehiculo, datos.get("id_vehiculo"), "el vehículo")

    lineas = _leer_lineas(datos.get("detalles"))
    lotes = _bloquear_lotes(linea["id_lote"] for linea in lineas)

    try:
        _validar_lineas(
            lineas, lotes,
            semillera=semillera,
            semilla=semilla,
            id_unidad=unidad.pk,
            actor=actor,
        )
    except BusinessRuleError as exc:
        logger.warning("Orden de salida rechazada: %s", exc.mensaje)
        raise

    orden = OrdenSalida(
        semillera=semillera,
        semilla=semilla,
        cliente=cliente,
        conductor=conductor,
        vehiculo=vehiculo,
        unidad=unidad,
        deposito=datos.get("deposito") or "",
        observaciones=datos.get("observaciones") or "",
        estado=estado,
        fecha_salida=datos["fecha_salida"],
        total_costo_servicio=costo,
        usuario_creador_id=actor.id_usuario,
    )
    orden.numero_orden = siguiente_codigo(PREFIJO_ORDEN_SALIDA)
    orden.save()

    for linea in lineas:
        lote = lotes[linea["id_lote"]]
        total_kg = LoteProduccion.calcular_kg(linea["cantidad"], lote.kg_por_unidad)

        DetalleOrdenSalida.objects.create(
            orden_salida=orden,
            lote=lote,
            variedad_id=lote.variedad_id,
            categoria_id=lote.categoria_salida_id,
            nro_lote=lote.nro_lote,
            tamano=linea["tamano"],
            cantidad_unidades=linea["cantidad"],
            kg_por_unidad=lote.kg_por_unidad,
            total_kg=total_kg,
        )

        lote.cantidad_unidades -= linea["cantidad"]
        lote.recalcular_total_kg()
        if lote.cantidad_unidades == 0:
            lote.estado = EstadoLote.VENDIDO
        else:
            lote.estado = EstadoLote.PARCIALMENTE_VENDIDO
        lote.save(update_fields=["cantidad_unidades", "total_kg", "estado", "updated_at"])

        movimientos.registrar_movimiento(
            lote=lote,
            tipo=TipoMovimiento.SALIDA,
            cantidad_unidades=linea["cantidad"],
            kg_movidos=total_kg,
            usuario_id=actor.id_usuario,
            orden_salida=orden,
            observaciones=f"Salida por la orden {orden.numero_orden}",
        )

    logger.info(
        "Orden de salida %s creada: %s línea(s), lotes %s",
        orden.numero_orden, len(lineas), ", ".join(lote.nro_lote for lote in lotes.values()),
    )
    return orden


def _devolver_unidades(orden: OrdenSalida, *, actor: Actor, motivo: str) -> None:
    """
    Devuelve a sus lotes las unidades de cada línea con un ajuste en el libro.
    """
    detalles = list(orden.detalles.order_by("id"))
    lotes = _bloquear_lotes(detalle.lote_id for detalle in detalles)

    for detalle in detalles:
        lote = lotes[detalle.lote_id]
        lote.cantidad_unidades += detalle.cantidad_unidades
        lote.recalcular_total_kg()

        otras_ventas = (
            DetalleOrdenSalida.objects.filter(lote=lote)
            .exclude(orden_salida=orden)
            .exclude(orden_salida__estado=EstadoOrdenSalida.CANCELADO)
            .exists()
        )
        # Un lote dado de baja sigue de baja aunque recupere unidades.
        if lote.estado != EstadoLote.DESCARTADO:
            lote.estado = EstadoLote.PARCIALMENTE_VENDIDO if otras_ventas else EstadoLote.DISPONIBLE
        lote.save(update_fields=["cantidad_unidades", "total_kg", "estado", "updated_at"])

        movimientos.registrar_movimiento(
            lote=lote,
            tipo=TipoMovimiento.AJUSTE,
            cantidad_unidades=detalle.cantidad_unidades,
            kg_movidos=detalle.total_kg,
            usuario_id=actor.id_usuario,
            orden_salida=orden,
            observaciones=f"{motivo} {orden.numero_orden}: devolución de {detalle.cantidad_unidades} unidades",
        )


@transaction.atomic
def cambiar_estado_orden_salida(orden_id, nuevo_estado: str, *, actor: Actor) -> OrdenSalida:
    """
    - completado y cancelado son terminales.
    - Al cancelar, las unidades vuelven a los lotes.
    """
    if nuevo_estado not in EstadoOrdenSalida.values:
        raise ValidationError(f"Estado no válido: {nuevo_estado}.")

    orden = obtener_orden_salida(orden_id, actor=actor, bloquear=True)

    if orden.es_terminal:
        raise BusinessRuleError(
            f"La orden {orden.numero_orden} ya está en estado {orden.estado}; "
            f"la transición a {nuevo_estado} es irreversible."
        )

    if nuevo_estado == orden.estado:
        return orden

    if nuevo_estado == EstadoOrdenSalida.CANCELADO:
        _devolver_unidades(orden, actor=actor, motivo="Cancelación de la orden")

    logger.info("Orden de salida %s: %s → %s", orden.numero_orden, orden.estado, nuevo_estado)
    orden.estado = nuevo_estado
    orden.save(update_fields=["estado", "updated_at"])
    return orden


@transaction.atomic
def actualizar_orden_salida(orden_id, *, cambios: dict, actor: Actor) -> OrdenSalida:
    """
    Patch de cabecera (cliente, transporte, fecha, depósito, notas, costo).
    Las líneas no se editan: para corregirlas se cancela la orden.
    """
    cambios = filtrar_cambios(cambios, CAMPOS_EDITABLES)
    orden = obtener_orden_salida(orden_id, actor=actor, bloquear=True)

    if orden.estado == EstadoOrdenSalida.COMPLETADO:
        raise BusinessRuleError(f"No se puede modificar la orden {orden.numero_orden}: está completada.")

    for clave, valor in cambios.items():
        if clave in REFERENCIAS_EDITABLES:
            campo, modelo, etiqueta = REFERENCIAS_EDITABLES[clave]
            setattr(orden, campo, obtener_catalogo(modelo, valor, etiqueta))
        elif clave == "total_costo_servicio":
            orden.total_costo_servicio = (
                None if valor in (None, "")
                else a_decimal(valor, clave, minimo=Decimal("0"), max_digitos=12)
            )
        elif clave == "fecha_salida":
            if not valor:
                raise ValidationError("Debe indicar la fecha de salida.")
            orden.fecha_salida = valor
        else:
            setattr(orden, clave, valor or "")

    orden.save()
    return orden


@transaction.atomic
def eliminar_orden_salida(orden_id, *, actor: Actor) -> None:
    orden = obtener_orden_salida(orden_id, actor=actor, bloquear=True)

    if orden.estado == EstadoOrdenSalida.COMPLETADO:
        raise BusinessRuleError(f"No se puede eliminar la orden {orden.numero_orden}: está completada.")

    if orden.estado != EstadoOrdenSalida.CANCELADO:
        _devolver_unidades(orden, actor=actor, motivo="Eliminación de la orden")

    logger.info("Orden de salida %s eliminada", orden.numero_orden)
    orden.delete()
