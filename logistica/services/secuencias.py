from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from logistica.models import SecuenciaCodigo

PREFIJO_ORDEN_INGRESO = "OI"
PREFIJO_LOTE_PRODUCCION = "LP"
PREFIJO_ORDEN_SALIDA = "OS"

ANCHO_SECUENCIA = 4


def _periodo(fecha: date | None) -> str:
    if fecha is None:
        fecha = timezone.localdate()
    return f"{fecha.year}{fecha.month:02d}"


@transaction.atomic
def siguiente_codigo(prefijo: str, *, fecha: date | None = None) -> str:
    """
    Asigna el siguiente código del mes, ej: OI-202610-0001.

    Paso a paso:
    1) Obtener (o crear) el contador del (prefijo, año-mes)
    2) Bloquear la fila con select_for_update
    3) Incrementar ultimo_numero y guardar
    4) Devolver PREFIJO-YYYYMM-NNNN

    El bloqueo se mantiene hasta el commit de la transacción que llama,
    así dos altas simultáneas del mismo mes nunca reciben el mismo número.
    """
    periodo = _periodo(fecha)

    try:
        with transaction.atomic():
            SecuenciaCodigo.objects.get_or_create(prefijo=prefijo, periodo=periodo)
    except IntegrityError:
        # Otra transacción creó el contador al mismo tiempo; ya existe.
        pass

    secuencia = SecuenciaCodigo.objects.select_for_update().get(prefijo=prefijo, periodo=periodo)
    secuencia.ultimo_numero += 1
    secuencia.save(update_fields=["ultimo_numero"])

    return f"{prefijo}-{periodo}-{str(secuencia.ultimo_numero).zfill(ANCHO_SECUENCIA)}"
