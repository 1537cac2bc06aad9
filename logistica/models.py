from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum
from django.utils import timezone

from logistica import exceptions


class TimeStampedModel(models.Model):
    """
    Modelo base abstracto con timestamps estándar.
    """
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ---------------------------------------------------------------------------
# Catálogos de referencia
# ---------------------------------------------------------------------------


class Unidad(TimeStampedModel):
    """
    Unidad operativa (planta, almacén regional). Limita lo que ven y operan
    los usuarios que no son administradores.
    """
    nombre = models.CharField(max_length=100, unique=True)
    ubicacion = models.TextField(blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Unidad"
        verbose_name_plural = "Unidades"
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


class Categoria(TimeStampedModel):
    """
    Categoría de semilla (ej: Básica, Registrada, Certificada, Fiscalizada).
    """
    nombre = models.CharField(max_length=100, unique=True)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Categoría"
        verbose_name_plural = "Categorías"
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


class Semilla(TimeStampedModel):
    nombre = models.CharField(max_length=100, unique=True)
    activo = models.BooleanField(default=True)

    class Meta:
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


class Variedad(TimeStampedModel):
    semilla = models.ForeignKey(
        Semilla,
        on_delete=models.PROTECT,
        related_name="variedades",
    )
    nombre = models.CharField(max_length=100)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Variedad"
        verbose_name_plural = "Variedades"
        ordering = ["semilla__nombre", "nombre"]
        unique_together = ("semilla", "nombre")

    def __str__(self):
        return f"{self.semilla} - {self.nombre}"


class Semillera(TimeStampedModel):
    """
    Empresa semillera (vendedor) a la que pertenecen los cooperadores.
    """
    nombre = models.CharField(max_length=200, unique=True)
    direccion = models.CharField(max_length=300, blank=True)
    telefono = models.CharField(max_length=50, blank=True)
    nit = models.CharField(max_length=50, blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


class Cooperador(TimeStampedModel):
    semillera = models.ForeignKey(
        Semillera,
        on_delete=models.PROTECT,
        related_name="cooperadores",
    )
    nombre = models.CharField(max_length=200)
    ci = models.CharField(max_length=50, blank=True)
    telefono = models.CharField(max_length=50, blank=True)
    direccion = models.CharField(max_length=300, blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "Cooperadores"
        ordering = ["nombre"]
        constraints = [
            models.UniqueConstraint(
                fields=["ci"],
                condition=~Q(ci=""),
                name="cooperador_ci_unico",
            ),
        ]

    def __str__(self):
        return self.nombre


class Conductor(TimeStampedModel):
    nombre = models.CharField(max_length=200)
    ci = models.CharField(max_length=50, unique=True)
    telefono = models.CharField(max_length=50, blank=True)
    licencia = models.CharField(max_length=50, blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "Conductores"
        ordering = ["nombre"]

    def __str__(self):
        return f"{self.nombre} ({self.ci})"


class Vehiculo(TimeStampedModel):
    placa = models.CharField(max_length=20, unique=True)
    tipo = models.CharField(max_length=100, blank=True)
    marca = models.CharField(max_length=100, blank=True)
    modelo = models.CharField(max_length=100, blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Vehículo"
        verbose_name_plural = "Vehículos"
        ordering = ["placa"]

    def __str__(self):
        return self.placa


class Cliente(TimeStampedModel):
    nombre = models.CharField(max_length=200)
    nit = models.CharField(max_length=50, blank=True)
    telefono = models.CharField(max_length=50, blank=True)
    direccion = models.CharField(max_length=300, blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


class Servicio(TimeStampedModel):
    """
    Tipo de servicio prestado sobre un lote (ej: limpieza, tratamiento, embolsado).
    """
    nombre = models.CharField(max_length=100, unique=True)
    descripcion = models.CharField(max_length=500, blank=True)
    activo = models.BooleanField(default=True)

    class Meta:
        ordering = ["nombre"]

    def __str__(self):
        return self.nombre


# ---------------------------------------------------------------------------
# Estados y tipos
# ---------------------------------------------------------------------------


class EstadoOrdenIngreso(models.TextChoices):
    PENDIENTE = "pendiente", "Pendiente"
    EN_PROCESO = "en_proceso", "En proceso"
    COMPLETADO = "completado", "Completado"
    CANCELADO = "cancelado", "Cancelado"


class EstadoLote(models.TextChoices):
    DISPONIBLE = "disponible", "Disponible"
    RESERVADO = "reservado", "Reservado"
    PARCIALMENTE_VENDIDO = "parcialmente_vendido", "Parcialmente vendido"
    VENDIDO = "vendido", "Vendido"
    DESCARTADO = "descartado", "Descartado"


class EstadoOrdenSalida(models.TextChoices):
    PENDIENTE = "pendiente", "Pendiente"
    EN_TRANSITO = "en_transito", "En tránsito"
    COMPLETADO = "completado", "Completado"
    CANCELADO = "cancelado", "Cancelado"


class TipoMovimiento(models.TextChoices):
    ENTRADA = "entrada", "Entrada"
    SALIDA = "salida", "Salida"
    AJUSTE = "ajuste", "Ajuste"
    MERMA = "merma", "Merma"


# ---------------------------------------------------------------------------
# Órdenes de ingreso
# ---------------------------------------------------------------------------


class OrdenIngreso(TimeStampedModel):
    """
    Una entrega de semilla en bruto. El peso_neto es el presupuesto que
    pueden consumir los lotes de producción derivados de esta orden.
    """

    numero_orden = models.CharField(max_length=50, unique=True)

    # Transporte
    semillera = models.ForeignKey(Semillera, on_delete=models.PROTECT, related_name="ordenes_ingreso")
    cooperador = models.ForeignKey(Cooperador, on_delete=models.PROTECT, related_name="ordenes_ingreso")
    conductor = models.ForeignKey(Conductor, on_delete=models.PROTECT, related_name="ordenes_ingreso")
    vehiculo = models.ForeignKey(Vehiculo, on_delete=models.PROTECT, related_name="ordenes_ingreso")

    # Semilla
    semilla = models.ForeignKey(Semilla, on_delete=models.PROTECT, related_name="ordenes_ingreso")
    variedad = models.ForeignKey(Variedad, on_delete=models.PROTECT, related_name="ordenes_ingreso")
    categoria_ingreso = models.ForeignKey(
        Categoria,
        on_delete=models.PROTECT,
        related_name="ordenes_ingreso",
    )
    nro_lote_campo = models.CharField(max_length=100, blank=True)
    nro_cupon = models.CharField(max_length=100, blank=True)

    lugar_ingreso = models.CharField(max_length=200, blank=True)
    hora_ingreso = models.DateTimeField(null=True, blank=True)
    lugar_salida = models.CharField(max_length=200, blank=True)
    hora_salida = models.DateTimeField(null=True, blank=True)

    # Pesaje (kg)
    peso_bruto = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    peso_tara = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    peso_neto = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Presupuesto en kg disponible para los lotes de producción.",
    )
    peso_liquido = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    # Laboratorio
    porcentaje_humedad = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    porcentaje_impureza = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    peso_hectolitrico = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    porcentaje_grano_danado = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    porcentaje_grano_verde = models.DecimalField(max_digits=5, decimal_places=2, default=0)

    observaciones = models.TextField(blank=True)

    estado = models.CharField(
        max_length=20,
        choices=EstadoOrdenIngreso.choices,
        default=EstadoOrdenIngreso.PENDIENTE,
    )
    unidad = models.ForeignKey(Unidad, on_delete=models.PROTECT, related_name="ordenes_ingreso")
    usuario_creador = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ordenes_ingreso_creadas",
    )

    class Meta:
        verbose_name = "Orden de ingreso"
        verbose_name_plural = "Órdenes de ingreso"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.numero_orden

    @property
    def es_terminal(self) -> bool:
        return self.estado in (EstadoOrdenIngreso.COMPLETADO, EstadoOrdenIngreso.CANCELADO)

    @property
    def kg_asignados(self) -> Decimal:
        """
        Suma del peso original de todos sus lotes (lo vendido no libera presupuesto).
        """
        total = self.lotes.aggregate(total=Sum("total_kg_original"))["total"]
        return total or Decimal("0")


# ---------------------------------------------------------------------------
# Lotes de producción
# ---------------------------------------------------------------------------


class LoteProduccion(TimeStampedModel):
    """
    Lote procesado/embolsado derivado de una orden de ingreso.

    - cantidad_unidades / total_kg: saldo actual (baja con cada venta).
    - cantidad_original / total_kg_original: foto al crear, usada para el
      presupuesto de la orden de ingreso.
    """

    orden_ingreso = models.ForeignKey(
        OrdenIngreso,
        on_delete=models.PROTECT,
        related_name="lotes",
    )
    variedad = models.ForeignKey(Variedad, on_delete=models.PROTECT, related_name="lotes_produccion")
    categoria_salida = models.ForeignKey(
        Categoria,
        on_delete=models.PROTECT,
        related_name="lotes_produccion",
    )
    unidad = models.ForeignKey(Unidad, on_delete=models.PROTECT, related_name="lotes_produccion")

    nro_lote = models.CharField(max_length=50, unique=True)

    cantidad_unidades = models.PositiveIntegerField(help_text="Unidades (bolsas) disponibles.")
    kg_por_unidad = models.DecimalField(max_digits=10, decimal_places=2)
    total_kg = models.DecimalField(max_digits=12, decimal_places=2)

    cantidad_original = models.PositiveIntegerField(editable=False)
    total_kg_original = models.DecimalField(max_digits=12, decimal_places=2, editable=False)

    presentacion = models.CharField(max_length=100, blank=True)
    tipo_servicio = models.CharField(max_length=100, blank=True)
    fecha_produccion = models.DateField(null=True, blank=True)

    estado = models.CharField(
        max_length=30,
        choices=EstadoLote.choices,
        default=EstadoLote.DISPONIBLE,
    )
    usuario_creador = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="lotes_creados",
    )

    class Meta:
        verbose_name = "Lote de producción"
        verbose_name_plural = "Lotes de producción"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.nro_lote

    @staticmethod
    def calcular_kg(cantidad_unidades, kg_por_unidad) -> Decimal:
        return (Decimal(cantidad_unidades) * Decimal(kg_por_unidad)).quantize(Decimal("0.01"))

    def recalcular_total_kg(self) -> Decimal:
        self.total_kg = self.calcular_kg(self.cantidad_unidades, self.kg_por_unidad)
        return self.total_kg

    @property
    def saldo_consistente(self) -> bool:
        return self.calcular_kg(self.cantidad_unidades, self.kg_por_unidad) == self.total_kg


# ---------------------------------------------------------------------------
# Órdenes de salida
# ---------------------------------------------------------------------------


class OrdenSalida(TimeStampedModel):
    numero_orden = models.CharField(max_length=50, unique=True)

    semillera = models.ForeignKey(Semillera, on_delete=models.PROTECT, related_name="ordenes_salida")
    semilla = models.ForeignKey(Semilla, on_delete=models.PROTECT, related_name="ordenes_salida")
    cliente = models.ForeignKey(Cliente, on_delete=models.PROTECT, related_name="ordenes_salida")
    conductor = models.ForeignKey(Conductor, on_delete=models.PROTECT, related_name="ordenes_salida")
    vehiculo = models.ForeignKey(Vehiculo, on_delete=models.PROTECT, related_name="ordenes_salida")
    unidad = models.ForeignKey(Unidad, on_delete=models.PROTECT, related_name="ordenes_salida")

    deposito = models.CharField(max_length=200, blank=True)
    observaciones = models.TextField(blank=True)
    estado = models.CharField(
        max_length=20,
        choices=EstadoOrdenSalida.choices,
        default=EstadoOrdenSalida.PENDIENTE,
    )
    fecha_salida = models.DateField()
    total_costo_servicio = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Costo total del servicio (solo registro, no se concilia).",
    )
    usuario_creador = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="ordenes_salida_creadas",
    )

    class Meta:
        verbose_name = "Orden de salida"
        verbose_name_plural = "Órdenes de salida"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.numero_orden

    @property
    def es_terminal(self) -> bool:
        return self.estado in (EstadoOrdenSalida.COMPLETADO, EstadoOrdenSalida.CANCELADO)

    @property
    def total_kg(self) -> Decimal:
        total = self.detalles.aggregate(total=Sum("total_kg"))["total"]
        return total or Decimal("0")


class DetalleOrdenSalida(models.Model):
    """
    Línea de una orden de salida. variedad, categoria y nro_lote son una foto
    del lote al momento de la venta y no se normalizan.
    """
    orden_salida = models.ForeignKey(
        OrdenSalida,
        on_delete=models.CASCADE,
        related_name="detalles",
    )
    lote = models.ForeignKey(
        LoteProduccion,
        on_delete=models.PROTECT,
        related_name="detalles_salida",
    )
    variedad = models.ForeignKey(Variedad, on_delete=models.PROTECT, related_name="detalles_salida")
    categoria = models.ForeignKey(Categoria, on_delete=models.PROTECT, related_name="detalles_salida")
    nro_lote = models.CharField(max_length=50)
    tamano = models.CharField(max_length=100, blank=True)
    cantidad_unidades = models.PositiveIntegerField()
    kg_por_unidad = models.DecimalField(max_digits=10, decimal_places=2)
    total_kg = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Detalle de orden de salida"
        verbose_name_plural = "Detalles de orden de salida"
        ordering = ["id"]

    def __str__(self):
        return f"{self.nro_lote} x {self.cantidad_unidades}"


# ---------------------------------------------------------------------------
# Movimientos de lote (libro de movimientos)
# ---------------------------------------------------------------------------


class MovimientoLoteQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise exceptions.IntegrityError("Los movimientos de lote no se pueden modificar.")

    def delete(self):
        raise exceptions.IntegrityError("Los movimientos de lote no se pueden eliminar.")


class MovimientoLote(models.Model):
    """
    Registro inmutable de cada cambio de cantidad/peso de un lote.

    saldo_unidades / saldo_kg son el saldo del lote DESPUÉS del movimiento,
    no un delta. cantidad_unidades y kg_movidos se guardan sin signo; el
    signo lo da tipo_movimiento (en los ajustes, la variación del saldo).

    La referencia al lote y a la orden de salida no tiene restricción en BD:
    el historial se conserva aunque se eliminen.
    """

    lote = models.ForeignKey(
        LoteProduccion,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="movimientos",
    )
    nro_lote = models.CharField(max_length=50)
    tipo_movimiento = models.CharField(
        max_length=10,
        choices=TipoMovimiento.choices,
        default=TipoMovimiento.ENTRADA,
    )
    cantidad_unidades = models.PositiveIntegerField()
    kg_movidos = models.DecimalField(max_digits=12, decimal_places=2)
    saldo_unidades = models.PositiveIntegerField()
    saldo_kg = models.DecimalField(max_digits=12, decimal_places=2)
    orden_salida = models.ForeignKey(
        OrdenSalida,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="movimientos",
    )
    observaciones = models.TextField(blank=True)
    usuario = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="movimientos_lote",
    )
    fecha_movimiento = models.DateTimeField(default=timezone.now)

    objects = MovimientoLoteQuerySet.as_manager()

    class Meta:
        verbose_name = "Movimiento de lote"
        verbose_name_plural = "Movimientos de lote"
        ordering = ["-fecha_movimiento", "-id"]

    def __str__(self):
        return f"{self.tipo_movimiento} {self.nro_lote} ({self.cantidad_unidades})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise exceptions.IntegrityError(
                f"El movimiento {self.pk} ya fue registrado y no se puede modificar."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise exceptions.IntegrityError(
            f"El movimiento {self.pk} no se puede eliminar."
        )


# ---------------------------------------------------------------------------
# Secuencias de códigos
# ---------------------------------------------------------------------------


class SecuenciaCodigo(models.Model):
    """
    Contador por (prefijo, año-mes) para OI-/LP-/OS-YYYYMM-NNNN.
    Se incrementa con la fila bloqueada (select_for_update).
    """
    prefijo = models.CharField(max_length=10)
    periodo = models.CharField(max_length=6, help_text="Año y mes, YYYYMM.")
    ultimo_numero = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = "Secuencia de código"
        verbose_name_plural = "Secuencias de código"
        unique_together = ("prefijo", "periodo")
        ordering = ["prefijo", "-periodo"]

    def __str__(self):
        return f"{self.prefijo}-{self.periodo}: {self.ultimo_numero}"


from logistica.models_roles import PerfilUsuario, Rol  # noqa: E402,F401
