from decimal import Decimal

from rest_framework import serializers

from .models import (
    Categoria,
    Cliente,
    Conductor,
    Cooperador,
    DetalleOrdenSalida,
    LoteProduccion,
    MovimientoLote,
    OrdenIngreso,
    OrdenSalida,
    Semilla,
    Semillera,
    Servicio,
    Unidad,
    Variedad,
    Vehiculo,
)


# ---------------------------------------------------------------------------
# Catálogos
# ---------------------------------------------------------------------------


class UnidadSerializer(serializers.ModelSerializer):
    class Meta:
        model = Unidad
        fields = ["id", "nombre", "ubicacion", "activo", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class CategoriaSerializer(serializers.ModelSerializer):
    class Meta:
        model = Categoria
        fields = ["id", "nombre", "activo", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class SemillaSerializer(serializers.ModelSerializer):
    class Meta:
        model = Semilla
        fields = ["id", "nombre", "activo", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class VariedadSerializer(serializers.ModelSerializer):
    semilla_detalle = SemillaSerializer(source="semilla", read_only=True)

    class Meta:
        model = Variedad
        fields = [
            "id",
            "semilla",
            "semilla_detalle",
            "nombre",
            "activo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class SemilleraSerializer(serializers.ModelSerializer):
    class Meta:
        model = Semillera
        fields = [
            "id",
            "nombre",
            "direccion",
            "telefono",
            "nit",
            "activo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class CooperadorSerializer(serializers.ModelSerializer):
    semillera_detalle = SemilleraSerializer(source="semillera", read_only=True)

    class Meta:
        model = Cooperador
        fields = [
            "id",
            "semillera",
            "semillera_detalle",
            "nombre",
            "ci",
            "telefono",
            "direccion",
            "activo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]
        # La unicidad parcial de ci se valida en validate_ci.
        validators = []

    def validate_ci(self, value):
        if not value:
            return value
        qs = Cooperador.objects.filter(ci=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError(
                f"Ya existe un cooperador con CI {value}.", code="unique"
            )
        return value


class ConductorSerializer(serializers.ModelSerializer):
    class Meta:
        model = Conductor
        fields = [
            "id",
            "nombre",
            "ci",
            "telefono",
            "licencia",
            "activo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class VehiculoSerializer(serializers.ModelSerializer):
    class Meta:
        model = Vehiculo
        fields = ["id", "placa", "tipo", "marca", "modelo", "activo", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_placa(self, value):
        return value.strip().upper()


class ClienteSerializer(serializers.ModelSerializer):
    class Meta:
        model = Cliente
        fields = [
            "id",
            "nombre",
            "nit",
            "telefono",
            "direccion",
            "activo",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class ServicioSerializer(serializers.ModelSerializer):
    class Meta:
        model = Servicio
        fields = ["id", "nombre", "descripcion", "activo", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


# ---------------------------------------------------------------------------
# Órdenes de ingreso
# ---------------------------------------------------------------------------


class OrdenIngresoSerializer(serializers.ModelSerializer):
    """
    Solo lectura: las escrituras pasan por OrdenIngresoEntradaSerializer
    y los servicios.
    """

    semillera_detalle = SemilleraSerializer(source="semillera", read_only=True)
    cooperador_detalle = CooperadorSerializer(source="cooperador", read_only=True)
    conductor_detalle = ConductorSerializer(source="conductor", read_only=True)
    vehiculo_detalle = VehiculoSerializer(source="vehiculo", read_only=True)
    variedad_detalle = VariedadSerializer(source="variedad", read_only=True)
    categoria_ingreso_detalle = CategoriaSerializer(source="categoria_ingreso", read_only=True)
    unidad_detalle = UnidadSerializer(source="unidad", read_only=True)

    class Meta:
        model = OrdenIngreso
        fields = [
            "id",
            "numero_orden",
            "semillera",
            "semillera_detalle",
            "cooperador",
            "cooperador_detalle",
            "conductor",
            "conductor_detalle",
            "vehiculo",
            "vehiculo_detalle",
            "semilla",
            "variedad",
            "variedad_detalle",
            "categoria_ingreso",
            "categoria_ingreso_detalle",
            "nro_lote_campo",
            "nro_cupon",
            "lugar_ingreso",
            "hora_ingreso",
            "lugar_salida",
            "hora_salida",
            "peso_bruto",
            "peso_tara",
            "peso_neto",
            "peso_liquido",
            "porcentaje_humedad",
            "porcentaje_impureza",
            "peso_hectolitrico",
            "porcentaje_grano_danado",
            "porcentaje_grano_verde",
            "observaciones",
            "estado",
            "unidad",
            "unidad_detalle",
            "usuario_creador",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class OrdenIngresoEntradaSerializer(serializers.Serializer):
    id_semillera = serializers.IntegerField()
    id_cooperador = serializers.IntegerField()
    id_conductor = serializers.IntegerField()
    id_vehiculo = serializers.IntegerField()
    id_semilla = serializers.IntegerField()
    id_variedad = serializers.IntegerField()
    id_categoria_ingreso = serializers.IntegerField()
    id_unidad = serializers.IntegerField(required=False, allow_null=True)

    nro_lote_campo = serializers.CharField(required=False, allow_blank=True, max_length=100)
    nro_cupon = serializers.CharField(required=False, allow_blank=True, max_length=100)
    lugar_ingreso = serializers.CharField(required=False, allow_blank=True, max_length=200)
    hora_ingreso = serializers.DateTimeField(required=False, allow_null=True)
    lugar_salida = serializers.CharField(required=False, allow_blank=True, max_length=200)
    hora_salida = serializers.DateTimeField(required=False, allow_null=True)

    peso_bruto = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False)
    peso_tara = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False)
    peso_neto = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False)
    peso_liquido = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False)
    peso_hectolitrico = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0"), required=False
    )

    porcentaje_humedad = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), required=False
    )
    porcentaje_impureza = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), required=False
    )
    porcentaje_grano_danado = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), required=False
    )
    porcentaje_grano_verde = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=Decimal("0"), max_value=Decimal("100"), required=False
    )

    observaciones = serializers.CharField(required=False, allow_blank=True)
    estado = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        # En un patch el estado se cambia por /estado/.
        if self.partial and "estado" in attrs:
            raise serializers.ValidationError({"estado": "Use el endpoint de cambio de estado."})
        return attrs


# ---------------------------------------------------------------------------
# Lotes de producción y movimientos
# ---------------------------------------------------------------------------


class LoteProduccionSerializer(serializers.ModelSerializer):
    orden_ingreso_numero = serializers.CharField(source="orden_ingreso.numero_orden", read_only=True)
    variedad_detalle = VariedadSerializer(source="variedad", read_only=True)
    categoria_salida_detalle = CategoriaSerializer(source="categoria_salida", read_only=True)
    unidad_detalle = UnidadSerializer(source="unidad", read_only=True)

    class Meta:
        model = LoteProduccion
        fields = [
            "id",
            "nro_lote",
            "orden_ingreso",
            "orden_ingreso_numero",
            "variedad",
            "variedad_detalle",
            "categoria_salida",
            "categoria_salida_detalle",
            "unidad",
            "unidad_detalle",
            "cantidad_unidades",
            "kg_por_unidad",
            "total_kg",
            "cantidad_original",
            "total_kg_original",
            "presentacion",
            "tipo_servicio",
            "fecha_produccion",
            "estado",
            "usuario_creador",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class LoteProduccionEntradaSerializer(serializers.Serializer):
    id_orden_ingreso = serializers.IntegerField()
    id_variedad = serializers.IntegerField()
    id_categoria_salida = serializers.IntegerField()
    cantidad_unidades = serializers.IntegerField(min_value=1)
    kg_por_unidad = serializers.DecimalField(max_digits=10, decimal_places=2)
    presentacion = serializers.CharField(required=False, allow_blank=True, max_length=100)
    tipo_servicio = serializers.CharField(required=False, allow_blank=True, max_length=100)
    fecha_produccion = serializers.DateField(required=False, allow_null=True)
    estado = serializers.CharField(required=False, allow_blank=True)

    def validate_kg_por_unidad(self, value):
        if value <= 0:
            raise serializers.ValidationError("Los kg por unidad deben ser mayores a cero.")
        return value

    def validate(self, attrs):
        if self.partial:
            for campo in ("id_orden_ingreso", "estado"):
                if campo in attrs:
                    raise serializers.ValidationError({campo: "Este campo no se puede modificar."})
        return attrs


class MovimientoLoteSerializer(serializers.ModelSerializer):
    usuario_nombre = serializers.CharField(source="usuario.username", read_only=True, default=None)

    class Meta:
        model = MovimientoLote
        fields = [
            "id",
            "lote",
            "nro_lote",
            "tipo_movimiento",
            "cantidad_unidades",
            "kg_movidos",
            "saldo_unidades",
            "saldo_kg",
            "orden_salida",
            "observaciones",
            "usuario",
            "usuario_nombre",
            "fecha_movimiento",
        ]
        read_only_fields = fields


class MermaSerializer(serializers.Serializer):
    cantidad_unidades = serializers.IntegerField(min_value=1)
    motivo = serializers.CharField()


class CambioEstadoSerializer(serializers.Serializer):
    estado = serializers.CharField()


# ---------------------------------------------------------------------------
# Órdenes de salida
# ---------------------------------------------------------------------------


class DetalleOrdenSalidaSerializer(serializers.ModelSerializer):
    variedad_detalle = VariedadSerializer(source="variedad", read_only=True)
    categoria_detalle = CategoriaSerializer(source="categoria", read_only=True)

    class Meta:
        model = DetalleOrdenSalida
        fields = [
            "id",
            "lote",
            "nro_lote",
            "variedad",
            "variedad_detalle",
            "categoria",
            "categoria_detalle",
            "tamano",
            "cantidad_unidades",
            "kg_por_unidad",
            "total_kg",
            "created_at",
        ]
        read_only_fields = fields


class OrdenSalidaSerializer(serializers.ModelSerializer):
    semillera_detalle = SemilleraSerializer(source="semillera", read_only=True)
    semilla_detalle = SemillaSerializer(source="semilla", read_only=True)
    cliente_detalle = ClienteSerializer(source="cliente", read_only=True)
    conductor_detalle = ConductorSerializer(source="conductor", read_only=True)
    vehiculo_detalle = VehiculoSerializer(source="vehiculo", read_only=True)
    unidad_detalle = UnidadSerializer(source="unidad", read_only=True)
    detalles = DetalleOrdenSalidaSerializer(many=True, read_only=True)
    total_kg = serializers.SerializerMethodField()

    class Meta:
        model = OrdenSalida
        fields = [
            "id",
            "numero_orden",
            "semillera",
            "semillera_detalle",
            "semilla",
            "semilla_detalle",
            "cliente",
            "cliente_detalle",
            "conductor",
            "conductor_detalle",
            "vehiculo",
            "vehiculo_detalle",
            "unidad",
            "unidad_detalle",
            "deposito",
            "observaciones",
            "estado",
            "fecha_salida",
            "total_costo_servicio",
            "total_kg",
            "detalles",
            "usuario_creador",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_total_kg(self, obj):
        # Suma en Python para aprovechar el prefetch de detalles.
        return str(sum((detalle.total_kg for detalle in obj.detalles.all()), Decimal("0")))


class DetalleOrdenSalidaEntradaSerializer(serializers.Serializer):
    id_lote_produccion = serializers.IntegerField()
    cantidad_unidades = serializers.IntegerField(min_value=1)
    kg_por_unidad = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    tamano = serializers.CharField(required=False, allow_blank=True, max_length=100)


class OrdenSalidaEntradaSerializer(serializers.Serializer):
    id_semillera = serializers.IntegerField()
    id_semilla = serializers.IntegerField()
    id_cliente = serializers.IntegerField()
    id_conductor = serializers.IntegerField()
    id_vehiculo = serializers.IntegerField()
    id_unidad = serializers.IntegerField(required=False, allow_null=True)
    fecha_salida = serializers.DateField()
    deposito = serializers.CharField(required=False, allow_blank=True, max_length=200)
    observaciones = serializers.CharField(required=False, allow_blank=True)
    estado = serializers.CharField(required=False, allow_blank=True)
    total_costo_servicio = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
    detalles = DetalleOrdenSalidaEntradaSerializer(many=True)


class OrdenSalidaCambiosSerializer(serializers.Serializer):
    id_cliente = serializers.IntegerField(required=False)
    id_conductor = serializers.IntegerField(required=False)
    id_vehiculo = serializers.IntegerField(required=False)
    fecha_salida = serializers.DateField(required=False)
    deposito = serializers.CharField(required=False, allow_blank=True, max_length=200)
    observaciones = serializers.CharField(required=False, allow_blank=True)
    total_costo_servicio = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False, allow_null=True
    )
