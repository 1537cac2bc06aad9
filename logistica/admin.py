from django.contrib import admin, messages

from .models import (
    Unidad,
    Categoria,
    Semilla,
    Variedad,
    Semillera,
    Cooperador,
    Conductor,
    Vehiculo,
    Cliente,
    Servicio,
    OrdenIngreso,
    LoteProduccion,
    OrdenSalida,
    DetalleOrdenSalida,
    MovimientoLote,
    SecuenciaCodigo,
    EstadoOrdenSalida,
)
from .admin_mixin import SoloUnidadUsuarioMixin
from .exceptions import LogisticaError
from .roles import actor_desde_usuario
from .services import movimientos as movimientos_service
from .services import ordenes_salida as ordenes_salida_service
from . import admin_roles  # noqa: F401


admin.site.site_header = "Administración de Logística de Semillas"
admin.site.site_title = "Logística de Semillas"


class SoloLecturaAdminMixin:
    """
    Las órdenes, lotes y movimientos se modifican solo a través de los
    servicios (API), que mantienen el libro de movimientos cuadrado.
    """

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


def cancelar_ordenes_salida(modeladmin, request, queryset):
    """
    Acción admin: cancela las órdenes de salida y devuelve sus unidades a los lotes.
    """
    actor = actor_desde_usuario(request.user)
    exitosas = 0

    for orden in queryset:
        try:
            ordenes_salida_service.cambiar_estado_orden_salida(
                orden.pk, EstadoOrdenSalida.CANCELADO, actor=actor
            )
        except LogisticaError as exc:
            messages.error(request, f"{orden.numero_orden}: {exc.mensaje}")
            continue
        exitosas += 1

    if exitosas:
        messages.success(request, f"{exitosas} órdenes de salida canceladas.")


cancelar_ordenes_salida.short_description = "Cancelar órdenes seleccionadas"


def verificar_conciliacion_lotes(modeladmin, request, queryset):
    """
    Acción admin: compara el saldo de cada lote con su libro de movimientos.
    """
    cuadran = 0
    for lote in queryset:
        try:
            movimientos_service.verificar_conciliacion(lote)
        except LogisticaError as exc:
            messages.error(request, exc.mensaje)
            continue
        cuadran += 1

    if cuadran:
        messages.success(request, f"{cuadran} lotes cuadran con su historial.")


verificar_conciliacion_lotes.short_description = "Verificar conciliación con el historial"


@admin.register(Unidad)
class UnidadAdmin(admin.ModelAdmin):
    list_display = ("nombre", "ubicacion", "activo", "created_at")
    list_filter = ("activo",)
    search_fields = ("nombre", "ubicacion")


@admin.register(Categoria)
class CategoriaAdmin(admin.ModelAdmin):
    list_display = ("nombre", "activo", "created_at")
    list_filter = ("activo",)
    search_fields = ("nombre",)


@admin.register(Semilla)
class SemillaAdmin(admin.ModelAdmin):
    list_display = ("nombre", "activo", "created_at")
    list_filter = ("activo",)
    search_fields = ("nombre",)


@admin.register(Variedad)
class VariedadAdmin(admin.ModelAdmin):
    list_display = ("nombre", "semilla", "activo")
    list_filter = ("activo", "semilla")
    search_fields = ("nombre", "semilla__nombre")
    autocomplete_fields = ("semilla",)


@admin.register(Semillera)
class SemilleraAdmin(admin.ModelAdmin):
    list_display = ("nombre", "nit", "telefono", "activo", "created_at")
    list_filter = ("activo",)
    search_fields = ("nombre", "nit")


@admin.register(Cooperador)
class CooperadorAdmin(admin.ModelAdmin):
    list_display = ("nombre", "ci", "semillera", "telefono", "activo")
    list_filter = ("activo", "semillera")
    search_fields = ("nombre", "ci", "semillera__nombre")
    autocomplete_fields = ("semillera",)


@admin.register(Conductor)
class ConductorAdmin(admin.ModelAdmin):
    list_display = ("nombre", "ci", "licencia", "telefono", "activo")
    list_filter = ("activo",)
    search_fields = ("nombre", "ci", "licencia")


@admin.register(Vehiculo)
class VehiculoAdmin(admin.ModelAdmin):
    list_display = ("placa", "tipo", "marca", "modelo", "activo")
    list_filter = ("activo", "tipo")
    search_fields = ("placa", "marca", "modelo")


@admin.register(Cliente)
class ClienteAdmin(admin.ModelAdmin):
    list_display = ("nombre", "nit", "telefono", "activo")
    list_filter = ("activo",)
    search_fields = ("nombre", "nit")


@admin.register(Servicio)
class ServicioAdmin(admin.ModelAdmin):
    list_display = ("nombre", "descripcion", "activo")
    list_filter = ("activo",)
    search_fields = ("nombre",)


@admin.register(OrdenIngreso)
class OrdenIngresoAdmin(SoloLecturaAdminMixin, SoloUnidadUsuarioMixin, admin.ModelAdmin):
    list_display = (
        "numero_orden",
        "semillera",
        "cooperador",
        "semilla",
        "variedad",
        "peso_neto",
        "estado",
        "unidad",
        "created_at",
    )
    list_filter = ("estado", "unidad", "semilla", "semillera")
    search_fields = ("numero_orden", "nro_lote_campo", "cooperador__nombre")
    date_hierarchy = "created_at"

    fieldsets = (
        (None, {
            "fields": (
                "numero_orden",
                "estado",
                "unidad",
                "semillera",
                "cooperador",
                "semilla",
                "variedad",
                "categoria_ingreso",
            )
        }),
        ("Transporte", {
            "classes": ("collapse",),
            "fields": (
                "conductor",
                "vehiculo",
                "lugar_ingreso",
                "hora_ingreso",
                "lugar_salida",
                "hora_salida",
            )
        }),
        ("Pesaje y calidad", {
            "fields": (
                "peso_bruto",
                "peso_tara",
                "peso_neto",
                "peso_liquido",
                "porcentaje_humedad",
                "porcentaje_impureza",
                "peso_hectolitrico",
                "porcentaje_grano_danado",
                "porcentaje_grano_verde",
            )
        }),
        ("Información adicional", {
            "classes": ("collapse",),
            "fields": (
                "nro_lote_campo",
                "nro_cupon",
                "observaciones",
                "usuario_creador",
                "created_at",
                "updated_at",
            )
        }),
    )
    readonly_fields = ("created_at", "updated_at")


@admin.register(LoteProduccion)
class LoteProduccionAdmin(SoloLecturaAdminMixin, SoloUnidadUsuarioMixin, admin.ModelAdmin):
    list_display = (
        "nro_lote",
        "orden_ingreso",
        "variedad",
        "categoria_salida",
        "cantidad_unidades",
        "kg_por_unidad",
        "total_kg",
        "estado",
        "unidad",
    )
    list_filter = ("estado", "unidad", "variedad", "categoria_salida")
    search_fields = ("nro_lote", "orden_ingreso__numero_orden")
    readonly_fields = ("cantidad_original", "total_kg_original", "created_at", "updated_at")
    actions = [verificar_conciliacion_lotes]


class DetalleOrdenSalidaInline(admin.TabularInline):
    model = DetalleOrdenSalida
    extra = 0
    can_delete = False
    readonly_fields = (
        "lote",
        "nro_lote",
        "variedad",
        "categoria",
        "tamano",
        "cantidad_unidades",
        "kg_por_unidad",
        "total_kg",
    )

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(OrdenSalida)
class OrdenSalidaAdmin(SoloUnidadUsuarioMixin, admin.ModelAdmin):
    list_display = (
        "numero_orden",
        "fecha_salida",
        "cliente",
        "semillera",
        "semilla",
        "estado",
        "unidad",
        "total_kg",
    )
    list_filter = ("estado", "unidad", "cliente", "fecha_salida")
    search_fields = ("numero_orden", "cliente__nombre", "deposito")
    date_hierarchy = "fecha_salida"
    inlines = [DetalleOrdenSalidaInline]
    actions = [cancelar_ordenes_salida]

    def total_kg(self, obj):
        return obj.total_kg

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        # La cancelación pasa por la acción admin, nunca por el formulario
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(MovimientoLote)
class MovimientoLoteAdmin(SoloLecturaAdminMixin, admin.ModelAdmin):
    list_display = (
        "fecha_movimiento",
        "nro_lote",
        "tipo_movimiento",
        "cantidad_unidades",
        "kg_movidos",
        "saldo_unidades",
        "saldo_kg",
        "orden_salida",
        "usuario",
    )
    list_filter = ("tipo_movimiento", "fecha_movimiento")
    search_fields = ("nro_lote", "observaciones")
    date_hierarchy = "fecha_movimiento"


@admin.register(SecuenciaCodigo)
class SecuenciaCodigoAdmin(admin.ModelAdmin):
    list_display = ("prefijo", "periodo", "ultimo_numero")
    list_filter = ("prefijo",)
    readonly_fields = ("ultimo_numero",)
