from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    UnidadViewSet,
    CategoriaViewSet,
    SemillaViewSet,
    VariedadViewSet,
    SemilleraViewSet,
    CooperadorViewSet,
    ConductorViewSet,
    VehiculoViewSet,
    ClienteViewSet,
    ServicioViewSet,
    OrdenIngresoViewSet,
    LoteProduccionViewSet,
    OrdenSalidaViewSet,
)

router = DefaultRouter()
router.register(r"unidades", UnidadViewSet, basename="unidad")
router.register(r"categorias", CategoriaViewSet, basename="categoria")
router.register(r"semillas", SemillaViewSet, basename="semilla")
router.register(r"variedades", VariedadViewSet, basename="variedad")
router.register(r"semilleras", SemilleraViewSet, basename="semillera")
router.register(r"cooperadores", CooperadorViewSet, basename="cooperador")
router.register(r"conductores", ConductorViewSet, basename="conductor")
router.register(r"vehiculos", VehiculoViewSet, basename="vehiculo")
router.register(r"clientes", ClienteViewSet, basename="cliente")
router.register(r"servicios", ServicioViewSet, basename="servicio")
router.register(r"ordenes-ingreso", OrdenIngresoViewSet, basename="orden-ingreso")
router.register(r"lotes-produccion", LoteProduccionViewSet, basename="lote-produccion")
router.register(r"ordenes-salida", OrdenSalidaViewSet, basename="orden-salida")


urlpatterns = [
    path("", include(router.urls)),
]
