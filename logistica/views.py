from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .models import (
    Categoria,
    Cliente,
    Conductor,
    Cooperador,
    Semilla,
    Semillera,
    Servicio,
    Unidad,
    Variedad,
    Vehiculo,
)
from .roles import actor_desde_usuario, es_elevado
from .serializers import (
    CambioEstadoSerializer,
    CategoriaSerializer,
    ClienteSerializer,
    ConductorSerializer,
    CooperadorSerializer,
    LoteProduccionEntradaSerializer,
    LoteProduccionSerializer,
    MermaSerializer,
    MovimientoLoteSerializer,
    OrdenIngresoEntradaSerializer,
    OrdenIngresoSerializer,
    OrdenSalidaCambiosSerializer,
    OrdenSalidaEntradaSerializer,
    OrdenSalidaSerializer,
    SemillaSerializer,
    SemilleraSerializer,
    ServicioSerializer,
    UnidadSerializer,
    VariedadSerializer,
    VehiculoSerializer,
)
from .services import (
    lotes_produccion,
    movimientos,
    ordenes_ingreso,
    ordenes_salida,
    reportes,
)
from .services.catalogos import a_entero


def parametro_id(request, nombre):
    """Id numérico de un query param; vacío o ausente devuelve None."""
    valor = request.query_params.get(nombre)
    if not valor:
        return None
    return a_entero(valor, nombre)


class EsElevadoOSoloLectura(permissions.IsAuthenticated):
    """
    Catálogos: cualquier usuario autenticado los lee;
    solo los roles elevados (ej: admin) los modifican.
    """

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return es_elevado(actor_desde_usuario(request.user))


# ---------------------------------------------------------------------------
# Catálogos
# ---------------------------------------------------------------------------


class CatalogoViewSet(viewsets.ModelViewSet):
    permission_classes = [EsElevadoOSoloLectura]

    def get_queryset(self):
        qs = super().get_queryset()
        activo = self.request.query_params.get("activo")
        if activo in ("true", "false"):
            qs = qs.filter(activo=(activo == "true"))
        return qs


class UnidadViewSet(CatalogoViewSet):
    queryset = Unidad.objects.all()
    serializer_class = UnidadSerializer


class CategoriaViewSet(CatalogoViewSet):
    queryset = Categoria.objects.all()
    serializer_class = CategoriaSerializer


class SemillaViewSet(CatalogoViewSet):
    queryset = Semilla.objects.all()
    serializer_class = SemillaSerializer


class VariedadViewSet(CatalogoViewSet):
    queryset = Variedad.objects.all().select_related("semilla")
    serializer_class = VariedadSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        semilla = parametro_id(self.request, "semilla")
        if semilla:
            qs = qs.filter(semilla_id=semilla)
        return qs


class SemilleraViewSet(CatalogoViewSet):
    queryset = Semillera.objects.all()
    serializer_class = SemilleraSerializer


class CooperadorViewSet(CatalogoViewSet):
    queryset = Cooperador.objects.all().select_related("semillera")
    serializer_class = CooperadorSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        semillera = parametro_id(self.request, "semillera")
        if semillera:
            qs = qs.filter(semillera_id=semillera)
        return qs


class ConductorViewSet(CatalogoViewSet):
    queryset = Conductor.objects.all()
    serializer_class = ConductorSerializer


class VehiculoViewSet(CatalogoViewSet):
    queryset = Vehiculo.objects.all()
    serializer_class = VehiculoSerializer


class ClienteViewSet(CatalogoViewSet):
    queryset = Cliente.objects.all()
    serializer_class = ClienteSerializer


class ServicioViewSet(CatalogoViewSet):
    queryset = Servicio.objects.all()
    serializer_class = ServicioSerializer


# ---------------------------------------------------------------------------
# Núcleo: las escrituras pasan siempre por los servicios
# ---------------------------------------------------------------------------


class ActorMixin:
    def get_actor(self):
        return actor_desde_usuario(self.request.user)

    def paginar(self, qs, serializer_class):
        pagina = self.paginate_queryset(qs)
        if pagina is not None:
            return self.get_paginated_response(serializer_class(pagina, many=True).data)
        return Response(serializer_class(qs, many=True).data)


class OrdenIngresoViewSet(ActorMixin, viewsets.ModelViewSet):
    serializer_class = OrdenIngresoSerializer

    def get_queryset(self):
        qs = ordenes_ingreso.ordenes_visibles(self.get_actor())
        estado = self.request.query_params.get("estado")
        if estado:
            qs = qs.filter(estado=estado)
        unidad = parametro_id(self.request, "id_unidad")
        if unidad:
            qs = qs.filter(unidad_id=unidad)
        return qs

    def get_object(self):
        # 404 si no existe, 403 si es de otra unidad.
        return ordenes_ingreso.obtener_orden_ingreso(self.kwargs["pk"], actor=self.get_actor())

    def create(self, request, *args, **kwargs):
        entrada = OrdenIngresoEntradaSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        orden = ordenes_ingreso.crear_orden_ingreso(datos=entrada.validated_data, actor=self.get_actor())
        return Response(OrdenIngresoSerializer(orden).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        entrada = OrdenIngresoEntradaSerializer(data=request.data, partial=True)
        entrada.is_valid(raise_exception=True)
        orden = ordenes_ingreso.actualizar_orden_ingreso(
            kwargs["pk"], cambios=entrada.validated_data, actor=self.get_actor()
        )
        return Response(OrdenIngresoSerializer(orden).data)

    def destroy(self, request, *args, **kwargs):
        ordenes_ingreso.eliminar_orden_ingreso(kwargs["pk"], actor=self.get_actor())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="estado")
    def estado(self, request, pk=None):
        """
        PATCH /api/ordenes-ingreso/<id>/estado/  {"estado": "completado"|"cancelado"}
        """
        entrada = CambioEstadoSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        orden = ordenes_ingreso.cambiar_estado(pk, entrada.validated_data["estado"], actor=self.get_actor())
        return Response(OrdenIngresoSerializer(orden).data)

    @action(detail=True, methods=["get"], url_path="resumen")
    def resumen(self, request, pk=None):
        return Response(ordenes_ingreso.resumen_produccion(pk, actor=self.get_actor()))

    @action(detail=False, methods=["get"], url_path="estadisticas")
    def estadisticas(self, request):
        return Response(
            reportes.estadisticas_ordenes_ingreso(
                self.get_actor(), id_unidad=parametro_id(request, "id_unidad")
            )
        )

    @action(detail=False, methods=["get"], url_path=r"numero/(?P<numero_orden>[^/]+)")
    def por_numero(self, request, numero_orden=None):
        orden = ordenes_ingreso.obtener_por_numero(numero_orden, actor=self.get_actor())
        return Response(OrdenIngresoSerializer(orden).data)


class LoteProduccionViewSet(ActorMixin, viewsets.ModelViewSet):
    serializer_class = LoteProduccionSerializer

    def get_queryset(self):
        qs = lotes_produccion.lotes_visibles(self.get_actor())
        params = self.request.query_params
        if params.get("estado"):
            qs = qs.filter(estado=params["estado"])
        if params.get("id_orden_ingreso"):
            qs = qs.filter(orden_ingreso_id=parametro_id(self.request, "id_orden_ingreso"))
        if params.get("id_variedad"):
            qs = qs.filter(variedad_id=parametro_id(self.request, "id_variedad"))
        if params.get("id_unidad"):
            qs = qs.filter(unidad_id=parametro_id(self.request, "id_unidad"))
        return qs

    def get_object(self):
        return lotes_produccion.obtener_lote(self.kwargs["pk"], actor=self.get_actor())

    def create(self, request, *args, **kwargs):
        entrada = LoteProduccionEntradaSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        lote = lotes_produccion.crear_lote(datos=entrada.validated_data, actor=self.get_actor())
        return Response(LoteProduccionSerializer(lote).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        entrada = LoteProduccionEntradaSerializer(data=request.data, partial=True)
        entrada.is_valid(raise_exception=True)
        lote = lotes_produccion.actualizar_lote(
            kwargs["pk"], cambios=entrada.validated_data, actor=self.get_actor()
        )
        return Response(LoteProduccionSerializer(lote).data)

    def destroy(self, request, *args, **kwargs):
        lotes_produccion.eliminar_lote(kwargs["pk"], actor=self.get_actor())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="estado")
    def estado(self, request, pk=None):
        entrada = CambioEstadoSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        lote = lotes_produccion.cambiar_estado_lote(
            pk, entrada.validated_data["estado"], actor=self.get_actor()
        )
        return Response(LoteProduccionSerializer(lote).data)

    @action(detail=True, methods=["post"], url_path="merma")
    def merma(self, request, pk=None):
        entrada = MermaSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        lote = lotes_produccion.registrar_merma_lote(
            pk,
            cantidad_unidades=entrada.validated_data["cantidad_unidades"],
            motivo=entrada.validated_data["motivo"],
            actor=self.get_actor(),
        )
        return Response(LoteProduccionSerializer(lote).data)

    @action(detail=True, methods=["get"], url_path="historial")
    def historial(self, request, pk=None):
        """
        GET /api/lotes-produccion/<id>/historial/  (más reciente primero)
        """
        lote = self.get_object()
        return self.paginar(movimientos.historial_por_lote(lote.pk), MovimientoLoteSerializer)

    @action(detail=True, methods=["get"], url_path="conciliacion")
    def conciliacion(self, request, pk=None):
        """
        Cruza el libro de movimientos con el saldo del lote.
        Un descuadre responde 500 (IntegrityError).
        """
        lote = self.get_object()
        return Response(movimientos.verificar_conciliacion(lote))

    @action(detail=False, methods=["get"], url_path="disponibles")
    def disponibles(self, request):
        return self.paginar(
            lotes_produccion.lotes_disponibles(self.get_actor()), LoteProduccionSerializer
        )

    @action(detail=False, methods=["get"], url_path="inventario-por-variedad")
    def inventario_por_variedad(self, request):
        return Response(reportes.inventario_por_variedad(self.get_actor()))

    @action(detail=False, methods=["get"], url_path="estadisticas")
    def estadisticas(self, request):
        return Response(
            reportes.estadisticas_lotes(self.get_actor(), id_unidad=parametro_id(request, "id_unidad"))
        )

    @action(detail=False, methods=["get"], url_path=r"numero/(?P<nro_lote>[^/]+)")
    def por_numero(self, request, nro_lote=None):
        lote = lotes_produccion.obtener_por_numero(nro_lote, actor=self.get_actor())
        return Response(LoteProduccionSerializer(lote).data)


class OrdenSalidaViewSet(ActorMixin, viewsets.ModelViewSet):
    serializer_class = OrdenSalidaSerializer

    def get_queryset(self):
        params = self.request.query_params
        qs = ordenes_salida.ordenes_entre_fechas(
            self.get_actor(),
            fecha_desde=params.get("fecha_desde"),
            fecha_hasta=params.get("fecha_hasta"),
        )
        if params.get("estado"):
            qs = qs.filter(estado=params["estado"])
        if params.get("id_cliente"):
            qs = qs.filter(cliente_id=parametro_id(self.request, "id_cliente"))
        if params.get("id_unidad"):
            qs = qs.filter(unidad_id=parametro_id(self.request, "id_unidad"))
        return qs

    def get_object(self):
        return ordenes_salida.obtener_orden_salida(self.kwargs["pk"], actor=self.get_actor())

    def create(self, request, *args, **kwargs):
        entrada = OrdenSalidaEntradaSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        orden = ordenes_salida.crear_orden_salida(datos=entrada.validated_data, actor=self.get_actor())
        return Response(OrdenSalidaSerializer(orden).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        entrada = OrdenSalidaCambiosSerializer(data=request.data, partial=True)
        entrada.is_valid(raise_exception=True)
        orden = ordenes_salida.actualizar_orden_salida(
            kwargs["pk"], cambios=entrada.validated_data, actor=self.get_actor()
        )
        return Response(OrdenSalidaSerializer(orden).data)

    def destroy(self, request, *args, **kwargs):
        ordenes_salida.eliminar_orden_salida(kwargs["pk"], actor=self.get_actor())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="estado")
    def estado(self, request, pk=None):
        entrada = CambioEstadoSerializer(data=request.data)
        entrada.is_valid(raise_exception=True)
        orden = ordenes_salida.cambiar_estado_orden_salida(
            pk, entrada.validated_data["estado"], actor=self.get_actor()
        )
        return Response(OrdenSalidaSerializer(orden).data)

    @action(detail=True, methods=["get"], url_path="movimientos")
    def movimientos_orden(self, request, pk=None):
        orden = self.get_object()
        return self.paginar(
            movimientos.movimientos_por_orden_salida(orden.pk), MovimientoLoteSerializer
        )

    @action(detail=False, methods=["get"], url_path="estadisticas")
    def estadisticas(self, request):
        return Response(
            reportes.estadisticas_ordenes_salida(
                self.get_actor(), id_unidad=parametro_id(request, "id_unidad")
            )
        )

    @action(detail=False, methods=["get"], url_path=r"numero/(?P<numero_orden>[^/]+)")
    def por_numero(self, request, numero_orden=None):
        orden = ordenes_salida.obtener_por_numero(numero_orden, actor=self.get_actor())
        return Response(OrdenSalidaSerializer(orden).data)
