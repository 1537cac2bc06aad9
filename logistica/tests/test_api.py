from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from logistica.models import (
    Cooperador,
    EstadoLote,
    EstadoOrdenIngreso,
    LoteProduccion,
    PerfilUsuario,
    Rol,
    Unidad,
)

from .base import CatalogosMixin

User = get_user_model()


class LogisticaAPITestCase(CatalogosMixin, APITestCase):
    def setUp(self):
        self.crear_catalogos()

        self.superusuario = User.objects.create_superuser(
            username="admin", password="adminpass123", email="admin@example.com"
        )
        self.usuario_norte = User.objects.create_user(username="norte", password="testpass123")
        PerfilUsuario.objects.create(usuario=self.usuario_norte, rol=Rol.OPERADOR, unidad=self.unidad)
        self.usuario_sur = User.objects.create_user(username="sur", password="testpass123")
        PerfilUsuario.objects.create(usuario=self.usuario_sur, rol=Rol.OPERADOR, unidad=self.otra_unidad)

        self.client.force_authenticate(user=self.superusuario)

    def payload_orden_ingreso(self, **extra):
        payload = {
            "id_semillera": self.semillera.pk,
            "id_cooperador": self.cooperador.pk,
            "id_conductor": self.conductor.pk,
            "id_vehiculo": self.vehiculo.pk,
            "id_semilla": self.semilla.pk,
            "id_variedad": self.variedad.pk,
            "id_categoria_ingreso": self.categoria.pk,
            "id_unidad": self.unidad.pk,
            "peso_neto": "1000.00",
        }
        payload.update(extra)
        return payload


class AutenticacionAPITests(LogisticaAPITestCase):
    def test_requiere_autenticacion(self):
        self.client.force_authenticate(user=None)
        response = self.client.get(reverse("orden-ingreso-list"))
        # Según el autenticador puede ser 401 o 403
        self.assertIn(response.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))


class PaginacionAPITests(LogisticaAPITestCase):
    def setUp(self):
        super().setUp()
        for _ in range(3):
            self.crear_orden()

    def test_listado_con_sobre_de_paginacion(self):
        response = self.client.get(reverse("orden-ingreso-list"), {"page": 1, "limit": 2})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["data"]), 2)
        self.assertEqual(
            response.data["meta"],
            {
                "total": 3,
                "page": 1,
                "limit": 2,
                "totalPages": 2,
                "hasNextPage": True,
                "hasPreviousPage": False,
            },
        )

    def test_segunda_pagina(self):
        response = self.client.get(reverse("orden-ingreso-list"), {"page": 2, "limit": 2})

        self.assertEqual(len(response.data["data"]), 1)
        self.assertFalse(response.data["meta"]["hasNextPage"])
        self.assertTrue(response.data["meta"]["hasPreviousPage"])

    def test_limite_maximo(self):
        response = self.client.get(reverse("orden-ingreso-list"), {"limit": 500})
        self.assertEqual(response.data["meta"]["limit"], 100)

    def test_listado_filtrado_por_unidad_del_usuario(self):
        self.client.force_authenticate(user=self.usuario_sur)
        response = self.client.get(reverse("orden-ingreso-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["meta"]["total"], 0)


class OrdenIngresoAPITests(LogisticaAPITestCase):
    def test_crear_orden(self):
        response = self.client.post(
            reverse("orden-ingreso-list"), self.payload_orden_ingreso(), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["numero_orden"].startswith("OI-"))
        self.assertEqual(response.data["estado"], EstadoOrdenIngreso.PENDIENTE)
        self.assertEqual(response.data["peso_neto"], "1000.00")

    def test_operador_crea_en_su_unidad(self):
        self.client.force_authenticate(user=self.usuario_norte)
        payload = self.payload_orden_ingreso()
        payload.pop("id_unidad")

        response = self.client.post(reverse("orden-ingreso-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["unidad"], self.unidad.pk)

    def test_operador_no_crea_en_otra_unidad(self):
        self.client.force_authenticate(user=self.usuario_sur)
        response = self.client.post(
            reverse("orden-ingreso-list"), self.payload_orden_ingreso(), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_payload_invalido(self):
        payload = self.payload_orden_ingreso(porcentaje_humedad="150")
        payload.pop("id_semilla")

        response = self.client.post(reverse("orden-ingreso-list"), payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("id_semilla", response.data)
        self.assertIn("porcentaje_humedad", response.data)

    def test_referencia_inexistente(self):
        response = self.client.post(
            reverse("orden-ingreso-list"),
            self.payload_orden_ingreso(id_vehiculo=999999),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_detalle_404_y_403(self):
        orden = self.crear_orden()

        response = self.client.get(reverse("orden-ingreso-detail", args=[999999]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.force_authenticate(user=self.usuario_sur)
        response = self.client.get(reverse("orden-ingreso-detail", args=[orden.pk]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn("detail", response.data)

    def test_patch_de_estado_por_campo_es_rechazado(self):
        orden = self.crear_orden()
        response = self.client.patch(
            reverse("orden-ingreso-detail", args=[orden.pk]),
            {"estado": EstadoOrdenIngreso.COMPLETADO},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_parcial(self):
        orden = self.crear_orden()
        response = self.client.patch(
            reverse("orden-ingreso-detail", args=[orden.pk]),
            {"observaciones": "Llegó con lluvia"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["observaciones"], "Llegó con lluvia")

    def test_cancelar_con_lotes_responde_409(self):
        orden = self.crear_orden()
        self.crear_lote(orden, cantidad=10)

        response = self.client.patch(
            reverse("orden-ingreso-estado", args=[orden.pk]),
            {"estado": EstadoOrdenIngreso.CANCELADO},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn("1 lote(s)", response.data["detail"])

    def test_eliminar(self):
        orden = self.crear_orden()
        response = self.client.delete(reverse("orden-ingreso-detail", args=[orden.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_resumen_y_busqueda_por_numero(self):
        orden = self.crear_orden()
        self.crear_lote(orden, cantidad=50, kg_por_unidad="5.00")

        response = self.client.get(reverse("orden-ingreso-resumen", args=[orden.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["produccion"]["porcentaje_utilizado"], Decimal("25.00"))

        response = self.client.get(reverse("orden-ingreso-por-numero", args=[orden.numero_orden]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], orden.pk)

    def test_estadisticas(self):
        self.crear_orden()
        response = self.client.get(reverse("orden-ingreso-estadisticas"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]["estado"], EstadoOrdenIngreso.PENDIENTE)

    def test_id_unidad_no_numerico_responde_400(self):
        response = self.client.get(reverse("orden-ingreso-list"), {"id_unidad": "abc"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse("orden-ingreso-estadisticas"), {"id_unidad": "abc"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            reverse("orden-ingreso-list"), self.payload_orden_ingreso(id_unidad="abc"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LoteProduccionAPITests(LogisticaAPITestCase):
    def setUp(self):
        super().setUp()
        self.orden = self.crear_orden(peso_neto="1000.00")

    def payload_lote(self, **extra):
        payload = {
            "id_orden_ingreso": self.orden.pk,
            "id_variedad": self.variedad.pk,
            "id_categoria_salida": self.categoria.pk,
            "cantidad_unidades": 100,
            "kg_por_unidad": "5.00",
        }
        payload.update(extra)
        return payload

    def test_crear_lote(self):
        response = self.client.post(reverse("lote-produccion-list"), self.payload_lote(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_kg"], "500.00")
        self.assertEqual(response.data["orden_ingreso_numero"], self.orden.numero_orden)

    def test_exceso_de_presupuesto_responde_409(self):
        response = self.client.post(
            reverse("lote-produccion-list"), self.payload_lote(cantidad_unidades=201), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn("Presupuesto: 1000.00 kg", response.data["detail"])

    def test_kg_por_unidad_cero_responde_400(self):
        response = self.client.post(
            reverse("lote-produccion-list"), self.payload_lote(kg_por_unidad="0"), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_merma_historial_y_conciliacion(self):
        lote = self.crear_lote(self.orden, cantidad=100, kg_por_unidad="5.00")

        response = self.client.post(
            reverse("lote-produccion-merma", args=[lote.pk]),
            {"cantidad_unidades": 2, "motivo": "Bolsas rotas"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["cantidad_unidades"], 98)

        response = self.client.get(reverse("lote-produccion-historial", args=[lote.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["meta"]["total"], 2)
        self.assertEqual(response.data["data"][0]["tipo_movimiento"], "merma")

        response = self.client.get(reverse("lote-produccion-conciliacion", args=[lote.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["cuadra"])

    def test_descuadre_responde_500(self):
        lote = self.crear_lote(self.orden, cantidad=10, kg_por_unidad="5.00")
        LoteProduccion.objects.filter(pk=lote.pk).update(total_kg=Decimal("1.00"))

        response = self.client.get(reverse("lote-produccion-conciliacion", args=[lote.pk]))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn(lote.nro_lote, response.data["detail"])

    def test_disponibles_e_inventario(self):
        self.crear_lote(self.orden, cantidad=10, kg_por_unidad="5.00")

        response = self.client.get(reverse("lote-produccion-disponibles"))
        self.assertEqual(response.data["meta"]["total"], 1)

        response = self.client.get(reverse("lote-produccion-inventario-por-variedad"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]["total_unidades"], 10)

    def test_patch_no_cambia_la_orden_del_lote(self):
        lote = self.crear_lote(self.orden, cantidad=10)
        response = self.client.patch(
            reverse("lote-produccion-detail", args=[lote.pk]),
            {"id_orden_ingreso": self.orden.pk},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cambiar_estado_y_eliminar(self):
        lote = self.crear_lote(self.orden, cantidad=10)

        response = self.client.patch(
            reverse("lote-produccion-estado", args=[lote.pk]),
            {"estado": EstadoLote.RESERVADO},
            format="json",
        )
        self.assertEqual(response.data["estado"], EstadoLote.RESERVADO)

        response = self.client.delete(reverse("lote-produccion-detail", args=[lote.pk]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_buscar_por_numero(self):
        lote = self.crear_lote(self.orden, cantidad=10)
        response = self.client.get(reverse("lote-produccion-por-numero", args=[lote.nro_lote]))
        self.assertEqual(response.data["id"], lote.pk)


class OrdenSalidaAPITests(LogisticaAPITestCase):
    def setUp(self):
        super().setUp()
        orden = self.crear_orden(peso_neto="1000.00")
        self.lote = self.crear_lote(orden, cantidad=100, kg_por_unidad="5.00")

    def payload_salida(self, cantidad, **extra):
        payload = {
            "id_semillera": self.semillera.pk,
            "id_semilla": self.semilla.pk,
            "id_cliente": self.cliente.pk,
            "id_conductor": self.conductor.pk,
            "id_vehiculo": self.vehiculo.pk,
            "id_unidad": self.unidad.pk,
            "fecha_salida": "2026-10-15",
            "detalles": [{"id_lote_produccion": self.lote.pk, "cantidad_unidades": cantidad}],
        }
        payload.update(extra)
        return payload

    def test_crear_orden_de_salida(self):
        response = self.client.post(reverse("orden-salida-list"), self.payload_salida(40), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["total_kg"], "200.00")
        self.assertEqual(len(response.data["detalles"]), 1)
        self.lote.refresh_from_db()
        self.assertEqual(self.lote.cantidad_unidades, 60)

    def test_sobreventa_responde_409(self):
        response = self.client.post(reverse("orden-salida-list"), self.payload_salida(150), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn("Disponible: 100, solicitado: 150", response.data["detail"])

    def test_sin_detalles_responde_400(self):
        response = self.client.post(
            reverse("orden-salida-list"), self.payload_salida(1, detalles=[]), format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cancelar_y_movimientos(self):
        response = self.client.post(reverse("orden-salida-list"), self.payload_salida(100), format="json")
        orden_id = response.data["id"]

        response = self.client.patch(
            reverse("orden-salida-estado", args=[orden_id]), {"estado": "cancelado"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.lote.refresh_from_db()
        self.assertEqual(self.lote.estado, EstadoLote.DISPONIBLE)

        response = self.client.get(reverse("orden-salida-movimientos-orden", args=[orden_id]))
        self.assertEqual(response.data["meta"]["total"], 2)

    def test_operador_de_otra_unidad_no_ve_la_orden(self):
        orden = self.crear_salida(self.lote, 1)

        self.client.force_authenticate(user=self.usuario_sur)
        response = self.client.get(reverse("orden-salida-detail", args=[orden.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filtro_por_fecha_de_salida(self):
        self.crear_salida(self.lote, 1)
        noviembre = self.crear_salida(self.lote, 1, fecha_salida=date(2026, 11, 2))

        response = self.client.get(reverse("orden-salida-list"), {"fecha_desde": "2026-11-01"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([o["id"] for o in response.data["data"]], [noviembre.pk])

        response = self.client.get(
            reverse("orden-salida-list"), {"fecha_desde": "2026-10-01", "fecha_hasta": "2026-11-30"}
        )
        self.assertEqual(response.data["meta"]["total"], 2)

        response = self.client.get(reverse("orden-salida-list"), {"fecha_hasta": "ayer"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CatalogosAPITests(LogisticaAPITestCase):
    def test_operador_lee_pero_no_escribe(self):
        self.client.force_authenticate(user=self.usuario_norte)

        response = self.client.get(reverse("unidad-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["meta"]["total"], 2)

        response = self.client.post(reverse("unidad-list"), {"nombre": "Planta Este"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_crea_catalogo(self):
        response = self.client.post(reverse("unidad-list"), {"nombre": "Planta Este"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Unidad.objects.filter(nombre="Planta Este").exists())

    def test_nombre_duplicado_responde_409(self):
        response = self.client.post(reverse("unidad-list"), {"nombre": self.unidad.nombre}, format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_ci_de_cooperador_duplicado_responde_409(self):
        response = self.client.post(
            reverse("cooperador-list"),
            {"semillera": self.semillera.pk, "nombre": "Otro", "ci": self.cooperador.ci},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_cooperador_sin_ci(self):
        for nombre in ("Sin CI 1", "Sin CI 2"):
            response = self.client.post(
                reverse("cooperador-list"),
                {"semillera": self.semillera.pk, "nombre": nombre},
                format="json",
            )
            self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Cooperador.objects.filter(ci="").count(), 2)

    def test_filtros_de_catalogo(self):
        response = self.client.get(reverse("variedad-list"), {"semilla": self.semilla.pk})
        self.assertEqual([v["nombre"] for v in response.data["data"]], ["Munasqa"])

        response = self.client.get(reverse("cooperador-list"), {"semillera": self.otra_semillera.pk})
        self.assertEqual(response.data["meta"]["total"], 1)
