from decimal import Decimal

from logistica.exceptions import (
    AuthorizationError,
    BusinessRuleError,
    NotFoundError,
    ValidationError,
)
from logistica.models import (
    EstadoLote,
    LoteProduccion,
    MovimientoLote,
    TipoMovimiento,
)
from logistica.services.lotes_produccion import (
    actualizar_lote,
    cambiar_estado_lote,
    crear_lote,
    eliminar_lote,
    lotes_disponibles,
    obtener_lote,
    obtener_por_numero,
    registrar_merma_lote,
)
from logistica.services.movimientos import verificar_conciliacion

from .base import LogisticaTestCase


class CrearLoteTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        self.orden = self.crear_orden(peso_neto="1000.00")

    def test_crear_lote_copia_unidad_y_foto_original(self):
        lote = self.crear_lote(self.orden, cantidad=50, kg_por_unidad="10.00", presentacion="Bolsa 10 kg")

        self.assertRegex(lote.nro_lote, r"^LP-\d{6}-0001$")
        self.assertEqual(lote.unidad_id, self.orden.unidad_id)
        self.assertEqual(lote.estado, EstadoLote.DISPONIBLE)
        self.assertEqual(lote.total_kg, Decimal("500.00"))
        self.assertEqual(lote.cantidad_original, 50)
        self.assertEqual(lote.total_kg_original, Decimal("500.00"))
        self.assertEqual(lote.presentacion, "Bolsa 10 kg")

    def test_lote_justo_en_el_presupuesto(self):
        lote = self.crear_lote(self.orden, cantidad=200, kg_por_unidad="5.00")
        self.assertEqual(lote.total_kg, Decimal("1000.00"))

    def test_lote_reservado_al_crear(self):
        lote = self.crear_lote(self.orden, estado=EstadoLote.RESERVADO)
        self.assertEqual(lote.estado, EstadoLote.RESERVADO)

    def test_no_se_crea_un_lote_vendido(self):
        with self.assertRaises(ValidationError):
            self.crear_lote(self.orden, estado=EstadoLote.VENDIDO)

    def test_cantidad_y_peso_deben_ser_positivos(self):
        with self.assertRaises(ValidationError):
            self.crear_lote(self.orden, cantidad=0)
        with self.assertRaises(ValidationError):
            self.crear_lote(self.orden, kg_por_unidad="0.00")
        self.assertFalse(LoteProduccion.objects.exists())

    def test_kg_por_unidad_con_mas_de_dos_decimales(self):
        with self.assertRaises(ValidationError) as ctx:
            self.crear_lote(self.orden, cantidad=100, kg_por_unidad="2.345")

        self.assertIn("2 decimales", ctx.exception.mensaje)
        self.assertFalse(LoteProduccion.objects.exists())
        self.assertFalse(MovimientoLote.objects.exists())

    def test_kg_por_unidad_fuera_de_la_columna(self):
        with self.assertRaises(ValidationError):
            self.crear_lote(self.orden, cantidad=1, kg_por_unidad="123456789.00")
        self.assertFalse(LoteProduccion.objects.exists())

    def test_ceros_a_la_derecha_se_aceptan(self):
        lote = self.crear_lote(self.orden, cantidad=100, kg_por_unidad="2.340")
        self.assertEqual(lote.kg_por_unidad, Decimal("2.34"))

    def test_saldo_guardado_coincide_con_unidades_por_peso(self):
        lote = self.crear_lote(self.orden, cantidad=100, kg_por_unidad="2.34")
        self.crear_salida(lote, 40)

        lote.refresh_from_db()
        self.assertEqual(lote.total_kg, lote.cantidad_unidades * lote.kg_por_unidad)
        self.assertEqual(lote.total_kg, Decimal("140.40"))
        self.assertTrue(verificar_conciliacion(lote)["cuadra"])

    def test_variedad_debe_ser_de_la_semilla_de_la_orden(self):
        with self.assertRaises(ValidationError):
            self.crear_lote(self.orden, id_variedad=self.variedad_trigo.pk)

    def test_orden_inexistente(self):
        with self.assertRaises(NotFoundError):
            self.crear_lote(self.orden, id_orden_ingreso=999999)

    def test_otra_unidad_no_crea_lotes(self):
        with self.assertRaises(AuthorizationError):
            crear_lote(
                datos={
                    "id_orden_ingreso": self.orden.pk,
                    "id_variedad": self.variedad.pk,
                    "id_categoria_salida": self.categoria.pk,
                    "cantidad_unidades": 1,
                    "kg_por_unidad": Decimal("5.00"),
                },
                actor=self.operador_sur,
            )

    def test_presupuesto_rechazado_no_escribe_nada(self):
        self.crear_lote(self.orden, cantidad=200, kg_por_unidad="5.00")

        with self.assertRaises(BusinessRuleError):
            self.crear_lote(self.orden, cantidad=1, kg_por_unidad="5.00")

        self.assertEqual(LoteProduccion.objects.count(), 1)
        self.assertEqual(MovimientoLote.objects.count(), 1)


class ActualizarLoteTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        self.orden = self.crear_orden(peso_neto="1000.00")
        self.lote = self.crear_lote(self.orden, cantidad=100, kg_por_unidad="5.00")

    def test_corregir_cantidad_registra_ajuste(self):
        lote = actualizar_lote(self.lote.pk, cambios={"cantidad_unidades": 90}, actor=self.admin)

        self.assertEqual(lote.cantidad_unidades, 90)
        self.assertEqual(lote.total_kg, Decimal("450.00"))
        self.assertEqual(lote.total_kg_original, Decimal("500.00"))

        ajuste = MovimientoLote.objects.filter(lote=lote).order_by("-id").first()
        self.assertEqual(ajuste.tipo_movimiento, TipoMovimiento.AJUSTE)
        self.assertEqual(ajuste.cantidad_unidades, 10)
        self.assertEqual(ajuste.kg_movidos, Decimal("50.00"))
        self.assertEqual(ajuste.saldo_kg, Decimal("450.00"))

    def test_cambio_sin_efecto_en_saldo_no_registra_ajuste(self):
        actualizar_lote(self.lote.pk, cambios={"presentacion": "Bolsa 5 kg"}, actor=self.admin)
        self.assertEqual(MovimientoLote.objects.filter(lote=self.lote).count(), 1)

    def test_saldo_no_supera_el_peso_original(self):
        with self.assertRaises(BusinessRuleError):
            actualizar_lote(self.lote.pk, cambios={"cantidad_unidades": 101}, actor=self.admin)

        self.lote.refresh_from_db()
        self.assertEqual(self.lote.cantidad_unidades, 100)

    def test_kg_por_unidad_fijo_con_ventas(self):
        self.crear_salida(self.lote, 10)

        with self.assertRaises(BusinessRuleError):
            actualizar_lote(self.lote.pk, cambios={"kg_por_unidad": Decimal("4.00")}, actor=self.admin)

    def test_kg_por_unidad_con_mas_de_dos_decimales_al_editar(self):
        with self.assertRaises(ValidationError):
            actualizar_lote(self.lote.pk, cambios={"kg_por_unidad": "4.999"}, actor=self.admin)

        self.lote.refresh_from_db()
        self.assertEqual(self.lote.kg_por_unidad, Decimal("5.00"))
        self.assertEqual(MovimientoLote.objects.filter(lote=self.lote).count(), 1)

    def test_lote_vendido_no_se_modifica(self):
        self.crear_salida(self.lote, 100)

        with self.assertRaises(BusinessRuleError):
            actualizar_lote(self.lote.pk, cambios={"presentacion": "x"}, actor=self.admin)

    def test_campo_no_editable(self):
        with self.assertRaises(ValidationError):
            actualizar_lote(self.lote.pk, cambios={"total_kg": Decimal("1")}, actor=self.admin)

    def test_cambiar_estado(self):
        lote = cambiar_estado_lote(self.lote.pk, EstadoLote.RESERVADO, actor=self.admin)
        self.assertEqual(lote.estado, EstadoLote.RESERVADO)

        with self.assertRaises(ValidationError):
            cambiar_estado_lote(self.lote.pk, "perdido", actor=self.admin)


class MermaLoteTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        orden = self.crear_orden(peso_neto="1000.00")
        self.lote = self.crear_lote(orden, cantidad=20, kg_por_unidad="25.00")

    def test_registrar_merma(self):
        lote = registrar_merma_lote(
            self.lote.pk, cantidad_unidades=3, motivo="Bolsas rotas", actor=self.admin
        )

        self.assertEqual(lote.cantidad_unidades, 17)
        self.assertEqual(lote.total_kg, Decimal("425.00"))
        merma = MovimientoLote.objects.filter(lote=lote).order_by("-id").first()
        self.assertEqual(merma.tipo_movimiento, TipoMovimiento.MERMA)
        self.assertEqual(merma.kg_movidos, Decimal("75.00"))
        self.assertEqual(merma.observaciones, "Bolsas rotas")

    def test_merma_total_descarta_el_lote(self):
        lote = registrar_merma_lote(
            self.lote.pk, cantidad_unidades=20, motivo="Humedad", actor=self.admin
        )
        self.assertEqual(lote.estado, EstadoLote.DESCARTADO)
        self.assertEqual(lote.total_kg, Decimal("0.00"))

    def test_merma_mayor_al_saldo(self):
        with self.assertRaises(BusinessRuleError):
            registrar_merma_lote(self.lote.pk, cantidad_unidades=21, motivo="x", actor=self.admin)

    def test_merma_sin_motivo(self):
        with self.assertRaises(ValidationError):
            registrar_merma_lote(self.lote.pk, cantidad_unidades=1, motivo="  ", actor=self.admin)


class EliminarLoteTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        self.orden = self.crear_orden(peso_neto="1000.00")
        self.lote = self.crear_lote(self.orden, cantidad=100, kg_por_unidad="5.00")

    def test_eliminar_cierra_el_historial_con_ajuste(self):
        lote_id = self.lote.pk
        eliminar_lote(lote_id, actor=self.admin)

        self.assertFalse(LoteProduccion.objects.filter(pk=lote_id).exists())
        historial = list(MovimientoLote.objects.filter(lote_id=lote_id).order_by("id"))
        self.assertEqual(len(historial), 2)
        self.assertEqual(historial[-1].tipo_movimiento, TipoMovimiento.AJUSTE)
        self.assertEqual(historial[-1].saldo_kg, Decimal("0.00"))
        self.assertEqual(historial[-1].kg_movidos, Decimal("500.00"))

    def test_eliminar_libera_presupuesto(self):
        eliminar_lote(self.lote.pk, actor=self.admin)
        lote = self.crear_lote(self.orden, cantidad=200, kg_por_unidad="5.00")
        self.assertEqual(lote.total_kg_original, Decimal("1000.00"))

    def test_no_se_elimina_lote_con_ventas(self):
        self.crear_salida(self.lote, 10)

        with self.assertRaises(BusinessRuleError):
            eliminar_lote(self.lote.pk, actor=self.admin)
        self.assertTrue(LoteProduccion.objects.filter(pk=self.lote.pk).exists())


class ConsultaLoteTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        orden = self.crear_orden(peso_neto="1000.00")
        self.lote = self.crear_lote(orden, cantidad=10, kg_por_unidad="5.00")
        self.agotado = self.crear_lote(orden, cantidad=10, kg_por_unidad="5.00")
        registrar_merma_lote(self.agotado.pk, cantidad_unidades=10, motivo="Plaga", actor=self.admin)

    def test_obtener_lote(self):
        self.assertEqual(obtener_lote(self.lote.pk, actor=self.operador).pk, self.lote.pk)
        with self.assertRaises(AuthorizationError):
            obtener_lote(self.lote.pk, actor=self.operador_sur)
        with self.assertRaises(NotFoundError):
            obtener_lote(999999, actor=self.admin)

    def test_obtener_por_numero(self):
        self.assertEqual(obtener_por_numero(self.lote.nro_lote, actor=self.admin).pk, self.lote.pk)
        with self.assertRaises(NotFoundError):
            obtener_por_numero("LP-190001-0001", actor=self.admin)

    def test_disponibles_excluye_lotes_sin_saldo(self):
        self.assertEqual(list(lotes_disponibles(self.admin)), [self.lote])
        self.assertEqual(list(lotes_disponibles(self.operador_sur)), [])
