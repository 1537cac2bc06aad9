from decimal import Decimal

from logistica.exceptions import IntegrityError, ValidationError
from logistica.models import EstadoOrdenSalida, LoteProduccion, TipoMovimiento
from logistica.services.lotes_produccion import (
    actualizar_lote,
    eliminar_lote,
    registrar_merma_lote,
)
from logistica.services.movimientos import (
    historial_por_lote,
    movimientos_por_orden_salida,
    registrar_movimiento,
    resumen_movimientos,
    verificar_conciliacion,
)
from logistica.services.ordenes_salida import cambiar_estado_orden_salida

from .base import LogisticaTestCase


class ConciliacionTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        self.orden_ingreso = self.crear_orden(peso_neto="1000.00")
        self.lote = self.crear_lote(self.orden_ingreso, cantidad=100, kg_por_unidad="5.00")

    def operar(self):
        """
        entrada 500 → salida 200 → merma 25 → ajuste -25 → ajuste +200 = 450 kg
        """
        salida = self.crear_salida(self.lote, 40)
        registrar_merma_lote(self.lote.pk, cantidad_unidades=5, motivo="Rotura", actor=self.admin)
        actualizar_lote(self.lote.pk, cambios={"cantidad_unidades": 50}, actor=self.admin)
        cambiar_estado_orden_salida(salida.pk, EstadoOrdenSalida.CANCELADO, actor=self.admin)
        return salida

    def test_libro_cuadra_despues_de_operar(self):
        self.operar()
        self.lote.refresh_from_db()

        resumen = verificar_conciliacion(self.lote)

        self.assertEqual(self.lote.cantidad_unidades, 90)
        self.assertEqual(resumen["total_entradas"], Decimal("500.00"))
        self.assertEqual(resumen["total_salidas"], Decimal("200.00"))
        self.assertEqual(resumen["total_mermas"], Decimal("25.00"))
        self.assertEqual(resumen["total_ajustes"], Decimal("175.00"))
        self.assertEqual(resumen["saldo_calculado"], Decimal("450.00"))
        self.assertEqual(resumen["saldo_lote"], Decimal("450.00"))
        self.assertEqual(resumen["cantidad_movimientos"], 5)
        self.assertTrue(resumen["cuadra"])

    def test_descuadre_se_detecta(self):
        LoteProduccion.objects.filter(pk=self.lote.pk).update(total_kg=Decimal("499.00"))
        self.lote.refresh_from_db()

        self.assertFalse(resumen_movimientos(self.lote.pk)["cuadra"])
        with self.assertRaises(IntegrityError):
            verificar_conciliacion(self.lote)

    def test_unidades_distintas_al_ultimo_saldo(self):
        LoteProduccion.objects.filter(pk=self.lote.pk).update(cantidad_unidades=99)
        self.lote.refresh_from_db()

        with self.assertRaises(IntegrityError):
            verificar_conciliacion(self.lote)

    def test_lote_sin_movimientos(self):
        lote = LoteProduccion.objects.create(
            orden_ingreso=self.orden_ingreso,
            variedad=self.variedad,
            categoria_salida=self.categoria,
            unidad=self.unidad,
            nro_lote="LP-TEST-0001",
            cantidad_unidades=1,
            kg_por_unidad=Decimal("5.00"),
            total_kg=Decimal("5.00"),
            cantidad_original=1,
            total_kg_original=Decimal("5.00"),
        )
        with self.assertRaises(IntegrityError):
            verificar_conciliacion(lote)

    def test_historial_de_lote_eliminado_se_conserva_y_cuadra(self):
        lote_id = self.lote.pk
        eliminar_lote(lote_id, actor=self.admin)

        resumen = resumen_movimientos(lote_id)

        self.assertIsNone(resumen["saldo_lote"])
        self.assertEqual(resumen["saldo_calculado"], Decimal("0.00"))
        self.assertTrue(resumen["cuadra"])

    def test_historial_mas_reciente_primero(self):
        salida = self.operar()

        tipos = [mov.tipo_movimiento for mov in historial_por_lote(self.lote.pk)]
        self.assertEqual(
            tipos,
            [
                TipoMovimiento.AJUSTE,
                TipoMovimiento.AJUSTE,
                TipoMovimiento.MERMA,
                TipoMovimiento.SALIDA,
                TipoMovimiento.ENTRADA,
            ],
        )
        self.assertEqual(movimientos_por_orden_salida(salida.pk).count(), 2)


class RegistrarMovimientoTests(LogisticaTestCase):
    def setUp(self):
        super().setUp()
        orden = self.crear_orden()
        self.lote = self.crear_lote(orden, cantidad=10, kg_por_unidad="5.00")

    def test_tipo_invalido(self):
        with self.assertRaises(ValidationError):
            registrar_movimiento(
                lote=self.lote, tipo="regalo", cantidad_unidades=1, kg_movidos=Decimal("5.00")
            )

    def test_cantidades_sin_signo(self):
        with self.assertRaises(ValidationError):
            registrar_movimiento(
                lote=self.lote,
                tipo=TipoMovimiento.MERMA,
                cantidad_unidades=-1,
                kg_movidos=Decimal("5.00"),
            )
