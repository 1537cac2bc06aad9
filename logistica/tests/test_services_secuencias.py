from datetime import date

from django.test import TestCase

from logistica.models import SecuenciaCodigo
from logistica.services.secuencias import (
    PREFIJO_LOTE_PRODUCCION,
    PREFIJO_ORDEN_INGRESO,
    siguiente_codigo,
)


class SiguienteCodigoTests(TestCase):
    def test_primer_codigo_del_mes(self):
        codigo = siguiente_codigo(PREFIJO_ORDEN_INGRESO, fecha=date(2026, 3, 9))
        self.assertEqual(codigo, "OI-202603-0001")

    def test_codigos_consecutivos_sin_repetir(self):
        fecha = date(2026, 3, 9)
        codigos = [siguiente_codigo(PREFIJO_ORDEN_INGRESO, fecha=fecha) for _ in range(3)]

        self.assertEqual(codigos, ["OI-202603-0001", "OI-202603-0002", "OI-202603-0003"])
        secuencia = SecuenciaCodigo.objects.get(prefijo=PREFIJO_ORDEN_INGRESO, periodo="202603")
        self.assertEqual(secuencia.ultimo_numero, 3)

    def test_cada_prefijo_tiene_su_contador(self):
        fecha = date(2026, 3, 9)
        siguiente_codigo(PREFIJO_ORDEN_INGRESO, fecha=fecha)

        self.assertEqual(siguiente_codigo(PREFIJO_LOTE_PRODUCCION, fecha=fecha), "LP-202603-0001")

    def test_el_contador_reinicia_cada_mes(self):
        siguiente_codigo(PREFIJO_ORDEN_INGRESO, fecha=date(2026, 3, 31))
        siguiente_codigo(PREFIJO_ORDEN_INGRESO, fecha=date(2026, 3, 31))

        self.assertEqual(
            siguiente_codigo(PREFIJO_ORDEN_INGRESO, fecha=date(2026, 4, 1)), "OI-202604-0001"
        )

    def test_sin_fecha_usa_el_mes_actual(self):
        codigo = siguiente_codigo(PREFIJO_ORDEN_INGRESO)
        self.assertRegex(codigo, r"^OI-\d{6}-0001$")
