# Generated manually - Esquema inicial de logística de semillas

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


ESTADOS_ORDEN_INGRESO = [
    ('pendiente', 'Pendiente'),
    ('en_proceso', 'En proceso'),
    ('completado', 'Completado'),
    ('cancelado', 'Cancelado'),
]

ESTADOS_LOTE = [
    ('disponible', 'Disponible'),
    ('reservado', 'Reservado'),
    ('parcialmente_vendido', 'Parcialmente vendido'),
    ('vendido', 'Vendido'),
    ('descartado', 'Descartado'),
]

ESTADOS_ORDEN_SALIDA = [
    ('pendiente', 'Pendiente'),
    ('en_transito', 'En tránsito'),
    ('completado', 'Completado'),
    ('cancelado', 'Cancelado'),
]

TIPOS_MOVIMIENTO = [
    ('entrada', 'Entrada'),
    ('salida', 'Salida'),
    ('ajuste', 'Ajuste'),
    ('merma', 'Merma'),
]


def _pk():
    return ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID'))


def _timestamps():
    return [
        ('created_at', models.DateTimeField(auto_now_add=True)),
        ('updated_at', models.DateTimeField(auto_now=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # Catálogos
        migrations.CreateModel(
            name='Unidad',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=100, unique=True)),
                ('ubicacion', models.TextField(blank=True)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name': 'Unidad',
                'verbose_name_plural': 'Unidades',
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Categoria',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=100, unique=True)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name': 'Categoría',
                'verbose_name_plural': 'Categorías',
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Semilla',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=100, unique=True)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Variedad',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=100)),
                ('activo', models.BooleanField(default=True)),
                ('semilla', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='variedades',
                    to='logistica.semilla',
                )),
            ],
            options={
                'verbose_name': 'Variedad',
                'verbose_name_plural': 'Variedades',
                'ordering': ['semilla__nombre', 'nombre'],
                'unique_together': {('semilla', 'nombre')},
            },
        ),
        migrations.CreateModel(
            name='Semillera',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=200, unique=True)),
                ('direccion', models.CharField(blank=True, max_length=300)),
                ('telefono', models.CharField(blank=True, max_length=50)),
                ('nit', models.CharField(blank=True, max_length=50)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Cooperador',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=200)),
                ('ci', models.CharField(blank=True, max_length=50)),
                ('telefono', models.CharField(blank=True, max_length=50)),
                ('direccion', models.CharField(blank=True, max_length=300)),
                ('activo', models.BooleanField(default=True)),
                ('semillera', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='cooperadores',
                    to='logistica.semillera',
                )),
            ],
            options={
                'verbose_name_plural': 'Cooperadores',
                'ordering': ['nombre'],
            },
        ),
        migrations.AddConstraint(
            model_name='cooperador',
            constraint=models.UniqueConstraint(
                condition=models.Q(('ci', ''), _negated=True),
                fields=('ci',),
                name='cooperador_ci_unico',
            ),
        ),
        migrations.CreateModel(
            name='Conductor',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=200)),
                ('ci', models.CharField(max_length=50, unique=True)),
                ('telefono', models.CharField(blank=True, max_length=50)),
                ('licencia', models.CharField(blank=True, max_length=50)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name_plural': 'Conductores',
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Vehiculo',
            fields=[
                _pk(),
                *_timestamps(),
                ('placa', models.CharField(max_length=20, unique=True)),
                ('tipo', models.CharField(blank=True, max_length=100)),
                ('marca', models.CharField(blank=True, max_length=100)),
                ('modelo', models.CharField(blank=True, max_length=100)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'verbose_name': 'Vehículo',
                'verbose_name_plural': 'Vehículos',
                'ordering': ['placa'],
            },
        ),
        migrations.CreateModel(
            name='Cliente',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=200)),
                ('nit', models.CharField(blank=True, max_length=50)),
                ('telefono', models.CharField(blank=True, max_length=50)),
                ('direccion', models.CharField(blank=True, max_length=300)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'ordering': ['nombre'],
            },
        ),
        migrations.CreateModel(
            name='Servicio',
            fields=[
                _pk(),
                *_timestamps(),
                ('nombre', models.CharField(max_length=100, unique=True)),
                ('descripcion', models.CharField(blank=True, max_length=500)),
                ('activo', models.BooleanField(default=True)),
            ],
            options={
                'ordering': ['nombre'],
            },
        ),
        # Órdenes de ingreso
        migrations.CreateModel(
            name='OrdenIngreso',
            fields=[
                _pk(),
                *_timestamps(),
                ('numero_orden', models.CharField(max_length=50, unique=True)),
                ('nro_lote_campo', models.CharField(blank=True, max_length=100)),
                ('nro_cupon', models.CharField(blank=True, max_length=100)),
                ('lugar_ingreso', models.CharField(blank=True, max_length=200)),
                ('hora_ingreso', models.DateTimeField(blank=True, null=True)),
                ('lugar_salida', models.CharField(blank=True, max_length=200)),
                ('hora_salida', models.DateTimeField(blank=True, null=True)),
                ('peso_bruto', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('peso_tara', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('peso_neto', models.DecimalField(
                    decimal_places=2,
                    default=0,
                    help_text='Presupuesto en kg disponible para los lotes de producción.',
                    max_digits=10,
                )),
                ('peso_liquido', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('porcentaje_humedad', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('porcentaje_impureza', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('peso_hectolitrico', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('porcentaje_grano_danado', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('porcentaje_grano_verde', models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ('observaciones', models.TextField(blank=True)),
                ('estado', models.CharField(choices=ESTADOS_ORDEN_INGRESO, default='pendiente', max_length=20)),
                ('semillera', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.semillera',
                )),
                ('cooperador', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.cooperador',
                )),
                ('conductor', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.conductor',
                )),
                ('vehiculo', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.vehiculo',
                )),
                ('semilla', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.semilla',
                )),
                ('variedad', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.variedad',
                )),
                ('categoria_ingreso', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.categoria',
                )),
                ('unidad', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_ingreso',
                    to='logistica.unidad',
                )),
                ('usuario_creador', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='ordenes_ingreso_creadas',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Orden de ingreso',
                'verbose_name_plural': 'Órdenes de ingreso',
                'ordering': ['-created_at', '-id'],
            },
        ),
        # Lotes de producción
        migrations.CreateModel(
            name='LoteProduccion',
            fields=[
                _pk(),
                *_timestamps(),
                ('nro_lote', models.CharField(max_length=50, unique=True)),
                ('cantidad_unidades', models.PositiveIntegerField(help_text='Unidades (bolsas) disponibles.')),
                ('kg_por_unidad', models.DecimalField(decimal_places=2, max_digits=10)),
                ('total_kg', models.DecimalField(decimal_places=2, max_digits=12)),
                ('cantidad_original', models.PositiveIntegerField(editable=False)),
                ('total_kg_original', models.DecimalField(decimal_places=2, editable=False, max_digits=12)),
                ('presentacion', models.CharField(blank=True, max_length=100)),
                ('tipo_servicio', models.CharField(blank=True, max_length=100)),
                ('fecha_produccion', models.DateField(blank=True, null=True)),
                ('estado', models.CharField(choices=ESTADOS_LOTE, default='disponible', max_length=30)),
                ('orden_ingreso', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='lotes',
                    to='logistica.ordeningreso',
                )),
                ('variedad', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='lotes_produccion',
                    to='logistica.variedad',
                )),
                ('categoria_salida', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='lotes_produccion',
                    to='logistica.categoria',
                )),
                ('unidad', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='lotes_produccion',
                    to='logistica.unidad',
                )),
                ('usuario_creador', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='lotes_creados',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Lote de producción',
                'verbose_name_plural': 'Lotes de producción',
                'ordering': ['-created_at', '-id'],
            },
        ),
        # Órdenes de salida
        migrations.CreateModel(
            name='OrdenSalida',
            fields=[
                _pk(),
                *_timestamps(),
                ('numero_orden', models.CharField(max_length=50, unique=True)),
                ('deposito', models.CharField(blank=True, max_length=200)),
                ('observaciones', models.TextField(blank=True)),
                ('estado', models.CharField(choices=ESTADOS_ORDEN_SALIDA, default='pendiente', max_length=20)),
                ('fecha_salida', models.DateField()),
                ('total_costo_servicio', models.DecimalField(
                    blank=True,
                    decimal_places=2,
                    help_text='Costo total del servicio (solo registro, no se concilia).',
                    max_digits=12,
                    null=True,
                )),
                ('semillera', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_salida',
                    to='logistica.semillera',
                )),
                ('semilla', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_salida',
                    to='logistica.semilla',
                )),
                ('cliente', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_salida',
                    to='logistica.cliente',
                )),
                ('conductor', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_salida',
                    to='logistica.conductor',
                )),
                ('vehiculo', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_salida',
                    to='logistica.vehiculo',
                )),
                ('unidad', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='ordenes_salida',
                    to='logistica.unidad',
                )),
                ('usuario_creador', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='ordenes_salida_creadas',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Orden de salida',
                'verbose_name_plural': 'Órdenes de salida',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='DetalleOrdenSalida',
            fields=[
                _pk(),
                ('nro_lote', models.CharField(max_length=50)),
                ('tamano', models.CharField(blank=True, max_length=100)),
                ('cantidad_unidades', models.PositiveIntegerField()),
                ('kg_por_unidad', models.DecimalField(decimal_places=2, max_digits=10)),
                ('total_kg', models.DecimalField(decimal_places=2, max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('orden_salida', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='detalles',
                    to='logistica.ordensalida',
                )),
                ('lote', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='detalles_salida',
                    to='logistica.loteproduccion',
                )),
                ('variedad', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='detalles_salida',
                    to='logistica.variedad',
                )),
                ('categoria', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='detalles_salida',
                    to='logistica.categoria',
                )),
            ],
            options={
                'verbose_name': 'Detalle de orden de salida',
                'verbose_name_plural': 'Detalles de orden de salida',
                'ordering': ['id'],
            },
        ),
        # Libro de movimientos (sin FK física: el historial sobrevive a los borrados)
        migrations.CreateModel(
            name='MovimientoLote',
            fields=[
                _pk(),
                ('nro_lote', models.CharField(max_length=50)),
                ('tipo_movimiento', models.CharField(choices=TIPOS_MOVIMIENTO, default='entrada', max_length=10)),
                ('cantidad_unidades', models.PositiveIntegerField()),
                ('kg_movidos', models.DecimalField(decimal_places=2, max_digits=12)),
                ('saldo_unidades', models.PositiveIntegerField()),
                ('saldo_kg', models.DecimalField(decimal_places=2, max_digits=12)),
                ('observaciones', models.TextField(blank=True)),
                ('fecha_movimiento', models.DateTimeField(default=django.utils.timezone.now)),
                ('lote', models.ForeignKey(
                    db_constraint=False,
                    on_delete=django.db.models.deletion.DO_NOTHING,
                    related_name='movimientos',
                    to='logistica.loteproduccion',
                )),
                ('orden_salida', models.ForeignKey(
                    blank=True,
                    db_constraint=False,
                    null=True,
                    on_delete=django.db.models.deletion.DO_NOTHING,
                    related_name='movimientos',
                    to='logistica.ordensalida',
                )),
                ('usuario', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='movimientos_lote',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'Movimiento de lote',
                'verbose_name_plural': 'Movimientos de lote',
                'ordering': ['-fecha_movimiento', '-id'],
            },
        ),
        migrations.CreateModel(
            name='SecuenciaCodigo',
            fields=[
                _pk(),
                ('prefijo', models.CharField(max_length=10)),
                ('periodo', models.CharField(help_text='Año y mes, YYYYMM.', max_length=6)),
                ('ultimo_numero', models.PositiveIntegerField(default=0)),
            ],
            options={
                'verbose_name': 'Secuencia de código',
                'verbose_name_plural': 'Secuencias de código',
                'ordering': ['prefijo', '-periodo'],
                'unique_together': {('prefijo', 'periodo')},
            },
        ),
        # Roles
        migrations.CreateModel(
            name='PerfilUsuario',
            fields=[
                _pk(),
                ('rol', models.CharField(
                    choices=[
                        ('admin', 'Administrador'),
                        ('encargado', 'Encargado de unidad'),
                        ('operador', 'Operador'),
                    ],
                    default='operador',
                    max_length=20,
                )),
                ('usuario', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='perfil_logistica',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('unidad', models.ForeignKey(
                    blank=True,
                    help_text='Unidad a la que pertenece el usuario. Vacío solo para administradores.',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='perfiles',
                    to='logistica.unidad',
                )),
            ],
            options={
                'verbose_name': 'Perfil de usuario',
                'verbose_name_plural': 'Perfiles de usuario',
            },
        ),
    ]
