from django.conf import settings
from django.db import models


class Rol(models.TextChoices):
    ADMIN = "admin", "Administrador"
    ENCARGADO = "encargado", "Encargado de unidad"
    OPERADOR = "operador", "Operador"


class PerfilUsuario(models.Model):
    """
    Rol y unidad de un usuario. Todo administrable desde el Django Admin.
    Los roles que no son elevados solo ven y operan su propia unidad.
    """

    usuario = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="perfil_logistica",
    )
    rol = models.CharField(
        max_length=20,
        choices=Rol.choices,
        default=Rol.OPERADOR,
    )
    unidad = models.ForeignKey(
        "logistica.Unidad",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="perfiles",
        help_text="Unidad a la que pertenece el usuario. Vacío solo para administradores.",
    )

    class Meta:
        verbose_name = "Perfil de usuario"
        verbose_name_plural = "Perfiles de usuario"

    def __str__(self):
        return f"{self.usuario} ({self.get_rol_display()})"
