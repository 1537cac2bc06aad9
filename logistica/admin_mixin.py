from django.contrib import admin

from .models import Unidad
from .roles import actor_desde_usuario, es_elevado


class SoloUnidadUsuarioMixin(admin.ModelAdmin):
    """
    Limita el admin a la unidad del usuario.
    Un rol elevado (o superusuario) ve todas las unidades.
    Un usuario sin unidad asignada no ve nada.
    """

    campo_unidad = "unidad"

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        actor = actor_desde_usuario(request.user)
        if es_elevado(actor):
            return qs
        if actor.id_unidad is None:
            return qs.none()
        return qs.filter(**{f"{self.campo_unidad}_id": actor.id_unidad})

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        if db_field.name == self.campo_unidad:
            actor = actor_desde_usuario(request.user)
            if not es_elevado(actor):
                kwargs["queryset"] = Unidad.objects.filter(pk=actor.id_unidad)
        return super().formfield_for_foreignkey(db_field, request, **kwargs)
