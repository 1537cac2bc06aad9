from django.contrib import admin

from .models_roles import PerfilUsuario


@admin.register(PerfilUsuario)
class PerfilUsuarioAdmin(admin.ModelAdmin):
    list_display = (
        "usuario",
        "rol",
        "unidad",
    )
    list_filter = (
        "rol",
        "unidad",
    )
    search_fields = ("usuario__username", "unidad__nombre")
    autocomplete_fields = ("usuario", "unidad")
