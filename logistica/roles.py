from dataclasses import dataclass

from django.conf import settings

from logistica.exceptions import AuthorizationError, ValidationError
from logistica.models_roles import PerfilUsuario, Rol
from logistica.services.catalogos import a_entero


@dataclass(frozen=True)
class Actor:
    """
    Identidad de quien llama a un servicio: usuario, rol y unidad.
    Los servicios no consultan la autenticación; reciben esto.
    """
    id_usuario: int | None
    rol: str
    id_unidad: int | None = None


def roles_elevados() -> list[str]:
    return list(getattr(settings, "LOGISTICA_ROLES_ELEVADOS", [Rol.ADMIN]))


def es_elevado(actor: Actor) -> bool:
    """
    True si el actor opera sobre todas las unidades (ej: administrador).
    """
    return actor.rol in roles_elevados()


def actor_desde_usuario(user) -> Actor:
    """
    Construye el Actor a partir de un usuario de Django:
    - Superusuario → rol admin, sin unidad.
    - Con PerfilUsuario → su rol y su unidad.
    - Sin perfil → operador sin unidad (no puede operar nada con unidad).
    """
    if not user.is_authenticated:
        raise AuthorizationError("Usuario no autenticado.")

    if user.is_superuser:
        return Actor(id_usuario=user.pk, rol=Rol.ADMIN)

    try:
        perfil = user.perfil_logistica
    except PerfilUsuario.DoesNotExist:
        return Actor(id_usuario=user.pk, rol=Rol.OPERADOR)

    return Actor(id_usuario=user.pk, rol=perfil.rol, id_unidad=perfil.unidad_id)


def resolver_unidad(actor: Actor, id_unidad: int | None) -> int:
    """
    Devuelve la unidad donde se va a escribir:
    - No elevado: siempre la suya; si pide otra, AuthorizationError.
    - Elevado: debe indicarla explícitamente.
    """
    if es_elevado(actor):
        if id_unidad is None:
            raise ValidationError("Debe indicar la unidad (id_unidad).")
        return a_entero(id_unidad, "id_unidad")

    if actor.id_unidad is None:
        raise AuthorizationError("El usuario no tiene una unidad asignada.")

    if id_unidad is not None and a_entero(id_unidad, "id_unidad") != actor.id_unidad:
        raise AuthorizationError(
            f"No puede operar en la unidad {id_unidad}; su unidad es {actor.id_unidad}."
        )
    return actor.id_unidad


def verificar_acceso_unidad(actor: Actor, id_unidad: int, recurso: str) -> None:
    if es_elevado(actor):
        return
    if actor.id_unidad is None or actor.id_unidad != id_unidad:
        raise AuthorizationError(f"No tiene acceso a {recurso}.")


def filtrar_por_unidad(qs, actor: Actor, campo: str = "unidad"):
    """
    Limita un queryset a la unidad del actor (si no es elevado).
    """
    if es_elevado(actor):
        return qs
    if actor.id_unidad is None:
        return qs.none()
    return qs.filter(**{f"{campo}_id": actor.id_unidad})
