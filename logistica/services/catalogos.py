from decimal import ROUND_DOWN, Decimal, InvalidOperation

from logistica.exceptions import NotFoundError, ValidationError


def obtener_catalogo(modelo, pk, etiqueta: str):
    """
    Carga una fila referenciada por id o falla con NotFoundError.
    """
    if pk in (None, ""):
        raise ValidationError(f"Debe indicar {etiqueta}.")
    try:
        return modelo.objects.get(pk=pk)
    except (modelo.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"{etiqueta.capitalize()} con ID {pk} no encontrado(a).")


def a_decimal(valor, campo: str, *, minimo=None, maximo=None, decimales=2, max_digitos=10) -> Decimal:
    """
    Convierte a Decimal y valida el rango [minimo, maximo] si se indica.

    El valor tiene que caber en la columna (max_digitos, decimales): un
    decimal de más se rechaza, la base no lo redondea en silencio.
    """
    try:
        numero = Decimal(str(valor))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"El campo {campo} debe ser numérico (recibido: {valor!r}).")

    if not numero.is_finite():
        raise ValidationError(f"El campo {campo} debe ser un número finito.")

    paso = Decimal(1).scaleb(-decimales)
    if abs(numero) >= Decimal(10) ** (max_digitos - decimales):
        raise ValidationError(
            f"El campo {campo} admite como máximo {max_digitos - decimales} dígitos enteros "
            f"(recibido: {numero})."
        )
    if numero != numero.quantize(paso, rounding=ROUND_DOWN):
        raise ValidationError(
            f"El campo {campo} admite como máximo {decimales} decimales (recibido: {numero})."
        )
    numero = numero.quantize(paso)

    if minimo is not None and numero < minimo:
        raise ValidationError(f"El campo {campo} debe ser >= {minimo} (recibido: {numero}).")
    if maximo is not None and numero > maximo:
        raise ValidationError(f"El campo {campo} debe ser <= {maximo} (recibido: {numero}).")
    return numero


def a_entero(valor, campo: str, *, minimo=None) -> int:
    if isinstance(valor, bool):
        raise ValidationError(f"El campo {campo} debe ser un entero.")
    try:
        numero = int(valor)
    except (ValueError, TypeError):
        raise ValidationError(f"El campo {campo} debe ser un entero (recibido: {valor!r}).")
    if isinstance(valor, float) and valor != numero:
        raise ValidationError(f"El campo {campo} debe ser un entero (recibido: {valor!r}).")
    if minimo is not None and numero < minimo:
        raise ValidationError(f"El campo {campo} debe ser >= {minimo} (recibido: {numero}).")
    return numero


def filtrar_cambios(cambios: dict, permitidos) -> dict:
    """
    Devuelve solo los campos reconocidos de un patch parcial.
    Un campo desconocido es un error, no se ignora en silencio.
    """
    desconocidos = sorted(set(cambios) - set(permitidos))
    if desconocidos:
        raise ValidationError(
            f"Campos no editables: {', '.join(desconocidos)}."
        )
    return {campo: valor for campo, valor in cambios.items() if campo in permitidos}
