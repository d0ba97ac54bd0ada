"""
Errores de dominio.

La taxonomía es plana y basada en mensajes: validación, búsqueda fallida y
reglas de negocio. Los routers los traducen a HTTP 400/404/409.
"""


class RestobarError(Exception):
    """Excepción base de la aplicación"""
    pass


class ValidacionError(RestobarError):
    """Datos faltantes o inválidos"""
    pass


class NoEncontradoError(RestobarError):
    """El artículo, almacén, caja, sesión o mesa no existe"""
    pass


class ReglaNegocioError(RestobarError):
    """La operación viola una regla de negocio"""
    pass


class RegistroDuplicadoError(ReglaNegocioError):
    """Otra transacción ya registró el mismo dato único"""
    pass
