import logging

from fastapi import HTTPException

from ..domain.errors import NoEncontradoError, ReglaNegocioError, RestobarError, ValidacionError

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (NoEncontradoError, 404),
    (ReglaNegocioError, 409),
    (ValidacionError, 400),
)


def http_error(e: Exception, accion: str) -> HTTPException:
    """Traduce un error de dominio a HTTPException; lo inesperado se registra y sale como 500."""
    if isinstance(e, RestobarError):
        for error_type, status_code in STATUS_BY_ERROR:
            if isinstance(e, error_type):
                return HTTPException(status_code=status_code, detail=str(e))
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Error inesperado al {accion}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error inesperado al {accion}")
