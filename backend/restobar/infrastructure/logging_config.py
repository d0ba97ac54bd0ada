"""
Configuración de logging para la aplicación
Crea archivos de log por día en la carpeta de logs configurada
"""
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: str = "logs", level: int = logging.INFO):
    """Configura el sistema de logging con archivos diarios"""

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    # Nombre del archivo de log con fecha actual (YYYY-MM-DD)
    today = datetime.now().strftime("%Y-%m-%d")
    log_file = log_path / f"restobar_{today}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Eliminar handlers existentes para evitar duplicados
    root_logger.handlers.clear()

    # maxBytes=10MB, backupCount=5
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger("restobar").setLevel(level)
    logging.getLogger("restobar.api").setLevel(level)

    # Kardex y cierres de caja: todo lo que pase por ahí queda en el archivo
    logging.getLogger("restobar.application.services_inventario").setLevel(logging.DEBUG)
    logging.getLogger("restobar.application.services_caja").setLevel(logging.DEBUG)

    # Solo warnings y errores de SQL
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    logging.getLogger("uvicorn").setLevel(logging.INFO)

    logging.info("Sistema de logging configurado. Archivo: %s", log_file)

    return root_logger

