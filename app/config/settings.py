# app/config/settings.py
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # 🔧 Configuración del servicio de slots (lee CMS_* del entorno o del .env)
    model_config = SettingsConfigDict(
        env_prefix="CMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(
        default="content-slot-service",
        description="Service name for FastAPI.",
    )

    # Remote Content Service
    remote_base_url: str = Field(
        default="http://localhost:8000",
        description="URL base del servicio remoto de contenido (sin /api/cms).",
    )
    request_timeout: float = Field(
        default=10.0,
        description="Timeout en segundos para cada request HTTP al servicio remoto.",
    )

    # Local Persistent Store
    local_store_path: str | None = Field(
        default=None,
        description="Archivo JSON para el store local. None usa un store en memoria.",
    )
    storage_prefix: str = Field(
        default="redux-cms-",
        description="Prefijo de las llaves de slot en el store local.",
    )
    pending_delete_prefix: str = Field(
        default="redux-pending-delete-",
        description="Prefijo de las marcas de borrado pendiente contra el remoto.",
    )
    legacy_gallery_prefix: str | None = Field(
        default="redux-gallery-",
        description="Prefijo antiguo de galerías (arreglo JSON). Sólo se lee como respaldo; None lo desactiva.",
    )

    # Galerías
    max_gallery_size: int | None = Field(
        default=50,
        description="Máximo de elementos por galería; los más antiguos se descartan al exceder.",
    )

    log_level: str = Field(
        default="INFO",
        description="Nivel de logging (DEBUG, INFO, WARNING, ERROR).",
    )
