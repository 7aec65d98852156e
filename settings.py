import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    database_name: str = "gamezone"
    port: int = 8000
    email_user: Optional[str] = None
    email_pass: Optional[str] = None
    email_host: str = "smtp.gmail.com"
    email_port: int = 465
    site_url: str = "http://localhost:3000"
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    upload_folder: str = "games"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL") or None,
            database_name=os.getenv("DATABASE_NAME", "gamezone"),
            port=int(os.getenv("PORT", 8000)),
            email_user=os.getenv("EMAIL_USER"),
            email_pass=os.getenv("EMAIL_PASS"),
            email_host=os.getenv("EMAIL_HOST", "smtp.gmail.com"),
            email_port=int(os.getenv("EMAIL_PORT", 465)),
            # Links are joined with "/", keep the base free of a trailing slash
            site_url=os.getenv("SITE_URL", "http://localhost:3000").rstrip("/"),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
            upload_folder=os.getenv("UPLOAD_FOLDER", "games"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
