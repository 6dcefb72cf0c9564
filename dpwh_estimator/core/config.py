import os

from dotenv import load_dotenv

load_dotenv()


class Settings:
    APP_ENV: str = os.getenv("APP_ENV", "local")
    APP_NAME: str = os.getenv("APP_NAME", "dpwh-estimator")
    DB_USER: str = os.getenv("POSTGRES_USER", "estimator")
    DB_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "devpass")
    DB_NAME: str = os.getenv("POSTGRES_DB", "estimator")
    DB_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    DB_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    CORS_ALLOW_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Engine defaults (percentages are whole numbers, 12 means 12%)
    DEFAULT_VAT_PCT: float = float(os.getenv("DEFAULT_VAT_PCT", "12"))
    DEFAULT_MINOR_TOOLS_PCT: float = float(os.getenv("DEFAULT_MINOR_TOOLS_PCT", "10"))
    DEFAULT_EQUIPMENT_RENTAL_RATE: float = float(
        os.getenv("DEFAULT_EQUIPMENT_RENTAL_RATE", "1420")
    )
    DEFAULT_EQUIPMENT_CAPACITY: float = float(
        os.getenv("DEFAULT_EQUIPMENT_CAPACITY", "10")
    )
    DIAGNOSTICS_TOLERANCE: float = float(os.getenv("DIAGNOSTICS_TOLERANCE", "1e-4"))
    ESTIMATE_NUMBER_PREFIX: str = os.getenv("ESTIMATE_NUMBER_PREFIX", "EST")


settings = Settings()
