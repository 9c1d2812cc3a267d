from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # MongoDB Configuration
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "sneakerstore_db"
    
    # JWT Configuration (tokens are issued elsewhere, only verified here)
    JWT_SECRET_KEY: str = "change-this-secret-key-in-production"
    JWT_ALGORITHM: str = "HS256"
    
    # Cart integrity
    MIN_ITEM_PRICE: float = 1.0  # Last-resort price floor, a line is never priced at zero
    
    # Shipping
    FREE_SHIPPING_THRESHOLD: float = 300.0
    NORMAL_SHIPPING_PRICE: float = 19.9
    EXPRESS_SHIPPING_PRICE: float = 29.9
    
    # Device-local cart cache used by the storefront client
    LOCAL_CART_PATH: str = ".sneakerstore/cart.json"
    
    # Application Settings
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8000"]
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Sneakerstore"
    
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
