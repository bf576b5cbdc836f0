from typing import Dict, List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_name: str = "wc-bc-migrator"
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    database_url: str = "sqlite:///./migrator.db"
    redis_url: str = "redis://localhost:6379/0"

    bc_store_hash: str = ""
    bc_access_token: str = ""
    bc_api_base: str = "https://api.bigcommerce.com/stores"
    bc_timeout: float = 60.0

    source_export_path: str = "./data/source-export.json"

    # Inter-item pacing, seconds
    product_item_delay: float = 0.5
    customer_item_delay: float = 0.5
    order_item_delay: float = 1.0
    verify_item_delay: float = 0.2
    weight_item_delay: float = 0.3

    destination_weight_unit: Literal["oz", "g"] = "oz"
    excluded_variant_attributes: List[str] = ["metal", "metal-style", "stone-type"]
    customer_group_ids: Dict[str, int] = {
        "customer": 1,
        "wholesale_customer": 2,
        "subscriber": 3,
    }
    order_status_overrides: Dict[str, int] = {}

settings = Settings()
