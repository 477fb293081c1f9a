from decimal import Decimal
from pydantic_settings import BaseSettings
from dotenv import load_dotenv


load_dotenv()


class Settings(BaseSettings):
    app_name: str = "SCP Platform API"
    debug: bool = False
    database_url: str = ""
    host: str = "127.0.0.1"
    port: int = 8000
    secret_key: str = ""
    access_token_expire_minutes: int = 15
    allowed_hosts: str = ""
    log_file: str = "logs/application.log"

    # Ordering policy
    order_tax_rate: Decimal = Decimal("0.10")
    order_shipping_fee: Decimal = Decimal("0.00")

    # Live notifications
    ws_send_queue_size: int = 256


settings = Settings()

if not settings.secret_key:
    raise RuntimeError("Secret key not configured.")

if not settings.database_url:
    raise RuntimeError("Database URL not configured.")
