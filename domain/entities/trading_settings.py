# domain/entities/trading_settings.py
from pydantic import BaseModel, Field, StrictBool, StrictInt

# Domínios válidos (inclusivos)
CONFIDENCE_THRESHOLD_RANGE = (70, 99)
SIGNAL_FREQUENCY_RANGE = (1, 15)


class TradingSettings(BaseModel):
    """Preferências locais do usuário (notificações e geração automática)."""
    telegram_enabled: StrictBool = True
    auto_mode_enabled: StrictBool = False
    confidence_threshold: StrictInt = Field(
        default=88,
        ge=CONFIDENCE_THRESHOLD_RANGE[0],
        le=CONFIDENCE_THRESHOLD_RANGE[1],
        description="Confiança mínima (%) para gerar sinais"
    )
    signal_frequency_minutes: StrictInt = Field(
        default=5,
        ge=SIGNAL_FREQUENCY_RANGE[0],
        le=SIGNAL_FREQUENCY_RANGE[1],
        description="Intervalo entre sinais no modo automático"
    )

    class Config:
        frozen = True
