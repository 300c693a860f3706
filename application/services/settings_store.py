# application/services/settings_store.py
import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

import pydantic

from application.interfaces.key_value_storage import IKeyValueStorage
from domain.entities.trading_settings import TradingSettings
from domain.exceptions import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_KEY = 'tradingSettings'

# Campo do modelo -> nome persistido (formato herdado do cliente web)
STORAGE_FIELD_NAMES = {
    'telegram_enabled': 'telegramEnabled',
    'auto_mode_enabled': 'autoModeEnabled',
    'confidence_threshold': 'confidenceThreshold',
    'signal_frequency_minutes': 'signalFrequency',
}


class SettingsStore:
    """
    Persiste as configurações do usuário no armazenamento local.
    Cada campo é validado isoladamente na leitura: um campo corrompido
    volta ao default sem descartar os irmãos válidos.
    """

    def __init__(self, storage: IKeyValueStorage, key: Optional[str] = None):
        self.storage = storage
        self.key = key or DEFAULT_SETTINGS_KEY

    def load(self) -> TradingSettings:
        """Lê as configurações salvas aplicando defaults campo a campo."""
        raw = self.storage.get(self.key)
        if raw is None:
            return TradingSettings()

        try:
            stored = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Configurações em '{self.key}' ilegíveis, usando defaults")
            return TradingSettings()

        if not isinstance(stored, dict):
            logger.warning(f"Configurações em '{self.key}' não são um objeto, usando defaults")
            return TradingSettings()

        valid: Dict[str, Any] = {}
        for field_name, storage_name in STORAGE_FIELD_NAMES.items():
            if storage_name not in stored:
                continue
            value = stored[storage_name]
            try:
                TradingSettings(**{field_name: value})
            except pydantic.ValidationError:
                logger.warning(f"Valor inválido para {storage_name}={value!r}, usando default")
                continue
            valid[field_name] = value

        return TradingSettings(**valid)

    def save(self, settings: Union[TradingSettings, Mapping[str, Any]]) -> TradingSettings:
        """
        Valida e persiste as configurações.

        Returns:
            TradingSettings: o valor efetivamente gravado (confirmação síncrona)

        Raises:
            ValidationError: algum campo fora do domínio; nada é gravado
        """
        values = self._as_values(settings)
        validated = self.validate(values)

        document = {
            storage_name: getattr(validated, field_name)
            for field_name, storage_name in STORAGE_FIELD_NAMES.items()
        }
        # Uma única escrita: o storage garante atomicidade
        self.storage.set(self.key, json.dumps(document))
        logger.info(f"Configurações salvas: {document}")
        return validated

    def validate(self, values: Mapping[str, Any]) -> TradingSettings:
        """Valida todos os campos, reportando cada um que estiver inválido."""
        unknown = set(values) - set(STORAGE_FIELD_NAMES)
        errors: Dict[str, str] = {name: "campo desconhecido" for name in sorted(unknown)}

        try:
            validated = TradingSettings(**{k: v for k, v in values.items() if k not in unknown})
        except pydantic.ValidationError as e:
            for error in e.errors():
                name = str(error['loc'][0]) if error.get('loc') else '__root__'
                errors.setdefault(name, error.get('msg', 'inválido'))
            validated = None

        if errors or validated is None:
            raise ValidationError(errors)
        return validated

    @staticmethod
    def _as_values(settings: Union[TradingSettings, Mapping[str, Any]]) -> Dict[str, Any]:
        if isinstance(settings, TradingSettings):
            # Revalida mesmo instâncias prontas (podem ter sido criadas sem validação)
            return {name: getattr(settings, name) for name in STORAGE_FIELD_NAMES}
        return dict(settings)
