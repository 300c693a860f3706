# infrastructure/storage/json_file_storage.py
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional

from application.interfaces.key_value_storage import IKeyValueStorage
from domain.exceptions import StorageError

logger = logging.getLogger(__name__)


class JsonFileStorage(IKeyValueStorage):
    """
    Armazenamento chave/valor em um único arquivo JSON.
    Cada escrita regrava o arquivo inteiro via arquivo temporário + os.replace,
    então leitores nunca veem um documento pela metade.
    """

    def __init__(self, file_path='data/local_storage.json'):
        self.file_path = Path(file_path)
        self.lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self.lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self.lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)
        logger.debug(f"Chave '{key}' gravada em {self.file_path}")

    def _read_all(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Arquivo {self.file_path} ilegível, ignorando conteúdo: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, str]) -> None:
        tmp_path = None
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.file_path.parent, prefix=f".{self.file_path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Erro ao gravar {self.file_path}: {e}") from e
