# config/settings.py
"""Carregador de configurações do YAML."""
import os
import yaml
from pathlib import Path

# Carrega configurações do YAML
config_path = Path(__file__).parent / 'config.yaml'
if not config_path.exists():
    raise FileNotFoundError(f"Arquivo {config_path} não encontrado!")

with open(config_path, 'r', encoding='utf-8') as f:
    config = yaml.safe_load(f) or {}

# Acesso fácil às seções de configuração
SUPABASE_CONFIG = dict(config.get('supabase') or {})
REALTIME_CONFIG = config.get('realtime') or {}
SYNC_CONFIG = config.get('sync') or {}
STORAGE_CONFIG = config.get('storage') or {}
DISPLAY_CONFIG = config.get('display') or {}
SYSTEM_CONFIG = config.get('system') or {}

# Credenciais ficam fora do arquivo: variáveis de ambiente têm prioridade
SUPABASE_CONFIG['url'] = os.getenv('SUPABASE_URL', SUPABASE_CONFIG.get('url', ''))
SUPABASE_CONFIG['anon_key'] = os.getenv('SUPABASE_ANON_KEY', SUPABASE_CONFIG.get('anon_key', ''))
