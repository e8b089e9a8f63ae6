"""
SchoolBooks — settings.
schoolbooks.json lives next to the program. Environment variables win
over the file.
"""
import json
import logging
import os

log = logging.getLogger(__name__)

CONFIG_NAME = 'schoolbooks.json'
DEFAULT_DB = 'books.db'
DEFAULTS = {'db_path': '', 'school_name': 'My School', 'last_opened': ''}

def get_config_path():
    """Config file lives next to the program."""
    return os.environ.get('SCHOOLBOOKS_CONFIG') or \
        os.path.join(os.path.dirname(os.path.abspath(__file__)), CONFIG_NAME)

def load_config():
    path = get_config_path()
    cfg = dict(DEFAULTS)
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                cfg.update(json.load(f))
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable config %s: %s", path, e)
    return cfg

def save_config(cfg):
    with open(get_config_path(), 'w') as f:
        json.dump(cfg, f, indent=2)

def resolve_db_path(explicit=None):
    """Database to open: explicit argument, then SCHOOLBOOKS_DB, then the
    config file, then books.db in the current directory."""
    if explicit:
        return explicit
    env = os.environ.get('SCHOOLBOOKS_DB', '')
    if env:
        return env
    cfg = load_config()
    return cfg.get('db_path') or cfg.get('last_opened') or DEFAULT_DB

def check_workspace(path):
    """Enforce SCHOOLBOOKS_WORKSPACE boundary if set. Returns True if allowed."""
    ws = os.environ.get('SCHOOLBOOKS_WORKSPACE', '')
    if not ws:
        return True
    ws = os.path.realpath(os.path.expanduser(ws))
    resolved = os.path.realpath(os.path.expanduser(path))
    return resolved == ws or resolved.startswith(ws + os.sep)
