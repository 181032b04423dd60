import os
import logging
from pathlib import Path
from typing import Optional

try:
	from dotenv import load_dotenv
except ImportError:
	logging.warning("python-dotenv not available; using environment variables only")
else:
	loaded = load_dotenv()
	if not loaded and Path(".env").exists():
		raise RuntimeError(".env file present but failed to load")


def get_str_env(name: str, default: str) -> str:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	return raw


def get_optional_str_env(name: str) -> Optional[str]:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return None
	return raw


def get_int_env(name: str, default: int) -> int:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	try:
		return int(raw)
	except Exception:
		logging.exception("Invalid %s: %r", name, raw)
		return default


def get_bool_env(name: str, default: bool) -> bool:
	raw = os.getenv(name)
	if raw is None or raw == "":
		return default
	value = raw.strip().lower()
	if value in ("1", "true", "yes", "on"):
		return True
	if value in ("0", "false", "no", "off"):
		return False
	logging.warning("Invalid %s: %r", name, raw)
	return default


def database_url() -> Optional[str]:
	return get_optional_str_env("WORKSCOPE_DATABASE_URL")


def data_sources_file() -> Optional[str]:
	return get_optional_str_env("WORKSCOPE_DATA_SOURCES_FILE")


def detached_navigation() -> str:
	return get_str_env("WORKSCOPE_DETACHED_NAVIGATION", "raise").strip().lower()


def default_loader() -> str:
	return get_str_env("WORKSCOPE_DEFAULT_LOADER", "selectin").strip().lower()


def echo_sql() -> bool:
	return get_bool_env("WORKSCOPE_ECHO_SQL", False)
