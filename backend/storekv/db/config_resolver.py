"""
Relational Connection Config Resolver

Resolution order, first match wins:
1. DATABASE_URL environment variable (TLS without peer verification)
2. PG_HOST / PG_PORT / PG_DATABASE (or PG_DB) / PG_USER / PG_PASSWORD / PG_SSL
3. Primary JSON config file (written by save_connection_config, skipped when "enabled" is false)
4. Backup JSON config file

Returns None when nothing resolves; callers fall back to the flat-file store.
"""

from __future__ import annotations

import json
import logging
import os
import ssl as ssl_lib
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.engine import URL, make_url

from storekv.common.errors import ValidationError
from storekv.domain.connection import ConfigSource

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5432
DEFAULT_DATABASE = "postgres"
ASYNC_DRIVER = "postgresql+asyncpg"

# Keys the admin UI stores next to the connection fields
_BOOKKEEPING_FIELDS = ("source", "enabled")


class TLSOptions(BaseModel):
    """TLS settings passed to the driver"""

    reject_unauthorized: bool = Field(False, alias="rejectUnauthorized")

    model_config = ConfigDict(populate_by_name=True)

    def ssl_context(self) -> ssl_lib.SSLContext:
        context = ssl_lib.create_default_context()
        if not self.reject_unauthorized:
            context.check_hostname = False
            context.verify_mode = ssl_lib.CERT_NONE
        return context


class ConnectionConfig(BaseModel):
    """Resolved relational connection parameters"""

    connection_string: Optional[str] = Field(None, alias="connectionString")
    host: Optional[str] = None
    port: int = DEFAULT_PORT
    database: str = DEFAULT_DATABASE
    user: Optional[str] = None
    password: Optional[str] = None
    ssl: Optional[TLSOptions] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def fingerprint(self) -> str:
        """Stable identity of the config, used to detect changes"""
        return json.dumps(self.model_dump(mode="json"), sort_keys=True)

    def url(self) -> URL:
        """SQLAlchemy URL with the async driver selected"""
        if self.connection_string:
            url = make_url(self.connection_string)
            if url.drivername in ("postgres", "postgresql"):
                url = url.set(drivername=ASYNC_DRIVER)
            if url.drivername == ASYNC_DRIVER:
                # TLS goes through connect_args, asyncpg rejects sslmode
                url = url.difference_update_query(["sslmode"])
            return url
        return URL.create(
            ASYNC_DRIVER,
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def public_view(self) -> dict[str, Any]:
        """Wire form with the password removed, also from a connection string"""
        data = self.model_dump(mode="json", by_alias=True, exclude={"password"}, exclude_none=True)
        if self.connection_string:
            data["connectionString"] = make_url(self.connection_string).render_as_string(
                hide_password=True
            )
        return data

    @property
    def is_postgres(self) -> bool:
        return self.url().drivername == ASYNC_DRIVER

    def connect_args(self, timeout: float) -> dict[str, Any]:
        """Driver connect arguments (asyncpg only)"""
        if not self.is_postgres:
            return {}
        return {
            "ssl": self.ssl.ssl_context() if self.ssl else False,
            "timeout": timeout,
        }


def _is_true(value: Any) -> bool:
    return value is True or value == "true"


def _from_host_vars(env: Mapping[str, Any]) -> ConnectionConfig:
    return ConnectionConfig(
        host=env.get("PG_HOST"),
        port=int(env.get("PG_PORT") or DEFAULT_PORT),
        database=env.get("PG_DATABASE") or env.get("PG_DB") or DEFAULT_DATABASE,
        user=env.get("PG_USER"),
        password=env.get("PG_PASSWORD"),
        ssl=TLSOptions() if _is_true(env.get("PG_SSL")) else None,
    )


def normalize_file_config(raw: dict[str, Any]) -> ConnectionConfig:
    """
    Build a config from a saved JSON document.

    Drops bookkeeping fields and coerces the loose `ssl` forms the UI
    writes (true, "true", "false", an options object) into TLSOptions or None.
    """
    data = {k: v for k, v in raw.items() if k not in _BOOKKEEPING_FIELDS}
    ssl_value = data.get("ssl")
    if data.get("connectionString") or data.get("connection_string"):
        data["ssl"] = TLSOptions()
    elif isinstance(ssl_value, dict):
        data["ssl"] = TLSOptions.model_validate(ssl_value)
    elif _is_true(ssl_value):
        data["ssl"] = TLSOptions()
    else:
        data["ssl"] = None
    return ConnectionConfig.model_validate(data)


def _has_target(raw: dict[str, Any]) -> bool:
    return bool(raw.get("host") or raw.get("connectionString") or raw.get("connection_string"))


def _read_config_file(path: Path) -> Optional[ConnectionConfig]:
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable connection config {path}: {e}")
        return None
    if not isinstance(raw, dict) or not _has_target(raw):
        return None
    if raw.get("enabled") is False:
        return None
    try:
        return normalize_file_config(raw)
    except ValueError as e:
        logger.warning(f"Ignoring invalid connection config {path}: {e}")
        return None


def _default_paths(
    config_file: Optional[Path | str], backup_file: Optional[Path | str]
) -> tuple[Path, Path]:
    if config_file is None or backup_file is None:
        from storekv.config import get_settings

        settings = get_settings()
        config_file = config_file or settings.PG_CONFIG_FILE
        backup_file = backup_file or settings.PG_BACKUP_FILE
    return Path(config_file), Path(backup_file)


def resolve_connection_source(
    environ: Optional[Mapping[str, Any]] = None,
    config_file: Optional[Path | str] = None,
    backup_file: Optional[Path | str] = None,
) -> tuple[Optional[ConnectionConfig], Optional[ConfigSource]]:
    """Resolve the connection config along with the source it came from."""
    env = os.environ if environ is None else environ
    primary, backup = _default_paths(config_file, backup_file)

    if env.get("DATABASE_URL"):
        config = ConnectionConfig(connection_string=env["DATABASE_URL"], ssl=TLSOptions())
        return config, ConfigSource.DATABASE_URL

    if env.get("PG_HOST"):
        return _from_host_vars(env), ConfigSource.ENV

    for path, source in ((primary, ConfigSource.FILE), (backup, ConfigSource.BACKUP)):
        config = _read_config_file(path)
        if config is not None:
            return config, source

    return None, None


def resolve_connection_config(
    environ: Optional[Mapping[str, Any]] = None,
    config_file: Optional[Path | str] = None,
    backup_file: Optional[Path | str] = None,
) -> Optional[ConnectionConfig]:
    """
    Resolve the relational connection config.

    Args:
        environ: Environment mapping, defaults to os.environ
        config_file: Primary JSON config path, defaults to settings
        backup_file: Backup JSON config path, defaults to settings

    Returns:
        ConnectionConfig, or None when no source yields a config
    """
    config, _ = resolve_connection_source(environ, config_file, backup_file)
    return config


def parse_connection_config(raw: dict[str, Any]) -> ConnectionConfig:
    """
    Validate a config document submitted by an operator.

    Raises:
        ValidationError: If the document has no host or connection string, or does not validate
    """
    if not _has_target(raw):
        raise ValidationError("Connection config needs a host or a connectionString")
    try:
        return normalize_file_config(raw)
    except ValueError as e:
        raise ValidationError("Invalid connection config", details={"reason": str(e)}) from e


def save_connection_config(path: Path | str, raw: Optional[dict[str, Any]]) -> Optional[ConnectionConfig]:
    """
    Write the primary config file, or remove it when `raw` is None.

    The document goes through parse_connection_config first; the file is
    replaced atomically so a concurrent reader never sees a partial write.
    """
    path = Path(path)
    if raw is None:
        path.unlink(missing_ok=True)
        logger.info(f"Connection config {path} cleared")
        return None

    config = parse_connection_config(raw)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(
        json.dumps(config.model_dump(mode="json", by_alias=True, exclude_none=True)),
        encoding="utf-8",
    )
    os.replace(tmp_path, path)
    logger.info(f"Connection config saved to {path}")
    return config
