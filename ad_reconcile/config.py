"""Configuration for ad-reconcile."""

import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import BaseModel, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console

#: The rich console to use for output.
console_err = Console(file=sys.stderr)


class LdapSettings(BaseModel):
    """Configuration of the Active Directory connection."""

    #: The hostname of the domain controller.
    server_host: str
    #: The port of the domain controller.
    server_port: int = 389
    #: Whether to use LDAPS, required by AD for setting passwords.
    use_ssl: bool = False
    #: The distinguished name of the user to bind to the server.
    bind_dn: str
    #: The password of the user to bind to the server.
    bind_pw: SecretStr
    #: The base DN to search for users and groups by name.
    search_base: str
    #: Suffix for ``userPrincipalName`` of new users, e.g. ``example.com``.
    upn_suffix: Optional[str] = None


class Settings(BaseSettings):
    """Configuration of ad-reconcile."""

    #: Configuration of the directory connection.
    ldap: LdapSettings
    #: Whether dry run is enabled.
    dry_run: bool = False

    #: Obtaining configuration from environment variables.
    model_config = SettingsConfigDict(env_prefix="AD_RECONCILE_", env_nested_delimiter="__")


def load_settings(config_path: str) -> Settings:
    """Load configuration from the given path.

    :param config_path: The path to the configuration file.
    :return: The loaded configuration.
    :raises typer.Exit: If the configuration file does not exist.
    """
    if not Path(config_path).exists():
        console_err.log(f"ERROR: Configuration file {config_path} does not exist.", style="red")
        raise typer.Exit(1)
    with open(config_path, "rt") as f:
        return Settings.model_validate_json(f.read())
