"""Configuration commands for the nestblue-sync CLI."""

import os

from cyclopts import App

from nestblue_sync.config import ENV_OVERRIDES, get_config

config_app = App(name="config", help="Manage API, socket, token and storage settings")

SECRET_KEYS = {"auth.token"}


def _check_key(key: str) -> None:
    if key not in ENV_OVERRIDES:
        raise ValueError(f"Unknown setting: {key}. Known settings: {', '.join(ENV_OVERRIDES)}")


def _shown(key: str, value: str) -> str:
    return "***" if key in SECRET_KEYS else value


def _scope(global_: bool) -> str:
    return "global" if global_ else "local"


@config_app.command
def set(key: str, value: str, global_: bool = False) -> None:
    """Store a setting.

    Args:
        key: One of api.url, ws.url, auth.token, storage.dir
        value: New value
        global_: Write ~/.nestblue/config.yaml instead of ./.nestblue/config.yaml
    """
    _check_key(key)
    get_config(use_global=global_).set(key, value)
    print(f"Set {key} = {_shown(key, value)} ({_scope(global_)})")


@config_app.command
def unset(key: str, global_: bool = False) -> None:
    """Remove a stored setting so the default applies."""
    _check_key(key)
    get_config(use_global=global_).unset(key)
    print(f"Unset {key} ({_scope(global_)})")


@config_app.command
def get(key: str, global_: bool = False) -> None:
    """Show a stored setting and whether an environment variable overrides it."""
    _check_key(key)
    value = get_config(use_global=global_).get(key)
    print(f"{key} is not set" if value is None else f"{key} = {_shown(key, value)}")
    env_name = ENV_OVERRIDES[key]
    if os.environ.get(env_name):
        print(f"Overridden by ${env_name}")


@config_app.command(name="list")
def list_config(global_: bool = False) -> None:
    """List stored settings, local values shadowing global ones."""
    settings = get_config(use_global=global_).list()
    if not settings:
        print(f"No {_scope(global_)} settings stored")
        return

    for key, value in settings.items():
        marker = f" (overridden by ${ENV_OVERRIDES[key]})" if os.environ.get(ENV_OVERRIDES.get(key, "")) else ""
        print(f"{key} = {_shown(key, value)}{marker}")
