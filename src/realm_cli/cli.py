# ABOUTME: Command-line entry point for realm-cli
# ABOUTME: argparse commands for login, secrets, and static hosting import/export

"""
realm-cli command line.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Thin glue between argparse and the library modules. Each command:

1. builds ONE CLISettings from the environment plus global flags
2. configures logging and starts a fresh correlation ID
3. opens a RequestExecutor, wraps it in an AuthClient bound to the stored
   profile, and hands a RealmClient to the command body
4. prints results through the UI sink and returns an exit code

Usage:
    realm-cli login --username <public key> --api-key <private key>
    realm-cli hosting diff --group-id <g> --client-app-id todo-abcde
    realm-cli hosting import --group-id <g> --app-id <id> --app-dir ./app --reset-cache
    realm-cli secrets add --group-id <g> --app-id <id> --name db_pass --value s3cret

Errors expected during normal use (API errors, auth failures, bad local
files) are printed as one line on stderr and exit with status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import SecretStr, ValidationError

from realm_cli import __version__
from realm_cli.api import RealmClient, authenticate
from realm_cli.auth import APIKeyProvider, InvalidCredentialsError, UsernamePasswordProvider
from realm_cli.config import NotLoggedInError, ProfileStore, load_settings
from realm_cli.hosting.diff import diff_asset_metadata
from realm_cli.hosting.export import HostingExportError, export_hosting
from realm_cli.hosting.local import (
    HOSTING_FILES_DIRECTORY,
    HOSTING_METADATA_FILE,
    AssetCache,
    LocalAssetError,
    list_local_asset_metadata,
    load_asset_descriptions,
)
from realm_cli.hosting.sync import HostingImportError, import_hosting
from realm_cli.utils.client import AuthClient, RealmError, RequestExecutor
from realm_cli.utils.logging import configure_logging, new_correlation_id
from realm_cli.utils.ui import ConsoleUI

if TYPE_CHECKING:
    from realm_cli.config import CLISettings
    from realm_cli.hosting.models import AssetMetadata, AssetMetadataDiffs

logger = structlog.get_logger(__name__)

STRATEGY_MERGE = "merge"
STRATEGY_REPLACE = "replace"

# Errors a user can cause or fix; anything else is a bug and keeps its traceback.
EXPECTED_ERRORS = (
    RealmError,
    NotLoggedInError,
    InvalidCredentialsError,
    HostingImportError,
    HostingExportError,
    LocalAssetError,
    ValidationError,
    httpx.HTTPError,
    OSError,
)

CommandFunc = Callable[[argparse.Namespace, "CLISettings", ConsoleUI], Awaitable[int]]


# =============================================================================
# SESSION HELPERS
# =============================================================================


@asynccontextmanager
async def realm_session(settings: CLISettings) -> AsyncIterator[RealmClient]:
    """
    Open an authenticated RealmClient for the stored profile.

    Refreshed tokens are written back to the profile file as soon as they
    are obtained.

    Raises:
        NotLoggedInError: If the profile has no access token
    """
    store = ProfileStore(settings.config_path)
    profile = store.read()
    profile.require_login()

    async with RequestExecutor(settings.base_url, timeout=settings.timeout) as executor:
        yield RealmClient(AuthClient(executor, profile, on_refresh=store.write))


async def resolve_app_id(client: RealmClient, args: argparse.Namespace) -> str:
    """Use --app-id as is, or look up --client-app-id in the group."""
    if args.app_id:
        return args.app_id
    app = await client.find_app(args.group_id, args.client_app_id)
    logger.debug("Resolved client app ID", client_app_id=args.client_app_id, app_id=app.id)
    return app.id


# =============================================================================
# AUTH COMMANDS
# =============================================================================


async def cmd_login(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    if args.api_key:
        provider: APIKeyProvider | UsernamePasswordProvider = APIKeyProvider(
            username=args.username, api_key=args.api_key
        )
    else:
        provider = UsernamePasswordProvider(username=args.username, password=args.password or "")
    provider.validate()

    async with RequestExecutor(settings.base_url, timeout=settings.timeout) as executor:
        auth = await authenticate(executor, provider)

    store = ProfileStore(settings.config_path)
    profile = store.read()
    profile.username = args.username
    if isinstance(provider, APIKeyProvider):
        profile.public_api_key = args.username
        profile.private_api_key = SecretStr(provider.api_key)
    profile.access_token = auth.access_token
    profile.refresh_token = auth.refresh_token or ""
    store.write(profile)

    ui.info(f"Successfully logged in as {args.username}")
    return 0


async def cmd_logout(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    ProfileStore(settings.config_path).clear()
    ui.info("Successfully logged out")
    return 0


async def cmd_whoami(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    profile = ProfileStore(settings.config_path).read()
    if not profile.logged_in:
        ui.info("No user is currently logged in")
        return 0
    if profile.private_api_key.get_secret_value():
        ui.info(
            f"The user, {profile.username}, is currently logged in using "
            f"API key {profile.redacted_api_key()}"
        )
    else:
        ui.info(f"The user, {profile.username}, is currently logged in")
    return 0


# =============================================================================
# SECRETS COMMANDS
# =============================================================================


async def cmd_secrets_list(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        secrets = await client.list_secrets(args.group_id, app_id)
    if not secrets:
        ui.info("No available secrets to show")
        return 0
    for secret in secrets:
        ui.info(f"{secret.id}\t{secret.name}")
    return 0


async def cmd_secrets_add(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        await client.add_secret(args.group_id, app_id, args.name, args.value)
    ui.info(f"Successfully created secret: {args.name}")
    return 0


async def cmd_secrets_update(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        if args.secret_id:
            await client.update_secret_by_id(args.group_id, app_id, args.secret_id, args.value)
        else:
            await client.update_secret_by_name(args.group_id, app_id, args.name, args.value)
    ui.info(f"Successfully updated secret: {args.secret_id or args.name}")
    return 0


async def cmd_secrets_remove(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        if args.secret_id:
            await client.remove_secret_by_id(args.group_id, app_id, args.secret_id)
        else:
            await client.remove_secret_by_name(args.group_id, app_id, args.name)
    ui.info(f"Successfully removed secret: {args.secret_id or args.name}")
    return 0


# =============================================================================
# HOSTING COMMANDS
# =============================================================================


def list_local_assets(app_id: str, app_dir: Path, cache: AssetCache) -> list[AssetMetadata]:
    """Describe the files under app_dir/hosting/files using metadata.json."""
    metadata_file = app_dir / HOSTING_METADATA_FILE
    descriptions = load_asset_descriptions(metadata_file) if metadata_file.exists() else {}
    return list_local_asset_metadata(app_id, app_dir / HOSTING_FILES_DIRECTORY, descriptions, cache)


async def cmd_hosting_list(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        assets = await client.list_assets(args.group_id, app_id)
    for asset in assets:
        ui.info(asset.file_path)
    return 0


async def _hosting_diffs(
    client: RealmClient,
    args: argparse.Namespace,
    settings: CLISettings,
    app_id: str,
) -> AssetMetadataDiffs:
    cache = AssetCache.load(settings.asset_cache_path)
    local = await asyncio.to_thread(list_local_assets, app_id, Path(args.app_dir), cache)
    if cache.dirty:
        cache.save(settings.asset_cache_path)
    remote = await client.list_assets(args.group_id, app_id)
    merge = getattr(args, "strategy", STRATEGY_REPLACE) == STRATEGY_MERGE
    return diff_asset_metadata(local, remote, merge=merge)


async def cmd_hosting_diff(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        diffs = await _hosting_diffs(client, args, settings, app_id)
    if diffs.is_empty:
        ui.info("Deployed app is identical to proposed version")
        return 0
    for line in diffs.diff():
        ui.info(line)
    return 0


async def cmd_hosting_import(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    workers = args.workers or settings.num_workers
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        diffs = await _hosting_diffs(client, args, settings, app_id)

        if diffs.is_empty and not args.reset_cache:
            ui.info("Deployed app is identical to proposed version")
            return 0

        for line in diffs.diff():
            ui.info(line)
        if not diffs.is_empty and not ui.confirm("Please confirm the changes shown above"):
            ui.info("Import cancelled")
            return 0

        try:
            await import_hosting(
                args.group_id,
                app_id,
                Path(args.app_dir) / HOSTING_FILES_DIRECTORY,
                diffs,
                args.reset_cache,
                client,
                ui,
                num_workers=workers,
            )
        except HostingImportError as e:
            ui.error(f"{e.count} error(s) occurred while importing hosting assets")
            return 1

    ui.info("Successfully imported hosting assets")
    return 0


async def cmd_hosting_export(args: argparse.Namespace, settings: CLISettings, ui: ConsoleUI) -> int:
    async with realm_session(settings) as client:
        app_id = await resolve_app_id(client, args)
        assets = await export_hosting(
            client,
            args.group_id,
            app_id,
            Path(args.app_dir),
            num_workers=args.workers or settings.num_workers,
            ui=ui,
        )
    ui.info(f"Successfully exported {len(assets)} hosting asset(s) to {args.app_dir}")
    return 0


# =============================================================================
# PARSER
# =============================================================================


def _add_app_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--group-id", required=True, help="Project (group) ID")
    app = parser.add_mutually_exclusive_group(required=True)
    app.add_argument("--app-id", help="Internal app ID")
    app.add_argument("--client-app-id", help="Client app ID, e.g. todo-abcde")


def _add_secret_selector(parser: argparse.ArgumentParser) -> None:
    selector = parser.add_mutually_exclusive_group(required=True)
    selector.add_argument("--id", dest="secret_id", help="Secret ID")
    selector.add_argument("--name", help="Secret name")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="realm-cli", description="MongoDB Realm command line tool")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--base-url", help="Admin API base URL (env: REALM_CLI_BASE_URL)")
    p.add_argument("--config-path", help="Profile file (env: REALM_CLI_CONFIG_PATH)")
    p.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    p.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines")

    sub = p.add_subparsers(dest="cmd", required=True)

    login = sub.add_parser("login", help="Log in and store the session")
    login.add_argument("--username", required=True, help="Public API key or email")
    secret = login.add_mutually_exclusive_group(required=True)
    secret.add_argument("--api-key", help="Private API key")
    secret.add_argument("--password", help="Password")
    login.set_defaults(func=cmd_login)

    sub.add_parser("logout", help="Forget the stored session").set_defaults(func=cmd_logout)
    sub.add_parser("whoami", help="Show the logged in user").set_defaults(func=cmd_whoami)

    secrets = sub.add_parser("secrets", help="App secret operations")
    secrets_sub = secrets.add_subparsers(dest="secrets_cmd", required=True)

    s_list = secrets_sub.add_parser("list", help="List secrets")
    _add_app_arguments(s_list)
    s_list.set_defaults(func=cmd_secrets_list)

    s_add = secrets_sub.add_parser("add", help="Create a secret")
    _add_app_arguments(s_add)
    s_add.add_argument("--name", required=True)
    s_add.add_argument("--value", required=True)
    s_add.set_defaults(func=cmd_secrets_add)

    s_update = secrets_sub.add_parser("update", help="Change a secret's value")
    _add_app_arguments(s_update)
    _add_secret_selector(s_update)
    s_update.add_argument("--value", required=True)
    s_update.set_defaults(func=cmd_secrets_update)

    s_remove = secrets_sub.add_parser("remove", help="Delete a secret")
    _add_app_arguments(s_remove)
    _add_secret_selector(s_remove)
    s_remove.set_defaults(func=cmd_secrets_remove)

    hosting = sub.add_parser("hosting", help="Static hosting operations")
    hosting_sub = hosting.add_subparsers(dest="hosting_cmd", required=True)

    h_list = hosting_sub.add_parser("list", help="List remote hosting assets")
    _add_app_arguments(h_list)
    h_list.set_defaults(func=cmd_hosting_list)

    for name, func, help_text in (
        ("diff", cmd_hosting_diff, "Show changes an import would make"),
        ("import", cmd_hosting_import, "Push local hosting files to the app"),
    ):
        cmd = hosting_sub.add_parser(name, help=help_text)
        _add_app_arguments(cmd)
        cmd.add_argument("--app-dir", default=".", help="Local app directory (default: .)")
        cmd.add_argument(
            "--strategy",
            choices=[STRATEGY_MERGE, STRATEGY_REPLACE],
            default=STRATEGY_REPLACE,
            help="merge keeps remote-only assets; replace deletes them",
        )
        cmd.set_defaults(func=func)
        if name == "import":
            cmd.add_argument("--reset-cache", action="store_true", help="Invalidate the CDN cache")
            cmd.add_argument("--workers", type=int, help="Concurrent asset workers")
            cmd.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    h_export = hosting_sub.add_parser("export", help="Download hosting assets into the app directory")
    _add_app_arguments(h_export)
    h_export.add_argument("--app-dir", default=".", help="Local app directory (default: .)")
    h_export.add_argument("--workers", type=int, help="Concurrent download workers")
    h_export.set_defaults(func=cmd_hosting_export)

    return p


# =============================================================================
# ENTRY POINT
# =============================================================================


def main(argv: list[str] | None = None) -> int:
    """Run realm-cli; returns the process exit code."""
    args = build_parser().parse_args(argv)
    ui = ConsoleUI(assume_yes=getattr(args, "yes", False))

    try:
        settings = load_settings(
            base_url=args.base_url,
            config_path=args.config_path,
            log_level=args.log_level.upper() if args.log_level else None,
            json_logs=args.json_logs,
        )
    except ValidationError as e:
        ui.error(f"invalid configuration: {e}")
        return 1

    configure_logging(level=settings.log_level, json_output=settings.json_logs)
    new_correlation_id()
    logger.debug("Running command", command=args.cmd)

    func: CommandFunc = args.func
    try:
        return asyncio.run(func(args, settings, ui))
    except KeyboardInterrupt:
        ui.error("interrupted")
        return 130
    except EXPECTED_ERRORS as e:
        logger.debug("Command failed", command=args.cmd, error=str(e))
        ui.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
