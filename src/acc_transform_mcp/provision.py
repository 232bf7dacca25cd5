"""Register the Revit transform plugin with Design Automation.

Every run creates a new AppBundle version from the given ZIP, points the
alias at it, then creates (or versions) the Activity that references the
aliased bundle and points the Activity alias at that version.

Usage:
    ACC_TRANSFORM_APS_CLIENT_ID=... ACC_TRANSFORM_APS_CLIENT_SECRET=... \\
        acc-transform-provision --bundle RevitTransformPlugin.zip
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .config import get_config, ServerConfig
from .exceptions import AccTransformError, RemoteRequestFailedError
from .logging import setup_logging, get_logger, LogContext
from .services.auth_client import AuthClient
from .services.design_automation import DesignAutomationClient, activity_definition


# Scope needed to manage app bundles and activities
PROVISION_SCOPES = "code:all"

logger = get_logger(__name__)


def _version_of(resource: dict, operation: str) -> int:
    version = resource.get("version")
    if version is None:
        raise RemoteRequestFailedError(operation, reason="no version in response")
    return version


async def provision(config: ServerConfig, bundle_path: Path) -> dict:
    """Create the bundle and activity versions and move both aliases.

    Returns:
        Dict with the qualified ids and the versions the aliases now point at

    Raises:
        AccTransformError: Any API call failed
        OSError: The bundle cannot be read
    """
    bundle = bundle_path.read_bytes()

    async with AuthClient(config) as auth, DesignAutomationClient(config) as da:
        token = (await auth.client_credentials(PROVISION_SCOPES)).access_token
        owner = await da.resolve_owner(token)
        logger.info("Provisioning", owner=owner, engine=config.da_engine, alias=config.da_alias)

        created = await da.create_appbundle(token, config.appbundle_name, config.da_engine)
        await da.upload_appbundle(created.get("uploadParameters") or {}, bundle)
        bundle_version = _version_of(created, "Create app bundle")
        await da.assign_alias(token, "appbundles", config.appbundle_name, config.da_alias, bundle_version)

        appbundle_id = f"{owner}.{config.appbundle_name}+{config.da_alias}"
        definition = activity_definition(
            config.activity_name, config.da_engine, appbundle_id, config.appbundle_name
        )
        activity = await da.create_activity(token, definition)
        activity_version = _version_of(activity, "Create activity")
        await da.assign_alias(token, "activities", config.activity_name, config.da_alias, activity_version)

    return {
        "appbundle_id": appbundle_id,
        "appbundle_version": bundle_version,
        "activity_id": f"{owner}.{config.activity_name}+{config.da_alias}",
        "activity_version": activity_version,
    }


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Register the Revit transform plugin with Design Automation"
    )
    parser.add_argument(
        "--bundle",
        type=Path,
        default=Path("RevitTransformPlugin.zip"),
        help="Path to the plugin ZIP (default: ./RevitTransformPlugin.zip)"
    )
    parser.add_argument("--engine", type=str, help="Revit engine (overrides config)")
    parser.add_argument("--alias", type=str, help="Alias for bundle and activity (overrides config)")
    args = parser.parse_args(argv)

    setup_logging()
    config = get_config()
    if args.engine:
        config.da_engine = args.engine
    if args.alias:
        config.da_alias = args.alias

    if not config.aps_client_id or not config.aps_client_secret:
        print(
            "Set ACC_TRANSFORM_APS_CLIENT_ID and ACC_TRANSFORM_APS_CLIENT_SECRET",
            file=sys.stderr,
        )
        sys.exit(1)
    if not args.bundle.is_file():
        print(f"Bundle not found: {args.bundle}", file=sys.stderr)
        sys.exit(1)

    with LogContext():
        try:
            result = asyncio.run(provision(config, args.bundle))
        except AccTransformError as e:
            logger.error("Provisioning failed", error_type=e.error_type, error=e.message)
            print(f"Provisioning failed: {e.message}\n{e.suggestion}", file=sys.stderr)
            sys.exit(1)
        except OSError as e:
            logger.error("Provisioning failed", error=str(e))
            print(f"Provisioning failed: {e}", file=sys.stderr)
            sys.exit(1)

    print(f"AppBundle {result['appbundle_id']} -> version {result['appbundle_version']}")
    print(f"Activity  {result['activity_id']} -> version {result['activity_version']}")
    sys.exit(0)


if __name__ == "__main__":
    main()
