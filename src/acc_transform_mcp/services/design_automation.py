"""Design Automation v3 client.

Runs the Revit transform activity: prepares the temporary output slot,
uploads the transform manifest, submits the work item and reads back its
status, report and debug archive. Also carries the provisioning calls used
by ``acc-transform-provision``.
"""

import json
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..api_schema import get_endpoint
from ..exceptions import NotFoundError, RemoteRequestFailedError
from ..logging import get_logger
from ..models import OutputSlot, TransformManifest, WorkItemStatus
from .oss_client import OssClient


logger = get_logger(__name__)

OUTPUT_OBJECT_KEY = "output.rvt"


def activity_definition(activity_name: str, engine: str, appbundle_id: str, appbundle_name: str) -> Dict[str, Any]:
    """Activity body for the Revit transform plugin.

    The plugin reads ``transforms.json`` next to the input model and writes
    ``output.rvt``.
    """
    return {
        "id": activity_name,
        "engine": engine,
        "commandLine": [
            f'$(engine.path)\\\\revitcoreconsole.exe /i "$(args[inputFile].path)" '
            f'/al "$(appbundles[{appbundle_name}].path)"'
        ],
        "appbundles": [appbundle_id],
        "parameters": {
            "inputFile": {
                "verb": "get",
                "description": "Input Revit file",
                "localName": "input.rvt",
                "required": True,
            },
            "transforms": {
                "verb": "get",
                "description": "Transform data JSON",
                "localName": "transforms.json",
                "required": True,
            },
            "outputFile": {
                "verb": "put",
                "description": "Output Revit file",
                "localName": OUTPUT_OBJECT_KEY,
                "required": True,
            },
        },
        "description": "Applies element translations to a Revit model",
    }


class DesignAutomationClient(OssClient):
    """Client for work items and their OSS plumbing.

    Every call takes a two-legged app token. Report and archive URLs are
    pre-signed and fetched without it.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._owner: Optional[str] = None

    def _da_url(self, endpoint: str, **params: str) -> str:
        return f"{self.config.da_base_url}{get_endpoint(endpoint, **params)}"

    async def resolve_owner(self, token: str) -> str:
        """Owner prefix of qualified ids.

        The configured nickname wins; otherwise the app's nickname is read
        once from ``forgeapps/me``.
        """
        if self.config.da_nickname:
            return self.config.da_nickname
        if self._owner is None:
            self._owner = await self.get_nickname(token)
            logger.info("Design Automation owner resolved", owner=self._owner)
        return self._owner

    async def resolve_activity_id(self, token: str) -> str:
        """Fully qualified id of the transform activity under its alias."""
        owner = await self.resolve_owner(token)
        return f"{owner}.{self.config.activity_name}+{self.config.da_alias}"

    # --- Job ---

    async def prepare_output(self, token: str) -> OutputSlot:
        """Create a transient bucket and a read-write signed URL for the result."""
        bucket_key = f"revit_temp_{int(time.time() * 1000)}"
        await self.create_bucket(token, bucket_key, policy="transient")
        signed_url = await self.create_signed_url(
            token,
            bucket_key,
            OUTPUT_OBJECT_KEY,
            access="readwrite",
            minutes=self.config.output_url_expiration,
        )
        return OutputSlot(bucket_key=bucket_key, object_key=OUTPUT_OBJECT_KEY, signed_url=signed_url)

    async def upload_manifest(self, token: str, bucket_key: str, manifest: TransformManifest) -> str:
        """Upload ``transforms.json`` and return a signed read URL for it."""
        object_key = f"transforms_{int(time.time() * 1000)}.json"
        body = json.dumps(manifest.to_payload()).encode("utf-8")
        await self.upload_object(token, bucket_key, object_key, body, content_type="application/json")
        return await self.create_signed_url(
            token,
            bucket_key,
            object_key,
            access="read",
            minutes=self.config.output_url_expiration,
        )

    async def submit(
        self,
        token: str,
        activity_id: str,
        input_url: str,
        manifest_url: str,
        output_url: str,
    ) -> str:
        """Create the work item and return its id.

        Not retried: a repeated POST would start a second job.
        """
        operation = "Create work item"
        payload = {
            "activityId": activity_id,
            "arguments": {
                "inputFile": {"url": input_url, "verb": "get"},
                "transforms": {"url": manifest_url, "verb": "get", "localName": "transforms.json"},
                "outputFile": {
                    "url": output_url,
                    "verb": "put",
                    "localName": OUTPUT_OBJECT_KEY,
                    "headers": {"Content-Type": "application/octet-stream"},
                },
            },
        }
        response = await self._request(
            "POST",
            self._da_url("workitems"),
            operation=operation,
            token=token,
            json=payload,
            retry=False,
        )
        job_id = self._json(response, operation).get("id")
        if not job_id:
            raise RemoteRequestFailedError(operation, response.status_code, response.text,
                                           reason="no work item id in response")
        logger.info("Work item created", job_id=job_id, activity_id=activity_id)
        return job_id

    async def get_status(self, token: str, job_id: str) -> WorkItemStatus:
        """Read the current status of a work item."""
        operation = "Get work item status"
        response = await self._request(
            "GET",
            self._da_url("workitem", workitem_id=quote(job_id, safe="")),
            operation=operation,
            token=token,
        )
        try:
            return WorkItemStatus.model_validate(self._json(response, operation))
        except ValidationError as e:
            raise RemoteRequestFailedError(
                operation,
                response.status_code,
                response.text,
                reason=f"unexpected status body ({e.error_count()} invalid field(s))",
            )

    async def fetch_report(self, url: str) -> str:
        """Download the work item report as text."""
        content = await self.fetch_signed(url, "Fetch report")
        return content.decode("utf-8", errors="replace")

    async def fetch_archive(self, url: str) -> bytes:
        """Download the debug archive."""
        return await self.fetch_signed(url, "Fetch debug archive")

    # --- Provisioning ---

    async def get_nickname(self, token: str) -> str:
        """Owner nickname of the app (defaults to the client id)."""
        operation = "Get nickname"
        response = await self._request("GET", self._da_url("nickname"), operation=operation, token=token)
        try:
            nickname = response.json()
        except ValueError:
            nickname = response.text.strip().strip('"')
        return str(nickname)

    async def get_activity(self, token: str, activity_id: str) -> Optional[Dict[str, Any]]:
        """Get an activity by qualified id, or None when it does not exist."""
        operation = "Get activity"
        try:
            response = await self._request(
                "GET",
                self._da_url("activity", activity_id=quote(activity_id, safe="")),
                operation=operation,
                token=token,
            )
        except NotFoundError:
            return None
        return self._json(response, operation)

    async def _create_or_version(
        self,
        token: str,
        collection: str,
        versions: str,
        body: Dict[str, Any],
        operation: str,
    ) -> Dict[str, Any]:
        """POST a new resource, or a new version of it if it already exists."""
        response = await self._request(
            "POST",
            self._da_url(collection),
            operation=operation,
            token=token,
            json=body,
            retry=False,
            accept_status=(409,),
        )
        if response.status_code == 409:
            logger.info("Already exists, creating a new version", kind=collection, name=body["id"])
            version_body = {k: v for k, v in body.items() if k != "id"}
            response = await self._request(
                "POST",
                self._da_url(versions, name=quote(body["id"], safe="")),
                operation=f"{operation} version",
                token=token,
                json=version_body,
                retry=False,
            )
        result = self._json(response, operation)
        logger.info("Created", kind=collection, name=body["id"], version=result.get("version"))
        return result

    async def create_appbundle(
        self,
        token: str,
        name: str,
        engine: str,
        description: str = "Revit plugin for transforming element positions",
    ) -> Dict[str, Any]:
        """Create an app bundle (or a new version). The result carries ``uploadParameters``."""
        return await self._create_or_version(
            token,
            "appbundles",
            "appbundle_versions",
            {"id": name, "engine": engine, "description": description},
            "Create app bundle",
        )

    async def upload_appbundle(self, upload_parameters: Dict[str, Any], data: bytes) -> None:
        """POST the bundle ZIP to the pre-signed form returned at creation."""
        endpoint = upload_parameters.get("endpointURL")
        if not endpoint:
            raise RemoteRequestFailedError("Upload app bundle", reason="no endpointURL in uploadParameters")
        await self._request(
            "POST",
            endpoint,
            operation="Upload app bundle",
            data=upload_parameters.get("formData") or {},
            files={"file": ("bundle.zip", data, "application/octet-stream")},
            timeout=self.config.transfer_timeout,
            retry=False,
        )
        logger.info("App bundle uploaded", size=len(data))

    async def create_activity(self, token: str, definition: Dict[str, Any]) -> Dict[str, Any]:
        """Create an activity (or a new version)."""
        return await self._create_or_version(
            token, "activities", "activity_versions", definition, "Create activity"
        )

    async def assign_alias(self, token: str, kind: str, name: str, alias: str, version: int) -> Dict[str, Any]:
        """Point ``alias`` at ``version``, creating the alias if needed.

        Args:
            kind: ``appbundles`` or ``activities``
        """
        operation = f"Assign {kind} alias"
        response = await self._request(
            "POST",
            self._da_url("aliases", kind=kind, name=quote(name, safe="")),
            operation=operation,
            token=token,
            json={"id": alias, "version": version},
            retry=False,
            accept_status=(409,),
        )
        if response.status_code == 409:
            response = await self._request(
                "PATCH",
                self._da_url("alias", kind=kind, name=quote(name, safe=""), alias=quote(alias, safe="")),
                operation=operation,
                token=token,
                json={"version": version},
                retry=False,
            )
        logger.info("Alias assigned", kind=kind, name=name, alias=alias, version=version)
        return self._json(response, operation)
