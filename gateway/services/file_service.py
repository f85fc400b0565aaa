"""File service: coordinates file operations against the backend catalog."""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from gateway.config import GatewaySettings
from gateway.exceptions import NotFoundError, PaymentRequiredError
from gateway.identity import Identity, User
from gateway.pagination import Page, build_page_links
from gateway.projection import ResourceProjector
from gateway.query import compact, normalize_list_query, parse_flag
from gateway.services.backend import BackendService
from gateway.services.quota_service import QuotaService, has_quota
from gateway import validator
from gateway.visibility import ensure_visible, is_private_view, is_public, resolve_list_visibility

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "could not find associated data"


def split_record(reply: Mapping[str, Any]) -> Tuple[Mapping[str, Any], Optional[str]]:
    """
    `info` replies either with the record itself or with {username, file}.

    Returns:
        (record, owner)
    """
    if isinstance(reply, Mapping) and isinstance(reply.get("file"), Mapping):
        record = reply["file"]
        return record, reply.get("username") or record.get("owner")
    if not isinstance(reply, Mapping):
        raise NotFoundError("file not found")
    return reply, reply.get("owner")


def is_privileged_viewer(identity: Identity, owner: Optional[str]) -> bool:
    """Owners and administrators see internal-only fields."""
    if isinstance(identity, User) and identity.is_admin:
        return True
    return is_private_view(identity, owner)


@dataclass(frozen=True)
class DownloadOutcome:
    """Either a redirect to a signed URL or a download document."""
    redirect_url: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    document: Optional[Dict[str, Any]] = None


class FileService(BackendService):
    """
    Endpoint coordination for the file catalog.

    Each method runs normalization/visibility, validates the body, calls the
    backend through the route registry and projects the reply.
    """

    def __init__(self, *args, settings: GatewaySettings, projector: ResourceProjector, **kwargs):
        super().__init__(*args, **kwargs)
        self.settings = settings
        self.projector = projector

    def _meta(self, **values: Any) -> Dict[str, Any]:
        meta = {"id": self.request_id} if self.request_id else {}
        meta.update(values)
        return meta

    async def list_files(self, identity: Identity, params: Mapping[str, str]) -> Dict[str, Any]:
        """
        List files visible to the caller.

        Returns:
            {"meta", "data", "links"} list document
        """
        visibility = resolve_list_visibility(
            identity,
            owner=params.get("owner"),
            pub=parse_flag(params.get("pub"), "pub"),
        )
        query = normalize_list_query(params, visibility)
        logger.debug(f"List visibility rule={visibility.rule.value} [request_id={self.request_id}]")

        reply = (await self.call("list", query.to_message())).unwrap()

        page = Page.from_reply(reply)
        links = build_page_links(self.settings.files_base_url, query, page)
        meta = self._meta(**{key: reply[key] for key in ("page", "pages", "cursor") if key in reply})

        data = [
            self.projector.transform(
                record,
                include_links=True,
                redact_private=not is_privileged_viewer(identity, record.get("owner")),
            )
            for record in reply.get("files") or []
        ]

        return {"meta": meta, "data": data, "links": links.to_dict()}

    async def get_info(self, identity: Identity, alias: str, filename: str) -> Dict[str, Any]:
        """
        Single file lookup; private files of other owners look missing.
        """
        reply = (await self.call("info", {"filename": filename, "username": alias})).unwrap()
        record, owner = split_record(reply)

        ensure_visible(identity, record, owner)
        redact = not is_privileged_viewer(identity, owner)
        return {"meta": self._meta(), "data": self.projector.transform(record, True, redact)}

    async def get_public(self, alias: str, filename: str) -> Dict[str, Any]:
        """
        Public lookup by alias; always redacted.
        """
        result = await self.call("get", {"filename": filename, "alias": alias})
        if result.remote_code() in (403, "403"):
            raise NotFoundError(NOT_FOUND_MESSAGE)

        record, _ = split_record(result.unwrap())
        if not is_public(record):
            raise NotFoundError(NOT_FOUND_MESSAGE)

        return {"meta": self._meta(), "data": self.projector.transform(record, True, True)}

    async def download(self, identity: Identity, filename: str, redirect: bool = False) -> DownloadOutcome:
        """
        Authorize a download.

        A plain string reply is a signed URL and always redirects; with
        `redirect` a reply carrying a single `url` redirects as well.
        """
        message = {"uploadId": filename}
        if isinstance(identity, User):
            message["username"] = identity.id

        reply = (await self.call("download", message)).unwrap()

        if isinstance(reply, str):
            return DownloadOutcome(redirect_url=reply)

        data = dict(reply or {})
        upload_id = data.pop("uploadId", filename)

        if redirect and isinstance(data.get("url"), str):
            headers = compact({
                "X-Content-Preview-Size": str(data["previewSize"]) if data.get("previewSize") else None,
                "X-Content-Model-Size": str(data["modelSize"]) if data.get("modelSize") else None,
            })
            return DownloadOutcome(redirect_url=data["url"], headers=headers)

        return DownloadOutcome(document={
            "meta": self._meta(),
            "data": {"type": "download", "id": upload_id, "attributes": data},
        })

    async def player_meta(self, identity: Identity, filename: str) -> Dict[str, Any]:
        """
        Player metadata built from the download reply of `<id>.json`.
        """
        if posixpath.splitext(filename)[1] != ".json":
            raise NotFoundError("file not found")

        message = {"uploadId": posixpath.basename(filename)[:-len(".json")]}
        if isinstance(identity, User):
            message["username"] = identity.id

        data = (await self.call("download", message)).unwrap()
        if not isinstance(data, Mapping):
            raise NotFoundError("file not found")

        files: List[Mapping[str, Any]] = data.get("files") or []
        urls: List[str] = data.get("urls") or []
        player: Dict[str, Any] = {"name": data.get("name"), "owner": data.get("username"), "materials": []}

        for idx, blob in enumerate(files):
            url = urls[idx] if idx < len(urls) else None
            if blob.get("type") == "c-texture":
                player["materials"].append({"texture": url})
            elif blob.get("type") == "c-bin":
                player["file"] = url
                player["size"] = blob.get("decompressedLength") or blob.get("contentLength")

        return player

    async def initiate_upload(self, user: User, body: Any, origin: Optional[str]) -> Dict[str, Any]:
        """
        Start a resumable upload, charging one unit of the caller's quota.

        The quota is refunded when the quota check or the backend answers 402.
        """
        request = validator.validate("upload", body)

        if not has_quota(user):
            raise PaymentRequiredError("no more models are available")

        attributes = request.data.attributes.model_dump(exclude_none=True)
        message = compact({**attributes, "username": user.id, "origin": origin})

        quota = QuotaService(
            self.rpc_client,
            self.registry,
            request_id=self.request_id,
            audience=self.settings.users_audience,
        )
        await quota.take(user.id)

        result = await self.call("upload", message)
        if result.remote_code() in (402, "402"):
            await quota.refund(user.id)
        reply = result.unwrap()

        upload: Dict[str, Any] = {"type": "upload", "id": reply.get("uploadId")}
        if reply.get("location"):
            upload["links"] = {"self": reply["location"]}
        if reply.get("files"):
            upload["attributes"] = {"files": reply["files"]}

        logger.info(f"Upload {upload['id']} initiated by {user.id} [request_id={self.request_id}]")
        return {"meta": self._meta(), "data": upload}

    async def finish_upload(self, user: User, body: Any) -> str:
        """
        Mark an upload complete.

        Returns:
            URL of the file resource for the Location header
        """
        request = validator.validate("finish", body)
        upload_id = request.data.id

        reply = (await self.call("finish", {"id": upload_id, "username": user.id})).unwrap()

        owner = None
        if isinstance(reply, Mapping):
            upload_id = reply.get("uploadId") or upload_id
            owner = reply.get("alias") or reply.get("username")
        return self.projector.links(upload_id, owner)["self"]

    async def set_access(self, user: User, body: Any) -> None:
        request = validator.validate("access", body)
        message = {
            "filename": request.data.id,
            "setPublic": request.data.attributes.public,
            "username": user.id,
        }
        (await self.call("access", message)).unwrap()

    async def update(self, user: User, body: Any) -> None:
        request = validator.validate("update", body)
        message = {
            "uploadId": request.data.id,
            "meta": request.data.attributes.meta.model_dump(exclude_none=True),
            "username": user.id,
        }
        (await self.call("update", message)).unwrap()

    async def remove(self, user: User, filename: str) -> None:
        """Administrators may remove any file, others only their own."""
        message = {"filename": filename}
        if not user.is_admin:
            message["username"] = user.id
        (await self.call("remove", message)).unwrap()
        logger.info(f"File {filename} removed by {user.id} [request_id={self.request_id}]")

    async def process(self, user: User, body: Any) -> None:
        request = validator.validate("process", body)
        export = request.data.attributes.export
        message = compact({
            "uploadId": request.data.id,
            "username": user.id,
            "export": export.model_dump() if export is not None else None,
        })
        (await self.call("process", message)).unwrap()
