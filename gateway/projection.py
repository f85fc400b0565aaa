"""Resource projector: backend file record -> JSON:API resource object."""

from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

RESOURCE_TYPE = "file"

# fields that identify the resource and are lifted out of `attributes`
IDENTITY_FIELDS = frozenset({"uploadId", "id"})

# raw storage addressing and owner-only diagnostics
INTERNAL_FIELDS = frozenset({"location", "bucket", "error", "errorDetails", "resumableUri"})
INTERNAL_BLOB_FIELDS = frozenset({"location", "bucket", "resumableUri"})


def _path(value: str) -> str:
    return quote(str(value), safe="")


class ResourceProjector:
    """
    Maps file records to the externally visible representation.

    Holds only the base URLs used for links; `transform` has no side
    effects and returns the same document for the same inputs no matter
    which endpoint calls it.
    """

    def __init__(self, files_base_url: str, users_base_url: str):
        self.files_base_url = files_base_url.rstrip("/")
        self.users_base_url = users_base_url.rstrip("/")

    def visible_owner(self, record: Mapping[str, Any], redact_private: bool) -> Optional[str]:
        """
        Owner name the caller may see: the public alias for redacted views,
        the account owner otherwise.
        """
        if redact_private:
            return record.get("alias") or record.get("owner") or None
        return record.get("owner") or record.get("alias") or None

    def transform(
        self,
        record: Mapping[str, Any],
        include_links: bool = True,
        redact_private: bool = True,
    ) -> Dict[str, Any]:
        """
        Project one record.

        Args:
            record: File record as returned by the backend
            include_links: Whether to attach `links`
            redact_private: Omit internal-only fields (non-owner viewer)

        Returns:
            {"type", "id", "attributes", "links"}
        """
        resource_id = record.get("uploadId") or record.get("id")
        owner = self.visible_owner(record, redact_private)

        attributes: Dict[str, Any] = {}
        for key, value in record.items():
            if key in IDENTITY_FIELDS:
                continue
            if redact_private and key in INTERNAL_FIELDS:
                continue
            if key == "files" and isinstance(value, list):
                value = [self._project_blob(blob, redact_private) for blob in value]
            attributes[key] = value

        if owner is not None:
            attributes["owner"] = owner
        else:
            attributes.pop("owner", None)
        if redact_private:
            attributes.pop("alias", None)

        resource: Dict[str, Any] = {
            "type": RESOURCE_TYPE,
            "id": resource_id,
            "attributes": attributes,
        }

        if include_links:
            links = self.links(resource_id, owner)
            if links:
                resource["links"] = links

        return resource

    def links(self, resource_id: Optional[str], owner: Optional[str]) -> Dict[str, str]:
        """Self and owner links; a record without an identifier has no self link."""
        links: Dict[str, str] = {}
        if resource_id is not None:
            if owner:
                links["self"] = f"{self.files_base_url}/info/{_path(owner)}/{_path(resource_id)}"
            else:
                links["self"] = f"{self.files_base_url}/download/{_path(resource_id)}"
        if owner:
            links["owner"] = f"{self.users_base_url}/{_path(owner)}"
        return links

    @staticmethod
    def _project_blob(blob: Any, redact_private: bool) -> Any:
        if not redact_private or not isinstance(blob, Mapping):
            return blob
        return {key: value for key, value in blob.items() if key not in INTERNAL_BLOB_FIELDS}
