from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


RATING_TYPE = "product_rating"
RATINGS_NAMESPACE = "custom"
RATINGS_KEY = "ratings"


class ObjectStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DRAFT = "DRAFT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> "ObjectStatus":
        if value == cls.ACTIVE.value:
            return cls.ACTIVE
        if value == cls.DRAFT.value:
            return cls.DRAFT
        return cls.UNKNOWN

    @property
    def needs_publishing(self) -> bool:
        # anything not confirmed ACTIVE is treated as a draft
        return self is not ObjectStatus.ACTIVE


class MetaobjectField(BaseModel):
    key: str
    value: Optional[str] = None


class RemoteObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    handle: Optional[str] = None
    type: Optional[str] = None
    fields: List[MetaobjectField] = []
    status: ObjectStatus = ObjectStatus.UNKNOWN

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "RemoteObject":
        # flattens capabilities.publishable.status into a tagged status
        capabilities = node.get("capabilities") or {}
        publishable = capabilities.get("publishable") or {}
        return cls(
            id=node["id"],
            handle=node.get("handle"),
            type=node.get("type"),
            fields=node.get("fields") or [],
            status=ObjectStatus.parse(publishable.get("status")),
        )

    def field_map(self) -> Dict[str, Optional[str]]:
        return {field.key: field.value for field in self.fields}


class PageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_next_page: bool = Field(False, alias="hasNextPage")
    has_previous_page: bool = Field(False, alias="hasPreviousPage")
    start_cursor: Optional[str] = Field(None, alias="startCursor")
    end_cursor: Optional[str] = Field(None, alias="endCursor")


class RemotePage(BaseModel):
    items: List[RemoteObject]
    page_info: PageInfo


class StagedUploadParameter(BaseModel):
    name: str
    value: str


class StagedUploadTarget(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    resource_url: str = Field(..., alias="resourceUrl")
    parameters: List[StagedUploadParameter] = []

    def parameter(self, name: str) -> Optional[str]:
        for param in self.parameters:
            if param.name == name:
                return param.value
        return None


class MediaFile(BaseModel):
    content: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.content)


__all__ = ["RATING_TYPE", "RATINGS_NAMESPACE", "RATINGS_KEY", "ObjectStatus",
           "MetaobjectField", "RemoteObject", "PageInfo", "RemotePage",
           "StagedUploadParameter", "StagedUploadTarget", "MediaFile"]
