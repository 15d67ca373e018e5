from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class ReplyCreate(_CamelModel):
    session_id: Optional[str] = Field(None, alias="sessionId")
    shop_id: Optional[str] = Field(None, alias="shopId")
    buyer_id: Optional[str] = Field(None, alias="buyerId")
    text: Optional[str] = None
    img_url: Optional[str] = Field(None, alias="imgUrl")
    width: Optional[int] = None
    height: Optional[int] = None
    marketplace_code: Optional[str] = Field(None, alias="marketplaceCode")


class TextReplyCreate(_CamelModel):
    session_id: Optional[str] = Field(None, alias="sessionId")
    shop_id: Optional[str] = Field(None, alias="shopId")
    buyer_id: Optional[str] = Field(None, alias="buyerId")
    text: Optional[str] = None
    marketplace_code: Optional[str] = Field(None, alias="marketplaceCode")


class ImageReplyCreate(_CamelModel):
    session_id: Optional[str] = Field(None, alias="sessionId")
    shop_id: Optional[str] = Field(None, alias="shopId")
    buyer_id: Optional[str] = Field(None, alias="buyerId")
    img_url: Optional[str] = Field(None, alias="imgUrl")
    width: int = 300
    height: int = 300
    marketplace_code: Optional[str] = Field(None, alias="marketplaceCode")


class ReplyMessage(BaseModel):
    """Outgoing reply body: text wins when both text and image are set."""

    text: Optional[str] = None
    img_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class ReplyResult(BaseModel):
    success: bool
    status: int
    data: Any = None
    error: Optional[str] = None
