from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class CheckoutProduct(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field("", validation_alias=AliasChoices("name", "nombre", "title"))
    price: Decimal = Field(Decimal("0"), validation_alias=AliasChoices("price", "precio", "unit_price"))
    image: Optional[str] = Field(None, validation_alias=AliasChoices("image", "imagen", "img"))
    quantity: int = Field(1, ge=1, validation_alias=AliasChoices("quantity", "cantidad"))
    size: Optional[str] = Field(None, validation_alias=AliasChoices("size", "talle"))
    color: Optional[str] = None

    @field_validator("name", "image", "size", "color", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)


class CreatePreferenceRequest(BaseModel):
    """Raw checkout body. Presence/number checks happen in the intake service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: Optional[str] = None
    quantity: Any = 1
    price: Any = None
    form_data: Optional[Dict[str, Any]] = Field(None, alias="formData")
    products: List[Dict[str, Any]] = Field(default_factory=list)


class CreatePreferenceResponse(BaseModel):
    paymentUrl: Optional[str]
    preferenceId: str
    correlationToken: str
    # legacy names kept for the existing storefront
    init_point: Optional[str]
    preference_id: str
    external_reference: str
