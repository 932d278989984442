# catalogo/form.py
"""Validation of the "Cadastrar Produto" form.

Runs before any network call. The raw values are what the form widgets hold
(text everywhere, a list of files for the image input); the result is either a
typed ``ProductForm`` or a ``{field: message}`` map with one message per field.
"""
from __future__ import annotations

import enum
import mimetypes
import math
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_core import PydanticCustomError

MAX_IMAGE_BYTES = 5 * 1024 * 1024
ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")


class PackagingType(str, enum.Enum):
    UNIT = "unidade"
    BOX = "caixa"
    PACKAGE = "pacote"
    KILOGRAM = "quilo"
    LITER = "litro"


@dataclass(frozen=True)
class ImageFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        # same as name.split(".").pop(): a name without a dot is its own extension
        return self.name.rsplit(".", 1)[-1]

    @classmethod
    def from_path(cls, path: str) -> "ImageFile":
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            return cls(name=os.path.basename(path), content_type=content_type, data=fh.read())


def _fail(code: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(code, message)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class ProductForm(BaseModel):
    model_config = ConfigDict(validate_default=True, frozen=True)

    name: Optional[str] = None
    type: Optional[PackagingType] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    image: Optional[ImageFile] = None
    category_id: Optional[str] = None
    barcode: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name(cls, v):
        v = _text(v)
        if not v:
            raise _fail("name_required", "Nome é obrigatório")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v):
        v = _text(v)
        try:
            return PackagingType(v)
        except ValueError:
            raise _fail("type_required", "Selecione um tipo de embalagem") from None

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        return _text(v) or None

    @field_validator("price", mode="before")
    @classmethod
    def _price(cls, v):
        raw = _text(v).replace(",", ".")
        if not raw:
            raise _fail("price_required", "Preço é obrigatório")
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise _fail("price_invalid", "Preço deve ser um número") from None
        if not value.is_finite() or not math.isfinite(float(value)):
            raise _fail("price_invalid", "Preço deve ser um número")
        if value < 0:
            raise _fail("price_negative", "Preço não pode ser negativo")
        return value

    @field_validator("image", mode="before")
    @classmethod
    def _image(cls, v):
        files = list(v) if isinstance(v, (list, tuple)) else ([] if v is None else [v])
        if len(files) != 1 or not isinstance(files[0], ImageFile):
            raise _fail("image_required", "Selecione uma imagem")
        image = files[0]
        if image.size > MAX_IMAGE_BYTES:
            raise _fail("image_too_large", "A imagem deve ter no máximo 5MB")
        if image.content_type not in ACCEPTED_IMAGE_TYPES:
            raise _fail("image_type", "Formato aceito: JPG, PNG ou WEBP")
        return image

    @field_validator("category_id", mode="before")
    @classmethod
    def _category(cls, v):
        v = _text(v)
        if not v:
            raise _fail("category_required", "Selecione uma categoria")
        return v

    @field_validator("barcode", mode="before")
    @classmethod
    def _barcode(cls, v):
        v = _text(v)
        if not v:
            raise _fail("barcode_required", "Código de barras (EAN) é obrigatório")
        return v


# form field name -> model attribute
_FIELD_ALIASES = {"categoryId": "category_id"}
_MODEL_TO_FIELD = {v: k for k, v in _FIELD_ALIASES.items()}


@dataclass(frozen=True)
class FormResult:
    ok: Optional[ProductForm] = None
    errors: Optional[Dict[str, str]] = None

    @property
    def is_ok(self) -> bool:
        return self.ok is not None


def validate_product_form(data: Mapping[str, Any]) -> FormResult:
    values = {_FIELD_ALIASES.get(k, k): v for k, v in data.items() if _FIELD_ALIASES.get(k, k) in ProductForm.model_fields}
    try:
        return FormResult(ok=ProductForm(**values))
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            attr = str(err["loc"][0]) if err.get("loc") else "__root__"
            errors.setdefault(_MODEL_TO_FIELD.get(attr, attr), err["msg"])
        return FormResult(errors=errors)
