# catalogo/main.py
from __future__ import annotations

import logging
import re
import unicodedata
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import configure_logging, load_settings
from .database import Base, engine, get_db
from .form import PackagingType
from .models import Category, Product

# -----------------------------------------------------------------------------
# Config
# -----------------------------------------------------------------------------
settings = load_settings()
configure_logging(settings.log_level)
log = logging.getLogger(__name__)

CENTS = Decimal("0.01")


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    log.info("Tabelas verificadas (%s)", engine.url.render_as_string(hide_password=True))
    yield


# -----------------------------------------------------------------------------
# App + CORS
# -----------------------------------------------------------------------------
app = FastAPI(title="Catálogo API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Arquivos enviados (armazenamento local)
# -----------------------------------------------------------------------------
if settings.storage_backend == "local":
    app.mount("/media", StaticFiles(directory=settings.media_dir, check_dir=False), name="media")


# -----------------------------------------------------------------------------
# Schemas (Pydantic v2)
# -----------------------------------------------------------------------------
# texto sem espaços nas pontas; "   " vira vazio e é recusado
NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CategoryOut(BaseModel):
    id: str
    name: str
    model_config = {"from_attributes": True}


class CategoryIn(BaseModel):
    name: NonBlank = Field(..., max_length=120)
    slug: Optional[str] = Field(None, max_length=140)


class CategoryCreated(CategoryOut):
    slug: str


class ProductIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: NonBlank = Field(..., max_length=255)
    type: Optional[PackagingType] = None
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, lt=Decimal("100000000"))
    category_id: NonBlank = Field(..., alias="categoryId")
    image_url: Optional[str] = Field(None, alias="imageUrl", max_length=500)
    barcode: NonBlank = Field(..., max_length=64)


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    price: float
    category_id: str = Field(..., serialization_alias="categoryId")
    image_url: Optional[str] = Field(None, serialization_alias="imageUrl")
    barcode: str
    created_at: datetime = Field(..., serialization_alias="createdAt")


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def slugify(value: str) -> str:
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value).strip("-").lower()
    return value


def _product_out(pr: Product) -> dict:
    return ProductOut.model_validate(pr).model_dump(by_alias=True, mode="json")


# -----------------------------------------------------------------------------
# Categorias
# -----------------------------------------------------------------------------
@app.get("/api/categories", response_model=List[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return db.query(Category).order_by(Category.name.asc()).all()


@app.post("/api/categories", response_model=CategoryCreated, status_code=201)
def create_category(payload: CategoryIn, db: Session = Depends(get_db)):
    slug = slugify(payload.slug or payload.name)
    if not slug:
        raise HTTPException(status_code=400, detail="Slug inválido")
    if db.query(Category).filter(Category.slug == slug).first():
        raise HTTPException(status_code=409, detail="Categoria já cadastrada")

    cat = Category(name=payload.name, slug=slug)
    db.add(cat)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Categoria já cadastrada")
    db.refresh(cat)
    return cat


# -----------------------------------------------------------------------------
# Produtos
# -----------------------------------------------------------------------------
@app.get("/api/products")
def list_products(db: Session = Depends(get_db)):
    rows = db.query(Product).order_by(Product.created_at.desc()).all()
    return [_product_out(p) for p in rows]


@app.post("/api/products", status_code=201)
def create_product(payload: ProductIn, db: Session = Depends(get_db)):
    if not db.get(Category, payload.category_id):
        raise HTTPException(status_code=400, detail="Categoria não encontrada")
    barcode = payload.barcode
    if db.query(Product).filter(Product.barcode == barcode).first():
        raise HTTPException(status_code=409, detail="Código de barras já cadastrado")

    try:
        pr = Product(
            name=payload.name,
            type=payload.type.value if payload.type else None,
            description=payload.description,
            price=payload.price.quantize(CENTS, rounding=ROUND_HALF_UP),
            image_url=payload.image_url,
            category_id=payload.category_id,
            barcode=barcode,
        )
        db.add(pr)
        db.commit()
    except IntegrityError:
        # corrida entre dois cadastros com o mesmo EAN
        db.rollback()
        raise HTTPException(status_code=409, detail="Código de barras já cadastrado")
    except Exception:
        db.rollback()
        log.exception("Falha ao cadastrar produto barcode=%s", barcode)
        raise HTTPException(status_code=500, detail="Cadastro falhou. Veja logs do servidor.")

    db.refresh(pr)
    log.info("Produto cadastrado id=%s barcode=%s", pr.id, pr.barcode)
    return _product_out(pr)


# -----------------------------------------------------------------------------
# Saúde
# -----------------------------------------------------------------------------
@app.get("/api/health")
def health():
    return {"ok": True, "storage": settings.storage_backend, "bucket": settings.bucket}
