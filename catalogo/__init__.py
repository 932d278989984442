"""Catálogo: cadastro de produtos (formulário + API) e esquema da loja."""

__version__ = "0.1.0"
