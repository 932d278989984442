# catalogo/errors.py
from typing import Dict, Optional


class SubmissionError(Exception):
    """Base class for failures of a product submission attempt."""

    user_message = "Não foi possível cadastrar o produto."


class ValidationError(SubmissionError):
    user_message = "Corrija os campos destacados."

    def __init__(self, errors: Dict[str, str]):
        super().__init__(f"Formulário inválido: {sorted(errors)}")
        self.errors = dict(errors)


class StorageError(SubmissionError):
    user_message = "Falha no armazenamento de arquivos."


class UploadError(StorageError):
    user_message = "Não foi possível enviar a imagem. Tente novamente."


class RecordCreationError(SubmissionError):
    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"POST /api/products respondeu HTTP {status_code}")
        self.status_code = status_code
        self.body = body

    @property
    def user_message(self) -> str:
        if self.status_code == 409:
            return "Já existe um produto com este código de barras."
        if self.status_code == 400:
            return "Categoria inválida. Recarregue a página e tente novamente."
        return f"Não foi possível cadastrar o produto (HTTP {self.status_code})."


class UnexpectedError(SubmissionError):
    user_message = "Ocorreu um erro inesperado. Tente novamente."

    def __init__(self, cause: Optional[BaseException] = None):
        super().__init__(repr(cause) if cause is not None else "erro inesperado")
        self.cause = cause
