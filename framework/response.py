from typing import Any, Optional
from pydantic import BaseModel

class ResponseModel(BaseModel):
    """Envelope for every API response: business code, message and payload."""
    code: int = 200
    message: str = "success"
    data: Optional[Any] = None

    @classmethod
    def success(cls, data: Any = None, message: str = "success") -> dict:
        return cls(code=200, message=message, data=data).model_dump()

    @classmethod
    def fail(cls, code: int = 400, message: str = "error", data: Any = None) -> dict:
        return cls(code=code, message=message, data=data).model_dump()
