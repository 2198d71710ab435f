"""Response envelope shared by success and error responses."""

from typing import Any

from pydantic import BaseModel


class Result(BaseModel):
    """``{code, msg, data}``; ``code`` is ``"200"`` on success."""

    code: str
    msg: str | None = None
    data: Any = None

    @classmethod
    def success(cls, data: Any = None, msg: str | None = None) -> "Result":
        return cls(code="200", msg=msg, data=data)

    @classmethod
    def error(cls, code: str, msg: str) -> "Result":
        return cls(code=code, msg=msg, data=None)
