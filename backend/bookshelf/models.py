from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("white space not allowed")
    return value


# Model cho dữ liệu gửi lên khi thêm sách (POST /book và từng dòng của file seed)
class BookCreate(BaseModel):
    title: str = Field(..., max_length=128)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    publisher: str = Field(..., max_length=128)
    authors: List[str] = Field(..., min_length=1)

    @field_validator("price", mode="before")
    @classmethod
    def price_not_bool(cls, v):
        # bool là int trong Python, nhưng true/false không phải là giá
        if isinstance(v, bool):
            raise ValueError("price must be a number")
        return v

    @field_validator("title", "publisher")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _not_blank(v)

    @field_validator("authors")
    @classmethod
    def strip_authors(cls, v: List[str]) -> List[str]:
        return [_not_blank(name) for name in v]


# Model cho dữ liệu trả về (an toàn, không lộ cấu trúc DB)
class BookOut(BaseModel):
    id: int
    title: str
    price: float
    publisher_id: int
    authors: List[int] = Field(default_factory=list)


class NameOut(BaseModel):
    name: str

    model_config = ConfigDict(from_attributes=True)


class MessageOut(BaseModel):
    message: str
    id: Optional[int] = None
