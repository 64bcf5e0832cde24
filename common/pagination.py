# common/pagination.py
from dataclasses import dataclass

from common.errors import ValidationError


@dataclass(frozen=True)
class PaginationSpec:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def normalize_pagination(*, page: int, page_size: int, max_page_size: int) -> PaginationSpec:
    """Validate page/page_size and cap the page size for a listing."""
    if page < 1:
        raise ValidationError("page must be >= 1", field="page")
    if page_size < 1:
        raise ValidationError("page_size must be >= 1", field="page_size")
    if page_size > max_page_size:
        raise ValidationError(f"page_size must be <= {max_page_size}", field="page_size")
    return PaginationSpec(page=page, page_size=page_size)
