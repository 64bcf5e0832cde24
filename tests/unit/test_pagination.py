import pytest

from common.errors import ValidationError
from common.pagination import normalize_pagination


def test_offset_follows_page_and_size() -> None:
    pagination = normalize_pagination(page=3, page_size=20, max_page_size=100)
    assert pagination.offset == 40
    assert normalize_pagination(page=1, page_size=1, max_page_size=1).offset == 0


@pytest.mark.parametrize(
    ("page", "page_size", "field"),
    [(0, 10, "page"), (-1, 10, "page"), (1, 0, "page_size"), (1, 101, "page_size")],
)
def test_out_of_range_values_are_rejected(page, page_size, field) -> None:
    with pytest.raises(ValidationError) as excinfo:
        normalize_pagination(page=page, page_size=page_size, max_page_size=100)
    assert excinfo.value.field == field
    assert excinfo.value.status_code == 400
