from .read import expected_http_body_size
from .read import read_response_head
from .read import validate_headers

__all__ = [
    "read_response_head",
    "expected_http_body_size",
    "validate_headers",
]
