# ============================================
# board/views/utils.py
# ============================================
"""
Shared tooling for drf-spectacular docs on the board APIViews.
"""
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, inline_serializer
from rest_framework import serializers

# ---- Reusable error schema
ErrorSerializer = inline_serializer(
    name="BoardError",
    fields={"detail": serializers.CharField()}
)

# ---- Param helpers

def path_int(name: str, description: str):
    return OpenApiParameter(name, OpenApiTypes.INT, OpenApiParameter.PATH, description=description)

def path_str(name: str, description: str):
    return OpenApiParameter(name, OpenApiTypes.STR, OpenApiParameter.PATH, description=description)

def q_int(name: str, description: str, required: bool = False):
    return OpenApiParameter(name, OpenApiTypes.INT, OpenApiParameter.QUERY, required=required, description=description)

def q_str(name: str, description: str, required: bool = False):
    return OpenApiParameter(name, OpenApiTypes.STR, OpenApiParameter.QUERY, required=required, description=description)

def q_date(name: str, description: str, required: bool = False):
    return OpenApiParameter(name, OpenApiTypes.DATE, OpenApiParameter.QUERY, required=required, description=description)

ISSUE_REF = path_str("ref", "Issue key (PROJ-12) or id")
REVIEW_ID = path_int("review_id", "Review id")

# ---- Convenience for common responses

def responses_ok(serializer_cls, many: bool = False, description: str | None = None, code: int = 200, extra: dict | None = None):
    """Build a {code: ...} response mapping merged with the standard errors."""
    serializer = serializer_cls(many=many) if isinstance(serializer_cls, type) else serializer_cls
    mapping = {code: OpenApiResponse(response=serializer, description=description or "OK")}
    mapping.update(std_errors(extra))
    return mapping


def std_errors(extra: dict | None = None):
    """Error responses every board endpoint can produce."""
    errs = {
        400: OpenApiResponse(ErrorSerializer, description="Bad Request / gate blocked"),
        401: OpenApiResponse(ErrorSerializer, description="Unauthorized"),
        403: OpenApiResponse(ErrorSerializer, description="Forbidden"),
        404: OpenApiResponse(ErrorSerializer, description="Not Found"),
    }
    if extra:
        errs.update(extra)
    return errs


CONFLICT = {409: OpenApiResponse(ErrorSerializer, description="Concurrent update, retry")}


def actor_id(request) -> str:
    return str(request.user.pk)
