"""Helpers shared by the JSON views of every app."""

import json
import logging
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist
from django.core.paginator import Paginator
from django.db.models import ProtectedError
from django.http import JsonResponse
from django.utils.dateparse import parse_date

from core.errors import IllegalTransition, InvalidDocument, InvoicingError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_company(request):
    """Company of the logged-in user, or None when the user has no profile."""
    profile = getattr(request.user, "profile", None)
    return profile.company if profile else None


def json_error(message, status=400):
    return JsonResponse({"error": message}, status=status)


def parse_json_body(request) -> dict:
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvoicingError("Request body is not valid JSON.") from None
    if not isinstance(data, dict):
        raise InvoicingError("Request body must be a JSON object.")
    return data


def parse_date_field(data: dict, field: str, required=False):
    value = data.get(field)
    if value in (None, ""):
        if required:
            raise InvalidDocument(f"{field} is required.")
        return None
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidDocument(f"{field} must be a date (YYYY-MM-DD), got {value!r}.")
    return parsed


def page_size(request) -> int:
    try:
        limit = int(request.GET.get("limit") or DEFAULT_PAGE_SIZE)
    except ValueError:
        raise InvoicingError("limit must be an integer.") from None
    return max(1, min(limit, MAX_PAGE_SIZE))


def paginate(request, queryset, serialize) -> dict:
    """One page of `queryset` (`?page=`, `?limit=`), serialized for a JSON list."""
    paginator = Paginator(queryset, page_size(request))
    page = paginator.get_page(request.GET.get("page"))
    return {
        "results": [serialize(obj) for obj in page],
        "count": paginator.count,
        "page": page.number,
        "num_pages": paginator.num_pages,
    }


def company_api(view):
    """Pass the user's company to the view and turn business errors into JSON.

    IllegalTransition -> 409, other InvoicingError -> 400, missing object -> 404,
    deleting a row still referenced by documents -> 409.
    Anything else is logged and propagates (500).
    """

    @wraps(view)
    def wrapped(request, *args, **kwargs):
        company = get_company(request)
        if company is None:
            return json_error("User is not attached to a company.", status=403)
        try:
            return view(request, company, *args, **kwargs)
        except IllegalTransition as e:
            logger.warning("%s %s refused: %s", request.method, request.path, e)
            return json_error(str(e), status=409)
        except InvoicingError as e:
            logger.warning("%s %s rejected: %s", request.method, request.path, e)
            return json_error(str(e), status=400)
        except ObjectDoesNotExist:
            return json_error("Not found.", status=404)
        except ProtectedError:
            logger.warning("%s %s refused: object is still referenced", request.method, request.path)
            return json_error("Cannot delete: still used by invoices or quotes.", status=409)
        except Exception:
            logger.exception("%s %s failed", request.method, request.path)
            raise

    return wrapped
