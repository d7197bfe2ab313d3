"""
=============================================================================
EXAMPLE ENDPOINTS
=============================================================================

One endpoint per way of getting data out of a request. Each is written
twice where it makes sense: once with raw accessors and once through a
BindingSchema, so the two can be compared side by side.

    ┌───────────────────────────────┬─────────────────────────────────────┐
    │ Route                         │ Shows                               │
    ├───────────────────────────────┼─────────────────────────────────────┤
    │ POST /user_param/:name/*action│ path params by name                 │
    │ POST /user_params/:name/*action│ path params in pattern order       │
    │ POST /user_bind/:name/*action │ PATH binding, SKIP field            │
    │ POST /postquery               │ query accessors                     │
    │ POST /postquery_bind          │ QUERY binding                       │
    │ POST /postmap                 │ query map + form map                │
    │ POST /postarray               │ query list + form list              │
    │ POST /upload_one_file         │ required FILE field, save           │
    │ POST /upload_multi_files      │ FILE list, all saved or none        │
    │ POST /upload_bin?filename=    │ RAW bytes, save                     │
    │ POST /upload_text             │ RAW text                            │
    │ POST /upload_json             │ JSON binding with must_bind         │
    │ GET  /bookable                │ date fields, gtfield, custom rule   │
    │ /api/...                      │ group and per-route middleware      │
    └───────────────────────────────┴─────────────────────────────────────┘

Uploads are written under the configured upload_dir using only the last
component of the client's filename. An existing file is never replaced:
the endpoint answers 409.

=============================================================================
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..binding import (
    Binder,
    BindingSchema,
    FieldSpec,
    Shape,
    Source,
    UploadSaveError,
    UploadTargetExists,
    UploadedFile,
    ValidatorRegistry,
    must_bind,
    safe_filename,
    save_bytes,
    save_uploaded_file,
)
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse,
    bad_request,
    conflict,
    internal_error,
    ok,
    validation_failed,
)
from ..http.router import Router


logger = logging.getLogger(__name__)


# =============================================================================
# SCHEMAS
# =============================================================================

USER_URI = BindingSchema(
    FieldSpec("name", Source.PATH),
    FieldSpec("action", Source.SKIP, default=""),
)

POST_QUERY = BindingSchema(
    FieldSpec("id", Source.QUERY, default=""),
    FieldSpec("page", Source.QUERY, default=""),
)

POST_MAP = BindingSchema(
    FieldSpec("ids", Source.QUERY, shape=Shape.MAP),
    FieldSpec("names", Source.FORM, shape=Shape.MAP),
)

POST_ARRAY = BindingSchema(
    FieldSpec("ids", Source.QUERY, shape=Shape.LIST),
    FieldSpec("names", Source.FORM, shape=Shape.LIST),
)

ONE_FILE = BindingSchema(
    FieldSpec("file", Source.FILE, required=True),
)

MULTI_FILES = BindingSchema(
    FieldSpec("files", Source.FILE, required=True, shape=Shape.LIST),
)

BINARY_UPLOAD = BindingSchema(
    FieldSpec("filename", Source.QUERY, required=True),
    FieldSpec("data", Source.RAW, type=bytes, default=b""),
)

TEXT_UPLOAD = BindingSchema(
    FieldSpec("content", Source.RAW, default=""),
)

JSON_CONTENT = BindingSchema(
    FieldSpec("content", Source.JSON, default=""),
)

BOOKING = BindingSchema(
    FieldSpec("check_in", Source.QUERY, required=True, type=date,
              validators=("bookable_date",)),
    FieldSpec("check_out", Source.QUERY, required=True, type=date,
              validators=("gtfield=check_in",)),
)


# =============================================================================
# VALIDATORS
# =============================================================================

def bookable_date(value: Any, record: Mapping[str, Any], param: Optional[str]) -> bool:
    """A booking cannot start in the past."""
    return value >= date.today()


def register_validators(registry: ValidatorRegistry) -> None:
    """Register the validators the example schemas reference."""
    registry.register("bookable_date", bookable_date)


# =============================================================================
# ROUTE-LEVEL MIDDLEWARE
# =============================================================================

def _trace(response: HTTPResponse, name: str) -> HTTPResponse:
    # Records which middleware ran, outermost first
    seen = response.headers.get("X-Middleware")
    response.headers["X-Middleware"] = f"{name}, {seen}" if seen else name
    return response


def api_middleware(request: HTTPRequest, next: Callable) -> HTTPResponse:
    return _trace(next(request), "api")


def xxx_middleware(request: HTTPRequest, next: Callable) -> HTTPResponse:
    return _trace(next(request), "xxx")


def specify_middleware(request: HTTPRequest, next: Callable) -> HTTPResponse:
    return _trace(next(request), "specify")


def set_specify_middleware(param: int) -> Callable:
    """Middleware factory: per-route middleware that takes an argument."""
    def middleware(request: HTTPRequest, next: Callable) -> HTTPResponse:
        logger.info(f"specify middleware param: {param}")
        response = next(request)
        response.headers["X-Specify-Param"] = str(param)
        return _trace(response, "specify")
    return middleware


# =============================================================================
# HANDLERS
# =============================================================================

class ExampleHandlers:
    """
    The example endpoints.

    Usage:
        handlers = ExampleHandlers(binder, upload_dir="uploads")
        handlers.register(router)
    """

    def __init__(self, binder: Binder, upload_dir: str = "uploads"):
        self.binder = binder
        self.upload_dir = Path(upload_dir)

    def register(self, router: Router) -> None:
        router.post("/user_param/:name/*action")(self.user_param)
        router.post("/user_params/:name/*action")(self.user_params)
        router.post("/user_bind/:name/*action")(self.user_bind)

        router.post("/postquery")(self.post_query)
        router.post("/postquery_bind")(self.post_query_bind)
        router.post("/postmap")(self.post_map)
        router.post("/postarray")(self.post_array)

        router.post("/upload_one_file")(must_bind(ONE_FILE, self.binder)(self.upload_one_file))
        router.post("/upload_multi_files")(
            must_bind(MULTI_FILES, self.binder)(self.upload_multi_files)
        )
        router.post("/upload_bin")(must_bind(BINARY_UPLOAD, self.binder)(self.upload_bin))
        router.post("/upload_text")(self.upload_text)
        router.post("/upload_json")(must_bind(JSON_CONTENT, self.binder)(self.upload_json))

        router.get("/bookable")(self.bookable)

        api = router.group("/api", api_middleware)
        api.get("/getapi", middleware=[specify_middleware])(self.empty)
        api.post("/postapi", middleware=[set_specify_middleware(666)])(self.empty)
        xxx = api.group("/xxx", xxx_middleware)
        xxx.get("/getxxx")(self.empty)

    # ─────────────────────────────────────────────────────────────────────
    # PATH PARAMETERS
    # ─────────────────────────────────────────────────────────────────────

    def user_param(self, request: HTTPRequest) -> HTTPResponse:
        name = request.get_param("name")
        action = request.get_param("action")
        return ok(f"hello, {name}, {action}")

    def user_params(self, request: HTTPRequest) -> HTTPResponse:
        values = list(request.path_params.values())
        return ok(f"hello, {values[0]}, {values[1]}")

    def user_bind(self, request: HTTPRequest) -> HTTPResponse:
        result = self.binder.bind(request, USER_URI)
        if not result.ok:
            return validation_failed(result)
        record = result.record
        return ok(f"hello, {record['name']}, {record['action']}")

    # ─────────────────────────────────────────────────────────────────────
    # QUERY AND FORM
    # ─────────────────────────────────────────────────────────────────────

    def post_query(self, request: HTTPRequest) -> HTTPResponse:
        query_id = request.get_query("id", "")
        page = request.get_query("page", "")
        return ok(f"{query_id}, {page}")

    def post_query_bind(self, request: HTTPRequest) -> HTTPResponse:
        record = self.binder.bind(request, POST_QUERY).unwrap()
        return ok(f"{record['id']}, {record['page']}")

    def post_map(self, request: HTTPRequest) -> HTTPResponse:
        result = self.binder.bind(request, POST_MAP)
        if not result.ok:
            return validation_failed(result)
        return ok({"ids": result.record["ids"], "names": result.record["names"]})

    def post_array(self, request: HTTPRequest) -> HTTPResponse:
        result = self.binder.bind(request, POST_ARRAY)
        if not result.ok:
            return validation_failed(result)
        return ok({"ids": result.record["ids"], "names": result.record["names"]})

    # ─────────────────────────────────────────────────────────────────────
    # UPLOADS
    # ─────────────────────────────────────────────────────────────────────

    def _save(self, name: str, write: Callable[[Path], Path]) -> Optional[HTTPResponse]:
        """Run a save; map failures to 409 / 500, success to None."""
        dest = self.upload_dir / safe_filename(name)
        try:
            write(dest)
        except UploadTargetExists:
            return conflict(f"{dest.name} already exists")
        except UploadSaveError as e:
            logger.error(f"Upload save failed: {e}")
            response = internal_error("Could not save upload")
            response.error_message = str(e)
            return response
        return None

    def upload_one_file(self, request: HTTPRequest, record: Dict[str, Any]) -> HTTPResponse:
        upload = record["file"]
        failed = self._save(upload.filename, lambda dest: save_uploaded_file(upload, dest))
        if failed is not None:
            return failed
        return ok(f"upload file: {upload.filename}")

    def upload_multi_files(self, request: HTTPRequest, record: Dict[str, Any]) -> HTTPResponse:
        saved: List[Path] = []

        def save(upload: UploadedFile, dest: Path) -> Path:
            saved.append(save_uploaded_file(upload, dest))
            return dest

        for upload in record["files"]:
            failed = self._save(upload.filename, lambda dest: save(upload, dest))
            if failed is not None:
                # All or nothing
                for path in saved:
                    path.unlink(missing_ok=True)
                return failed
        return ok({"uploaded": [upload.filename for upload in record["files"]]})

    def upload_bin(self, request: HTTPRequest, record: Dict[str, Any]) -> HTTPResponse:
        filename = record["filename"]
        if safe_filename(filename) != filename:
            return bad_request(f"filename must be a plain file name, got {filename!r}")
        failed = self._save(filename, lambda dest: save_bytes(record["data"], dest))
        if failed is not None:
            return failed
        return ok(f"upload file: {filename}")

    def upload_text(self, request: HTTPRequest) -> HTTPResponse:
        result = self.binder.bind(request, TEXT_UPLOAD)
        if not result.ok:
            return validation_failed(result)
        return ok(f"upload text: {result.record['content']}")

    def upload_json(self, request: HTTPRequest, record: Dict[str, Any]) -> HTTPResponse:
        logger.debug(f"upload_json bound: {record}")
        return ok(f"upload json: {record['content']}")

    # ─────────────────────────────────────────────────────────────────────
    # VALIDATION
    # ─────────────────────────────────────────────────────────────────────

    def bookable(self, request: HTTPRequest) -> HTTPResponse:
        result = self.binder.bind(request, BOOKING)
        if not result.ok:
            return validation_failed(result)
        return ok({
            "message": "Booking dates are valid!",
            "check_in": result.record["check_in"].isoformat(),
            "check_out": result.record["check_out"].isoformat(),
        })

    def empty(self, request: HTTPRequest) -> HTTPResponse:
        return ok()
