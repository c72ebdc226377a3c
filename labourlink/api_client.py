"""Async HTTP client for the LabourLink REST backend"""
import json
import mimetypes
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx

from .config import AppConfig, get_config
from .errors import ApiResponseError, ApiUnreachableError, DecodeError
from .filters import JobFilters, to_query_params
from .logger import get_logger
from .models import (
    Job,
    JobDraft,
    JobMapItem,
    JobUpdate,
    NotificationsPage,
    Offer,
    OfferDraft,
    Role,
    UploadResult,
    User,
    UserJobs,
    UserUpdate,
    decode,
    decode_list,
)

logger = get_logger()


class MarketplaceClient:
    """Gateway to the backend that owns all durable marketplace state.

    Every method returns freshly decoded server representations; nothing is
    cached here. Mutating job and offer endpoints identify the acting user
    through the ``X-User-Id`` header.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or get_config()
        self.base_url = self.config.api_base_url
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Open the underlying connection pool"""
        if self._http is None:
            logger.debug(f"Opening API client for {self.base_url}")
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.api.timeout_seconds,
                transport=self._transport,
            )

    async def close(self):
        """Close the connection pool"""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # --- Transport helpers ---

    async def _request(
        self,
        method: str,
        path: str,
        *,
        user_id: Optional[str] = None,
        json_body: Optional[dict] = None,
        params: Optional[dict] = None,
        files: Optional[list] = None,
    ) -> httpx.Response:
        await self.start()

        headers = {}
        if user_id:
            headers["X-User-Id"] = user_id

        try:
            response = await self._http.request(
                method, path, headers=headers, json=json_body, params=params, files=files
            )
        except httpx.TransportError as e:
            reason = str(e) or e.__class__.__name__
            logger.error(f"{method} {path} failed: cannot reach {self.base_url} ({reason})")
            raise ApiUnreachableError(self.base_url, reason) from e

        if not response.is_success:
            body = response.text.strip()
            logger.warning(f"{method} {path} -> HTTP {response.status_code}: {body[:200]}")
            raise ApiResponseError(response.status_code, body)

        logger.debug(f"{method} {path} -> HTTP {response.status_code}")
        return response

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        """Parsed JSON body, or None when the body is empty"""
        text = response.text
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise DecodeError("Server returned invalid JSON.") from e

    def _entity(self, response: httpx.Response, model, what: str):
        payload = self._body(response)
        if payload is None:
            raise DecodeError(f"Server returned no {what} data.")
        return decode(model, payload, what)

    def _entities(self, response: httpx.Response, model, what: str) -> list:
        payload = self._body(response)
        if payload is None:
            raise DecodeError(f"Server returned no {what} data.")
        return decode_list(model, payload, what)

    # --- Users ---

    async def create_user(self, name: str, email: str, role: Role) -> User:
        """Create an account; follows the Location header when the body is empty"""
        logger.info(f"Creating {Role(role).value} account for {email}")
        response = await self._request(
            "POST", "/users",
            json_body={"name": name, "email": email, "role": Role(role).value},
        )

        if self._body(response) is None:
            location = response.headers.get("Location")
            user_id = location.rstrip("/").split("/")[-1] if location else None
            if user_id:
                return await self.get_user(user_id)
            raise DecodeError(
                "Server returned no user data. Check that POST /users returns the created user "
                "(or a Location header with the new user id)."
            )

        return self._entity(response, User, "user")

    async def sign_in(self, name: str, email: str) -> User:
        """Authenticate by name and email"""
        try:
            response = await self._request(
                "POST", "/users/sign-in",
                json_body={"name": name.strip(), "email": email.strip()},
            )
        except ApiResponseError as e:
            message = _error_field(e.body)
            if message:
                raise ApiResponseError(e.status_code, e.body, message) from e
            raise

        if self._body(response) is None:
            raise DecodeError("Invalid name or email")
        return self._entity(response, User, "user")

    async def get_user(self, user_id: str) -> User:
        response = await self._request("GET", f"/users/{user_id}")
        if self._body(response) is None:
            raise DecodeError("User not found or server returned no data.")
        return self._entity(response, User, "user")

    async def update_user(self, user_id: str, update: UserUpdate) -> User:
        response = await self._request("PUT", f"/users/{user_id}", json_body=update.to_payload())
        if self._body(response) is None:
            return await self.get_user(user_id)
        return self._entity(response, User, "user")

    async def get_user_jobs(self, user_id: str) -> UserJobs:
        """Jobs created by and worked on by a user"""
        response = await self._request("GET", f"/users/{user_id}/jobs")
        payload = self._body(response)
        if payload is None:
            return UserJobs()
        return decode(UserJobs, payload, "user jobs")

    # --- Jobs ---

    async def list_jobs(self, filters: Optional[JobFilters] = None) -> list[Job]:
        response = await self._request("GET", "/jobs", params=to_query_params(filters))
        return self._entities(response, Job, "job")

    async def list_map_jobs(self, filters: Optional[JobFilters] = None) -> list[JobMapItem]:
        response = await self._request("GET", "/jobs/map", params=to_query_params(filters))
        payload = self._body(response)
        if payload is None:
            return []
        return decode_list(JobMapItem, payload, "map job")

    async def get_job(self, job_id: str) -> Job:
        response = await self._request("GET", f"/jobs/{job_id}")
        return self._entity(response, Job, "job")

    async def create_job(self, draft: JobDraft, created_by: str) -> Job:
        payload = draft.to_payload()
        payload["createdBy"] = created_by
        logger.info(f"Creating job '{draft.title}' for {created_by}")
        response = await self._request("POST", "/jobs", json_body=payload)
        return self._entity(response, Job, "job")

    async def update_job(self, job_id: str, user_id: str, update: JobUpdate) -> Job:
        logger.info(f"Updating job {job_id}")
        response = await self._request(
            "PUT", f"/jobs/{job_id}", user_id=user_id, json_body=update.to_payload()
        )
        return self._entity(response, Job, "job")

    async def delete_job(self, job_id: str, user_id: str) -> None:
        logger.info(f"Deleting job {job_id}")
        await self._request("DELETE", f"/jobs/{job_id}", user_id=user_id)

    async def request_close(self, job_id: str, user_id: str) -> Job:
        return await self._job_transition(job_id, user_id, "request-close")

    async def approve_close(self, job_id: str, user_id: str) -> Job:
        return await self._job_transition(job_id, user_id, "close")

    async def reject_close(self, job_id: str, user_id: str) -> Job:
        return await self._job_transition(job_id, user_id, "reject-close")

    async def _job_transition(self, job_id: str, user_id: str, verb: str) -> Job:
        logger.info(f"Job {job_id}: {verb} by {user_id}")
        response = await self._request("POST", f"/jobs/{job_id}/{verb}", user_id=user_id)
        if self._body(response) is None:
            # Some backend builds answer 204; the job itself is still the truth
            return await self.get_job(job_id)
        return self._entity(response, Job, "job")

    # --- Offers ---

    async def list_offers(self, job_id: str) -> list[Offer]:
        response = await self._request("GET", f"/jobs/{job_id}/offers")
        payload = self._body(response)
        if payload is None:
            return []
        return decode_list(Offer, payload, "offer")

    async def create_offer(self, job_id: str, user_id: str, draft: OfferDraft) -> Offer:
        logger.info(f"Submitting offer of {draft.proposed_price} on job {job_id}")
        response = await self._request(
            "POST", f"/jobs/{job_id}/offers",
            json_body={
                "userId": user_id,
                "proposedPrice": draft.proposed_price,
                "message": draft.message,
            },
        )
        return self._entity(response, Offer, "offer")

    async def accept_offer(self, offer_id: str, user_id: str) -> Offer:
        logger.info(f"Accepting offer {offer_id}")
        response = await self._request("POST", f"/offers/{offer_id}/accept", user_id=user_id)
        return self._entity(response, Offer, "offer")

    async def reject_offer(self, offer_id: str, user_id: str) -> Offer:
        logger.info(f"Rejecting offer {offer_id}")
        response = await self._request("POST", f"/offers/{offer_id}/reject", user_id=user_id)
        return self._entity(response, Offer, "offer")

    # --- Notifications ---

    async def get_notifications(self, user_id: str) -> NotificationsPage:
        response = await self._request("GET", f"/users/{user_id}/notifications")
        payload = self._body(response)
        if payload is None:
            return NotificationsPage()
        return decode(NotificationsPage, payload, "notifications")

    async def mark_notification_read(self, notification_id: str, user_id: str) -> None:
        await self._request("POST", f"/notifications/{notification_id}/read", user_id=user_id)

    # --- Upload ---

    async def upload_media(
        self,
        images: Sequence[Path] = (),
        video: Optional[Path] = None,
    ) -> UploadResult:
        """Upload images and an optional video; returns their URLs"""
        files = [("images", _file_part(Path(p))) for p in images]
        if video is not None:
            files.append(("video", _file_part(Path(video))))

        logger.info(f"Uploading {len(images)} image(s){' and a video' if video else ''}")
        try:
            response = await self._request("POST", "/upload", files=files)
        except ApiResponseError as e:
            if not e.body:
                raise ApiResponseError(e.status_code, e.body, f"Upload failed: HTTP {e.status_code}") from e
            raise

        payload = self._body(response)
        if payload is None:
            return UploadResult()
        return decode(UploadResult, payload, "upload")


def _file_part(path: Path) -> tuple:
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return (path.name, path.read_bytes(), content_type)


def _error_field(body: str) -> Optional[str]:
    """The ``error`` member of a JSON error body, if there is one"""
    if not body:
        return None
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), str):
        return parsed["error"]
    return None
