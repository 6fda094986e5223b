import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from jose import jwt

from workspace_engine.api.api_client import ApiClient
from workspace_engine.models.session_models import Session

BASE_URL = "http://testserver/api"
TEST_SECRET = "workspace-engine-test-secret"

CLIENT_USERNAME = "alice"
TALENT_USERNAME = "bob"
OUTSIDER_USERNAME = "mallory"
PROJECT_ID = 1


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_token(username: str, expires_in: int = 3600) -> str:
    claims = {"sub": username, "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, TEST_SECRET, algorithm="HS256")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeBackend:
    """In-memory stand-in for the marketplace REST API.

    `fail(op, status, message)` queues a one-shot failure for an operation,
    `gate(op)` holds the next responses of an operation until the returned
    event is set. Every request is recorded in `requests`.
    """

    def __init__(self):
        self.projects: Dict[int, dict] = {}
        self.tasks: Dict[int, dict] = {}
        self.files: Dict[int, dict] = {}
        self.contents: Dict[str, Tuple[bytes, str]] = {}
        self.history: Dict[int, List[dict]] = {}
        self.requests: List[Tuple[str, str, Optional[str]]] = []
        self._failures: Dict[str, List[Tuple[int, Optional[str]]]] = {}
        self._gates: Dict[str, asyncio.Event] = {}
        self._next_task_id = 100
        self._next_file_id = 500
        self._next_history_id = 1
        self.app = self._build_app()

    # --- test controls ---

    def fail(self, op: str, status_code: int, message: Optional[str] = None) -> None:
        self._failures.setdefault(op, []).append((status_code, message))

    def gate(self, op: str) -> asyncio.Event:
        event = asyncio.Event()
        self._gates[op] = event
        return event

    def add_project(self, project_id: int = PROJECT_ID, status: str = "IN_PROGRESS",
                    client: str = CLIENT_USERNAME, talent: Optional[str] = TALENT_USERNAME,
                    deadline: Optional[str] = "2030-01-31") -> dict:
        project = {
            "id": project_id,
            "title": f"Project {project_id}",
            "description": "Landing page redesign",
            "status": status,
            "deadline": deadline,
            "clientUsername": client,
            "assignedTalentUsername": talent,
            "budgetMin": 500,
            "budgetMax": 1500,
            "currency": "EUR",
            "createdAt": _now(),
            "updatedAt": _now(),
        }
        self.projects[project_id] = project
        return project

    def add_task(self, project_id: int = PROJECT_ID, **fields) -> dict:
        task_id = self._next_task_id
        self._next_task_id += 1
        task = {
            "id": task_id,
            "title": f"Task {task_id}",
            "description": None,
            "status": "TO_DO",
            "priority": "MEDIUM",
            "dueDate": None,
            "estimatedHours": None,
            "actualHours": None,
            "notes": None,
            "projectId": project_id,
            "assigneeUsername": TALENT_USERNAME,
            "createdByUsername": CLIENT_USERNAME,
            "createdAt": _now(),
            "updatedAt": _now(),
        }
        task.update(fields)
        task["isCompleted"] = task["status"] == "DONE"
        task["isOverdue"] = False
        self.tasks[task_id] = task
        return task

    def add_file(self, project_id: int = PROJECT_ID, file_name: str = "brief.pdf",
                 file_type: str = "application/pdf", content: bytes = b"%PDF-1.4",
                 uploader: str = TALENT_USERNAME) -> dict:
        file_id = self._next_file_id
        self._next_file_id += 1
        stored = f"{uuid.uuid4().hex}_{file_name}"
        record = {
            "id": file_id,
            "projectId": project_id,
            "fileName": file_name,
            "storedFileName": stored,
            "fileType": file_type,
            "size": len(content),
            "uploaderUsername": uploader,
            "downloadUrl": f"/api/workspace/files/{stored}",
            "createdAt": _now(),
        }
        self.files[file_id] = record
        self.contents[stored] = (content, file_type)
        return record

    # --- plumbing ---

    def _record_history(self, task_id: int, action: str, username: str,
                        old_value: Optional[str] = None, new_value: Optional[str] = None) -> None:
        entry = {
            "id": self._next_history_id,
            "action": action,
            "oldValue": old_value,
            "newValue": new_value,
            "modifiedByUsername": username,
            "timestamp": _now(),
        }
        self._next_history_id += 1
        self.history.setdefault(task_id, []).append(entry)

    async def _intercept(self, op: str, request: Request) -> Optional[Response]:
        auth = request.headers.get("authorization")
        self.requests.append((request.method, request.url.path, auth))
        if not auth or not auth.startswith("Bearer "):
            return JSONResponse({"message": "Not authenticated"}, status_code=401)
        gate = self._gates.get(op)
        if gate is not None:
            await gate.wait()
        queued = self._failures.get(op)
        if queued:
            status_code, message = queued.pop(0)
            return JSONResponse({"message": message} if message else {}, status_code=status_code)
        return None

    @staticmethod
    def _username(request: Request) -> Optional[str]:
        token = request.headers["authorization"][len("Bearer "):]
        return jwt.get_unverified_claims(token).get("sub")

    @staticmethod
    def _not_found() -> JSONResponse:
        return JSONResponse({"message": "Not found"}, status_code=404)

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        @app.get("/api/projects/{project_id}")
        async def get_project(project_id: int, request: Request):
            blocked = await backend._intercept("get_project", request)
            if blocked:
                return blocked
            project = backend.projects.get(project_id)
            return project if project else backend._not_found()

        @app.get("/api/tasks/projects/{project_id}")
        async def list_tasks(project_id: int, request: Request):
            blocked = await backend._intercept("list_tasks", request)
            if blocked:
                return blocked
            return [t for t in backend.tasks.values() if t["projectId"] == project_id]

        @app.post("/api/tasks/projects/{project_id}", status_code=201)
        async def create_task(project_id: int, request: Request):
            blocked = await backend._intercept("create_task", request)
            if blocked:
                return blocked
            body = await request.json()
            task = backend.add_task(project_id, createdByUsername=backend._username(request), **body)
            backend._record_history(task["id"], "TASK_CREATED", backend._username(request), new_value=task["title"])
            return JSONResponse(task, status_code=201)

        @app.get("/api/tasks/{task_id}")
        async def get_task(task_id: int, request: Request):
            blocked = await backend._intercept("get_task", request)
            if blocked:
                return blocked
            task = backend.tasks.get(task_id)
            return task if task else backend._not_found()

        @app.put("/api/tasks/{task_id}")
        async def update_task(task_id: int, request: Request):
            blocked = await backend._intercept("update_task", request)
            if blocked:
                return blocked
            task = backend.tasks.get(task_id)
            if task is None:
                return backend._not_found()
            body = await request.json()
            if "status" in body and body["status"] != task["status"]:
                backend._record_history(task_id, "STATUS_UPDATED", backend._username(request),
                                        task["status"], body["status"])
            task.update(body)
            task["isCompleted"] = task["status"] == "DONE"
            task["updatedAt"] = _now()
            return task

        @app.patch("/api/tasks/{task_id}/status")
        async def update_task_status(task_id: int, request: Request):
            blocked = await backend._intercept("update_task_status", request)
            if blocked:
                return blocked
            task = backend.tasks.get(task_id)
            if task is None:
                return backend._not_found()
            body = await request.json()
            backend._record_history(task_id, "STATUS_UPDATED", backend._username(request),
                                    task["status"], body["status"])
            task["status"] = body["status"]
            task["isCompleted"] = task["status"] == "DONE"
            task["updatedAt"] = _now()
            return task

        @app.delete("/api/tasks/{task_id}")
        async def delete_task(task_id: int, request: Request):
            blocked = await backend._intercept("delete_task", request)
            if blocked:
                return blocked
            if backend.tasks.pop(task_id, None) is None:
                return backend._not_found()
            return Response(status_code=204)

        @app.get("/api/tasks/{task_id}/history")
        async def get_task_history(task_id: int, request: Request):
            blocked = await backend._intercept("get_task_history", request)
            if blocked:
                return blocked
            return backend.history.get(task_id, [])

        @app.get("/api/projects/{project_id}/workspace/files")
        async def list_files(project_id: int, request: Request):
            blocked = await backend._intercept("list_files", request)
            if blocked:
                return blocked
            return [f for f in backend.files.values() if f["projectId"] == project_id]

        @app.post("/api/projects/{project_id}/workspace/files", status_code=201)
        async def upload_file(project_id: int, request: Request, file: UploadFile = File(...)):
            blocked = await backend._intercept("upload_file", request)
            if blocked:
                return blocked
            content = await file.read()
            record = backend.add_file(project_id, file.filename, file.content_type, content,
                                      uploader=backend._username(request))
            return JSONResponse(record, status_code=201)

        @app.get("/api/workspace/files/{stored_file_name}")
        async def download_file(stored_file_name: str, request: Request):
            blocked = await backend._intercept("download_file", request)
            if blocked:
                return blocked
            if stored_file_name not in backend.contents:
                return backend._not_found()
            content, content_type = backend.contents[stored_file_name]
            return Response(content=content, media_type=content_type)

        @app.delete("/api/workspace/files/{file_id}")
        async def delete_file(file_id: int, request: Request):
            blocked = await backend._intercept("delete_file", request)
            if blocked:
                return blocked
            record = backend.files.pop(file_id, None)
            if record is None:
                return backend._not_found()
            backend.contents.pop(record["storedFileName"], None)
            return Response(status_code=204)

        return app


@pytest.fixture
def backend() -> FakeBackend:
    fake = FakeBackend()
    fake.add_project()
    return fake


@pytest.fixture
async def client_factory(backend: FakeBackend):
    http_clients: List[httpx.AsyncClient] = []

    def factory(username: Optional[str] = CLIENT_USERNAME, token: Optional[str] = None) -> ApiClient:
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=backend.app), base_url=BASE_URL)
        http_clients.append(http)
        if token is None and username is not None:
            token = make_token(username)
        return ApiClient(Session(token=token), http_client=http)

    yield factory
    for http in http_clients:
        await http.aclose()


@pytest.fixture
async def api(client_factory) -> ApiClient:
    return client_factory(CLIENT_USERNAME)
