import httpx
import pytest

from workspace_engine.api.api_client import ApiClient
from workspace_engine.models.file_models import LocalFile, UploadStatusEnum
from workspace_engine.models.session_models import Session
from workspace_engine.services.file_service import FileAttachmentManager
from workspace_engine.services.task_service import TaskService
from workspace_engine.services.workspace_service import WorkspaceOrchestrator
from workspace_engine.utils.errors import GENERIC_ERROR_MESSAGE, ServerError

from conftest import BASE_URL, CLIENT_USERNAME, PROJECT_ID, TALENT_USERNAME, make_token

pytestmark = [pytest.mark.integration, pytest.mark.api, pytest.mark.anyio]

GATEWAY_PAGE = "<html><body>502 gateway page</body></html>"


def gateway_handler(request: httpx.Request) -> httpx.Response:
    # Project is readable; tasks come back as an HTML page, files in the wrong shape
    path = request.url.path
    if path == f"/api/projects/{PROJECT_ID}":
        return httpx.Response(200, json={
            "id": PROJECT_ID, "title": "Landing page", "status": "IN_PROGRESS",
            "clientUsername": CLIENT_USERNAME, "assignedTalentUsername": TALENT_USERNAME,
        })
    if path == f"/api/tasks/projects/{PROJECT_ID}":
        return httpx.Response(200, text=GATEWAY_PAGE, headers={"content-type": "text/html"})
    if path == f"/api/projects/{PROJECT_ID}/workspace/files":
        if request.method == "POST":
            return httpx.Response(201, json={"uploaded": True})
        return httpx.Response(200, json={"files": []})
    if path == "/api/tasks/7":
        return httpx.Response(200, json=[{"id": "seven"}])
    return httpx.Response(404)


@pytest.fixture
async def gateway_client():
    async with httpx.AsyncClient(transport=httpx.MockTransport(gateway_handler), base_url=BASE_URL) as http:
        yield ApiClient(Session(token=make_token(CLIENT_USERNAME)), http_client=http)


async def test_html_body_becomes_server_error(gateway_client: ApiClient):
    with pytest.raises(ServerError) as exc_info:
        await gateway_client.list_tasks(PROJECT_ID)
    assert exc_info.value.message == GENERIC_ERROR_MESSAGE
    assert exc_info.value.status_code == 200

async def test_wrong_shape_becomes_server_error(gateway_client: ApiClient):
    with pytest.raises(ServerError):
        await gateway_client.get_task(7)
    with pytest.raises(ServerError):
        await gateway_client.list_files(PROJECT_ID)

async def test_load_tasks_returns_err(gateway_client: ApiClient):
    result = await TaskService(gateway_client, PROJECT_ID).load_tasks()
    assert result.ok is False
    assert isinstance(result.error, ServerError)

async def test_file_list_and_upload_return_errors(gateway_client: ApiClient):
    manager = FileAttachmentManager(gateway_client, PROJECT_ID)
    listed = await manager.list_files()
    assert isinstance(listed.error, ServerError)

    events = [e async for e in manager.upload(LocalFile(file_name="notes.txt", content=b"hello",
                                                        content_type="text/plain"))]
    assert events[-1].status == UploadStatusEnum.ERROR
    assert events[-1].error == GENERIC_ERROR_MESSAGE

async def test_orchestrator_survives_malformed_bodies(gateway_client: ApiClient):
    workspace = WorkspaceOrchestrator(gateway_client, PROJECT_ID)
    result = await workspace.load()
    assert result.ok
    assert workspace.ready is True
    assert workspace.errors == {"tasks": GENERIC_ERROR_MESSAGE, "files": GENERIC_ERROR_MESSAGE}
    assert workspace.progress.percentage == 25
