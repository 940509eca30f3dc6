"""HTTP surface tests."""
from unittest.mock import MagicMock

from docchat.core.exceptions import EnqueueError
from docchat.core.helpers.extracter import DOCX_MIME_TYPE

from conftest import ai_reply, make_docx

API = "/api/v1"


def _upload(client, object_store, text="The project deadline is March 5th.", **extra):
    key = "uploads/20250101000000000000_plan.docx"
    object_store.put(key, make_docx(text), DOCX_MIME_TYPE)
    body = {
        "conversationId": "conv-1",
        "storageKey": key,
        "fileName": "plan.docx",
        "fileType": DOCX_MIME_TYPE,
        **extra,
    }
    return client.post(f"{API}/documents", json=body)


def test_health(client):
    assert client.get("/").json()["status"] == "healthy"
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_document_and_poll_status(client, object_store):
    response = _upload(client, object_store, docId="doc-1")

    assert response.status_code == 201
    body = response.json()
    assert body["docId"] == "doc-1"
    assert body["conversationId"] == "conv-1"
    assert body["processingStatus"] in {"QUEUED", "PROCESSED"}

    statuses = client.get(f"{API}/documents/status", params={"conversationId": "conv-1"}).json()
    assert statuses == [
        {"docId": "doc-1", "fileName": "plan.docx", "processingStatus": "PROCESSED", "processingError": None}
    ]


def test_duplicate_document_conflicts(client, object_store):
    assert _upload(client, object_store, docId="doc-1").status_code == 201
    assert _upload(client, object_store, docId="doc-1").status_code == 409


def test_malformed_document_is_rejected(client):
    response = client.post(f"{API}/documents", json={"conversationId": "conv-1"})
    assert response.status_code == 400


def test_enqueue_failure_fails_document(client, services, object_store):
    services.task_queue = MagicMock()
    services.task_queue.enqueue.side_effect = EnqueueError("queue down")

    assert _upload(client, object_store, docId="doc-1").status_code == 500

    statuses = client.get(f"{API}/documents/status", params={"conversationId": "conv-1"}).json()
    assert statuses[0]["processingStatus"] == "FAILED"


def test_chat_respond(client, object_store):
    _upload(client, object_store)
    client.post(f"{API}/messages", json={"conversationId": "conv-1", "text": "When is the deadline?"})

    response = client.post(
        f"{API}/chat/respond",
        json={"conversationId": "conv-1", "userMessage": "When is the deadline?"},
    )

    assert response.status_code == 200
    message = response.json()
    assert message["text"] == "The deadline is March 5th."
    assert message["isUserMessage"] is False
    assert message["isLoading"] is False

    page = client.get(f"{API}/messages", params={"conversationId": "conv-1"}).json()
    assert [m["isUserMessage"] for m in page["items"]] == [False, True]
    assert page["nextCursor"] is None


def test_chat_respond_failure(client, llm):
    llm.invoke.side_effect = RuntimeError("model down")

    response = client.post(f"{API}/chat/respond", json={"conversationId": "conv-1", "userMessage": "hi"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to get response"}


def test_chat_respond_malformed(client):
    response = client.post(f"{API}/chat/respond", json={"conversationId": "conv-1"})
    assert response.status_code == 400


def test_chat_respond_failure_shows_detail_in_debug(client, llm, monkeypatch):
    from docchat.core.config import settings

    monkeypatch.setattr(settings, "DEBUG", True)
    llm.invoke.side_effect = RuntimeError("model down")

    response = client.post(f"{API}/chat/respond", json={"conversationId": "conv-1", "userMessage": "hi"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to get response", "message": "model down"}


def test_chat_respond_blank_message(client, embedder, llm):
    response = client.post(f"{API}/chat/respond", json={"conversationId": "conv-1", "userMessage": "   "})

    assert response.status_code == 400
    assert embedder.calls == 0
    llm.invoke.assert_not_called()


def test_blank_message_is_not_saved(client):
    response = client.post(f"{API}/messages", json={"conversationId": "conv-1", "text": " \n\t"})
    assert response.status_code == 400
    assert client.get(f"{API}/messages", params={"conversationId": "conv-1"}).json()["items"] == []


def test_chat_respond_unknown_share(client):
    response = client.post(
        f"{API}/chat/respond",
        json={"conversationId": "conv-1", "userMessage": "hi", "shareContextId": "nope"},
    )
    assert response.status_code == 404


def test_messages_paging(client):
    for i in range(5):
        client.post(f"{API}/messages", json={"conversationId": "conv-1", "text": f"m{i}"})

    first = client.get(f"{API}/messages", params={"conversationId": "conv-1", "limit": 2}).json()
    assert [m["text"] for m in first["items"]] == ["m4", "m3"]

    second = client.get(
        f"{API}/messages", params={"conversationId": "conv-1", "limit": 2, "cursor": first["nextCursor"]}
    ).json()
    assert [m["text"] for m in second["items"]] == ["m2", "m1"]


def test_conversation_lifecycle(client, object_store):
    conversation = client.post(f"{API}/conversations", json={"userId": "user-1", "name": "RFP"}).json()
    conversation_id = conversation["conversationId"]
    assert client.get(f"{API}/conversations", params={"userId": "user-1"}).json()[0]["name"] == "RFP"

    share = client.post(f"{API}/conversations/{conversation_id}/share", json={"expiresInSeconds": 3600})
    assert share.status_code == 201
    share_id = share.json()["shareId"]
    deactivated = client.delete(f"{API}/conversations/{conversation_id}/share/{share_id}").json()
    assert deactivated["isActive"] is False

    report = client.delete(f"{API}/conversations/{conversation_id}").json()
    assert report == {"deletedDocuments": 0, "deletedMessages": 0, "failedSteps": []}
    assert client.get(f"{API}/conversations", params={"userId": "user-1"}).json() == []


def test_share_for_unknown_conversation(client):
    assert client.post(f"{API}/conversations/nope/share", json={}).status_code == 404


def test_delete_document_endpoint(client, object_store):
    _upload(client, object_store, docId="doc-1")

    assert client.delete(f"{API}/documents/doc-1", params={"conversationId": "conv-1"}).status_code == 204
    assert client.get(f"{API}/documents", params={"conversationId": "conv-1"}).json() == []
    assert client.delete(f"{API}/documents/doc-1", params={"conversationId": "conv-1"}).status_code == 404


def test_knowledge_questions(client, llm):
    category = client.post(f"{API}/knowledge/categories", json={"name": "Finance"}).json()
    question = client.post(
        f"{API}/knowledge/questions",
        json={"text": "Is a budget included?", "answer": "Yes, see annex B.", "categoryId": category["categoryId"]},
    )
    assert question.status_code == 201
    question_id = question.json()["questionId"]

    listed = client.get(f"{API}/knowledge/questions", params={"categoryId": category["categoryId"]}).json()
    assert [q["questionId"] for q in listed] == [question_id]

    client.post(f"{API}/chat/respond", json={"conversationId": "conv-1", "userMessage": "Is a budget included?"})
    prompt = llm.invoke.call_args.args[0][-1].content
    assert "Yes, see annex B." in prompt

    assert client.delete(f"{API}/knowledge/questions/{question_id}").status_code == 204
    assert client.get(f"{API}/knowledge/questions").json() == []


def test_question_in_unknown_category(client):
    response = client.post(f"{API}/knowledge/questions", json={"text": "Q?", "categoryId": "missing"})
    assert response.status_code == 404


def test_review_flow(client, object_store, llm):
    client.post(f"{API}/knowledge/questions", json={"text": "Is a deadline stated?"})
    llm.invoke.return_value = ai_reply("Answer: Yes\nReason: The deadline is March 5th.")

    assert _upload(client, object_store, docId="doc-1", review=True).status_code == 201

    sessions = client.get(f"{API}/reviews", params={"conversationId": "conv-1"}).json()
    assert len(sessions) == 1
    assert sessions[0]["status"] == "COMPLETED"
    assert sessions[0]["answers"][0]["score"] == 2


def test_internal_job_delivery(client, services, object_store, db):
    from docchat.db.repositories import DocumentRepository

    object_store.put("uploads/a.docx", make_docx("Alpha."), DOCX_MIME_TYPE)
    DocumentRepository(db).create("conv-1", "a.docx", "uploads/a.docx", DOCX_MIME_TYPE, doc_id="doc-9")

    response = client.post(
        f"{API}/internal/jobs/process_document",
        json={"job_id": "doc-9", "payload": {"doc_id": "doc-9"}},
        headers={"X-CloudTasks-TaskRetryCount": "0"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert client.post(f"{API}/internal/jobs/unknown", json={"job_id": "x"}).status_code == 404


def test_internal_job_asks_for_retry(client, embedder, object_store, db):
    from docchat.core.exceptions import QuotaError
    from docchat.db.repositories import DocumentRepository

    object_store.put("uploads/a.docx", make_docx("Alpha."), DOCX_MIME_TYPE)
    DocumentRepository(db).create("conv-1", "a.docx", "uploads/a.docx", DOCX_MIME_TYPE, doc_id="doc-9")
    embedder.errors.append(QuotaError("quota"))

    retry = client.post(f"{API}/internal/jobs/process_document", json={"job_id": "doc-9"})
    assert retry.status_code == 503

    done = client.post(
        f"{API}/internal/jobs/process_document",
        json={"job_id": "doc-9"},
        headers={"X-CloudTasks-TaskRetryCount": "1"},
    )
    assert done.json()["status"] == "completed"
    statuses = client.get(f"{API}/documents/status", params={"conversationId": "conv-1"}).json()
    assert statuses[0]["processingStatus"] == "PROCESSED"
