from lissan import models
from lissan.services.event_bus import NEW_MESSAGE
from lissan.services.language_service import SYSTEM_PROMPTS


def create_conversation(client, headers, **body):
    response = client.post("/api/ai/conversations", headers=headers, json=body)
    assert response.status_code == 201, response.text
    return response.json()["conversation"]


def send(client, headers, conversation_id, content, language=None):
    body = {"content": content}
    if language:
        body["language"] = language
    return client.post(f"/api/ai/conversations/{conversation_id}/messages", headers=headers, json=body)


def add_document(db, company_id, name, content, language):
    db.add(models.Document(
        company_id=company_id,
        filename=f"document-{name}",
        original_name=name,
        file_type="text/plain",
        file_size=len(content),
        content=content,
        language=language
    ))
    db.commit()


def test_create_and_list_conversations(client, register):
    account = register()

    conversation = create_conversation(client, account["headers"], title="Support", language="en")
    default = create_conversation(client, account["headers"])

    assert conversation["title"] == "Support"
    assert conversation["source"] == "dashboard"
    assert default["title"] == "New Conversation"
    assert default["language"] == "auto"

    send(client, account["headers"], conversation["id"], "Hello")
    listed = client.get("/api/ai/conversations", headers=account["headers"]).json()["conversations"]

    assert [c["id"] for c in listed] == [conversation["id"], default["id"]]
    assert listed[0]["messageCount"] == 2
    assert listed[0]["lastMessage"]["role"] == "assistant"
    assert listed[1]["messageCount"] == 0
    assert listed[1]["lastMessage"] is None


def test_english_turn_uses_matching_documents(client, db, register, fake_llm, events):
    account = register()
    company_id = account["company"]["id"]
    add_document(db, company_id, "faq.txt", "Shipping is free over 500 birr.", "en")
    add_document(db, company_id, "guide.txt", "General guide", "auto")
    add_document(db, company_id, "amharic.txt", "የአማርኛ ሰነድ", "am")
    conversation = create_conversation(client, account["headers"])

    response = send(client, account["headers"], conversation["id"], "Is shipping free?")

    assert response.status_code == 200
    data = response.json()
    assert data["userMessage"]["content"] == "Is shipping free?"
    assert data["userMessage"]["language"] == "en"
    assert data["aiMessage"]["content"] == fake_llm.reply
    assert data["aiMessage"]["role"] == "assistant"
    assert data["aiMessage"]["language"] == "en"

    prompt = fake_llm.last_messages
    assert prompt[0] == {"role": "system", "content": SYSTEM_PROMPTS["en"]}
    assert prompt[1]["role"] == "system"
    assert prompt[1]["content"].startswith("Available Documents:\n")
    assert "Document: faq.txt\nContent: Shipping is free over 500 birr...." in prompt[1]["content"]
    assert "Document: guide.txt" in prompt[1]["content"]
    assert "amharic.txt" not in prompt[1]["content"]
    assert prompt[-1] == {"role": "user", "content": "Is shipping free?"}
    assert fake_llm.calls[-1]["max_completion_tokens"] == 2000

    assert [e.name for e in events] == [NEW_MESSAGE]
    payload = events[0].payload
    assert payload["conversationId"] == conversation["id"]
    assert payload["userMessage"]["id"] == data["userMessage"]["id"]
    assert payload["aiMessage"]["id"] == data["aiMessage"]["id"]


def test_amharic_message_gets_amharic_prompt(client, register, fake_llm):
    account = register()
    conversation = create_conversation(client, account["headers"])

    response = send(client, account["headers"], conversation["id"], "ሰላም፣ እንዴት ነህ?")

    assert response.json()["userMessage"]["language"] == "am"
    assert response.json()["aiMessage"]["language"] == "am"
    assert fake_llm.last_messages[0]["content"] == SYSTEM_PROMPTS["am"]
    # No documents, so no context block
    assert [m["role"] for m in fake_llm.last_messages] == ["system", "user"]


def test_declared_language_overrides_detection(client, register, fake_llm):
    account = register()
    conversation = create_conversation(client, account["headers"])

    response = send(client, account["headers"], conversation["id"], "Hello", language="am")

    assert response.json()["userMessage"]["language"] == "am"
    assert fake_llm.last_messages[0]["content"] == SYSTEM_PROMPTS["am"]


def test_document_excerpts_are_truncated(client, db, register, fake_llm):
    account = register()
    add_document(db, account["company"]["id"], "long.txt", "a" * 1500, "en")
    conversation = create_conversation(client, account["headers"])

    send(client, account["headers"], conversation["id"], "Summarize")

    context = fake_llm.last_messages[1]["content"]
    assert ("a" * 1000 + "...") in context
    assert ("a" * 1001) not in context


def test_context_is_capped_at_five_documents(client, db, register, fake_llm):
    account = register()
    for i in range(7):
        add_document(db, account["company"]["id"], f"doc{i}.txt", f"content {i}", "en")
    conversation = create_conversation(client, account["headers"])

    send(client, account["headers"], conversation["id"], "Hi")

    assert fake_llm.last_messages[1]["content"].count("Document: ") == 5


def test_history_is_last_ten_messages_in_order(client, register, fake_llm):
    account = register()
    conversation = create_conversation(client, account["headers"])

    for i in range(6):
        fake_llm.reply = f"reply {i}"
        send(client, account["headers"], conversation["id"], f"question {i}")

    history = fake_llm.last_messages[1:]
    assert len(history) == 10
    # Eleven messages exist once the last question is stored; the first question drops out
    assert history[0] == {"role": "assistant", "content": "reply 0"}
    assert history[-1] == {"role": "user", "content": "question 5"}
    assert history[-2] == {"role": "assistant", "content": "reply 4"}


def test_messages_are_listed_oldest_first(client, register):
    account = register()
    conversation = create_conversation(client, account["headers"])
    send(client, account["headers"], conversation["id"], "first")
    send(client, account["headers"], conversation["id"], "second")

    response = client.get(f"/api/ai/conversations/{conversation['id']}/messages", headers=account["headers"])

    assert response.status_code == 200
    messages = response.json()["messages"]
    assert [m["content"] for m in messages if m["role"] == "user"] == ["first", "second"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
    assert response.json()["conversation"]["id"] == conversation["id"]


def test_conversations_are_tenant_scoped(client, register, fake_llm):
    owner = register()
    other = register()
    conversation = create_conversation(client, owner["headers"])

    send_response = send(client, other["headers"], conversation["id"], "Hi")
    read_response = client.get(f"/api/ai/conversations/{conversation['id']}/messages", headers=other["headers"])
    delete_response = client.delete(f"/api/ai/conversations/{conversation['id']}", headers=other["headers"])

    for response in (send_response, read_response, delete_response):
        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}
    assert fake_llm.calls == []
    assert client.get("/api/ai/conversations", headers=other["headers"]).json()["conversations"] == []


def test_empty_message_is_rejected(client, register, fake_llm):
    account = register()
    conversation = create_conversation(client, account["headers"])

    response = send(client, account["headers"], conversation["id"], "   ")

    assert response.status_code == 400
    assert response.json() == {"error": "Message content is required"}
    assert fake_llm.calls == []


def test_llm_failure_keeps_user_message(client, db, register, fake_llm, events):
    account = register()
    conversation = create_conversation(client, account["headers"])
    fake_llm.error = RuntimeError("provider down")

    response = send(client, account["headers"], conversation["id"], "Hello?")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to process message"}
    stored = db.query(models.Message).filter(models.Message.conversation_id == conversation["id"]).all()
    assert [m.role for m in stored] == ["user"]
    assert events == []


def test_delete_conversation_removes_messages(client, db, register):
    account = register()
    conversation = create_conversation(client, account["headers"])
    send(client, account["headers"], conversation["id"], "Hello")

    response = client.delete(f"/api/ai/conversations/{conversation['id']}", headers=account["headers"])

    assert response.status_code == 200
    assert db.query(models.Message).count() == 0
    assert client.get(f"/api/ai/conversations/{conversation['id']}/messages", headers=account["headers"]).status_code == 404


def test_stateless_chat(client, db, register, fake_llm):
    account = register()

    response = client.post("/api/ai/chat", headers=account["headers"], json={
        "message": "What is injera?",
        "context": "Ethiopian food"
    })

    assert response.status_code == 200
    assert response.json() == {"success": True, "response": fake_llm.reply, "language": "en"}
    assert fake_llm.last_messages == [
        {"role": "system", "content": SYSTEM_PROMPTS["en"]},
        {"role": "system", "content": "Context: Ethiopian food"},
        {"role": "user", "content": "What is injera?"}
    ]
    assert fake_llm.calls[-1]["max_completion_tokens"] == 1000
    assert db.query(models.Message).count() == 0


def test_stateless_chat_requires_message(client, register):
    account = register()

    response = client.post("/api/ai/chat", headers=account["headers"], json={"message": ""})

    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_uploaded_document_reaches_the_prompt(client, db, register, fake_llm):
    account = register()
    content = b"Our coffee shop in Bole opens at 7am and closes at 9pm every day."
    uploaded = client.post(
        "/api/documents/upload",
        headers=account["headers"],
        files={"document": ("hours.txt", content, "text/plain")}
    )
    assert uploaded.status_code == 201, uploaded.text
    conversation = create_conversation(client, account["headers"])

    response = send(client, account["headers"], conversation["id"], "What does the document say?")

    assert response.status_code == 200
    assert response.json()["aiMessage"]["language"] == "en"
    stored = db.query(models.Message).filter(models.Message.role == "assistant").one()
    assert stored.language == "en"
    assert stored.content == fake_llm.reply
    prompt = "\n".join(m["content"] for m in fake_llm.last_messages)
    assert "Document: hours.txt" in prompt
    assert "Our coffee shop in Bole opens at 7am" in prompt
    assert fake_llm.last_messages[0]["content"] == SYSTEM_PROMPTS["en"]
