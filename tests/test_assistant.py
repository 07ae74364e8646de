import json
import unittest
from unittest import mock

import httpx
from support import StoreTestCase

from services import assistant
from utils.config import Settings
from utils.errors import AssistantError
from utils.state import CHATS_STORAGE_KEY, PENDING_ANSWER, ChatHistory

CONFIGURED = Settings(
    assistant_url="https://assistant.example.com/v1/answer",
    assistant_api_key="k-123",
    assistant_timeout=5.0,
)


def answer_json(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class AskAssistantTestCase(unittest.IsolatedAsyncioTestCase):
    def use_transport(self, handler):
        """Route the assistant's http client through `handler`."""
        self.requests = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        patcher = mock.patch.object(
            assistant,
            "_get_async_client",
            lambda: httpx.AsyncClient(transport=httpx.MockTransport(record)),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def setUp(self):
        patcher = mock.patch.object(assistant, "settings", CONFIGURED)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_answer_is_extracted(self):
        self.use_transport(
            lambda request: httpx.Response(200, json=answer_json("We ship in 2 days."))
        )

        answer = await assistant.ask_assistant("  How fast is shipping?  ")
        self.assertEqual(answer, "We ship in 2 days.")

        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.params["key"], "k-123")
        self.assertEqual(request.url.path, "/v1/answer")
        self.assertEqual(
            json.loads(request.content),
            {"contents": [{"parts": [{"text": "How fast is shipping?"}]}]},
        )

    async def test_unusable_replies_become_apologies(self):
        self.use_transport(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with self.assertLogs("services.assistant", level="WARNING"):
            self.assertEqual(await assistant.ask_assistant("hi"), assistant.UNREADABLE_ANSWER)

        for body in ({}, {"candidates": []}, answer_json(""), {"candidates": "nope"}):
            with self.subTest(body=body):
                self.use_transport(lambda request, body=body: httpx.Response(200, json=body))
                self.assertEqual(await assistant.ask_assistant("hi"), assistant.NO_ANSWER)

    async def test_http_error_status(self):
        self.use_transport(lambda request: httpx.Response(503, json={"error": "busy"}))
        with self.assertLogs("services.assistant", level="ERROR"):
            with self.assertRaises(AssistantError) as ctx:
                await assistant.ask_assistant("hi")
        self.assertIn("503", ctx.exception.description)
        self.assertEqual(ctx.exception.title, "Assistant Unavailable")

    async def test_network_failure(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        self.use_transport(refuse)
        with self.assertLogs("services.assistant", level="ERROR"):
            with self.assertRaises(AssistantError):
                await assistant.ask_assistant("hi")

    async def test_not_configured_makes_no_request(self):
        self.use_transport(lambda request: httpx.Response(200, json=answer_json("x")))
        with mock.patch.object(assistant, "settings", Settings()):
            self.assertFalse(assistant.is_configured())
            with self.assertRaises(AssistantError):
                await assistant.ask_assistant("hi")
        self.assertEqual(self.requests, [])


class ChatHistoryTestCase(StoreTestCase):
    def test_load_starts_with_one_saved_chat(self):
        history = ChatHistory(self.storage)
        history.load()

        self.assertEqual(len(history.chats), 1)
        self.assertEqual(history.current.title, "New Chat")
        saved = json.loads(self.storage.get_item(CHATS_STORAGE_KEY))
        self.assertEqual(saved[0]["id"], history.current.id)

    def test_exchange_names_chat_and_replaces_pending_answer(self):
        history = ChatHistory(self.storage)
        history.load()

        chat_id = history.begin_exchange("Do you have any wireless mice in stock today please?")
        chat = history.get(chat_id)
        self.assertEqual(chat.title, "Do you have any wireless mice in stock...")
        self.assertEqual([m.sender for m in chat.messages], ["user", "bot"])
        self.assertEqual(chat.messages[-1].text, PENDING_ANSWER)

        history.finish_exchange(chat_id, "Yes, three models.")
        self.assertEqual(history.get(chat_id).messages[-1].text, "Yes, three models.")

        # later questions keep the title
        chat_id = history.begin_exchange("Which is cheapest?")
        history.finish_exchange(chat_id, "The basic one.")
        self.assertEqual(history.get(chat_id).title, "Do you have any wireless mice in stock...")
        self.assertEqual(len(history.get(chat_id).messages), 4)

        self.assertIsNone(history.begin_exchange("   "))

        restored = ChatHistory(self.storage)
        restored.load()
        self.assertEqual(restored.chats, history.chats)

    def test_answer_lands_in_its_own_chat(self):
        history = ChatHistory(self.storage)
        history.load()
        first_id = history.begin_exchange("Return policy?")

        second = history.new_chat()
        self.assertEqual(history.current.id, second.id)
        history.finish_exchange(first_id, "30 days.")

        self.assertEqual(history.get(first_id).messages[-1].text, "30 days.")
        self.assertEqual(history.get(second.id).messages, ())

    def test_new_and_delete(self):
        history = ChatHistory(self.storage)
        history.load()
        oldest = history.current
        newer = history.new_chat()
        newest = history.new_chat()
        self.assertEqual([c.id for c in history.chats], [newest.id, newer.id, oldest.id])

        # deleting another chat keeps the selection
        self.assertTrue(history.select(oldest.id))
        history.delete(newer.id)
        self.assertEqual(history.current.id, oldest.id)

        # deleting the current one moves to the newest left
        history.delete(oldest.id)
        self.assertEqual(history.current.id, newest.id)

        # deleting the last one starts over
        history.delete(newest.id)
        self.assertEqual(len(history.chats), 1)
        self.assertNotEqual(history.current.id, newest.id)
        self.assertEqual(history.current.messages, ())
        self.assertFalse(history.select("missing"))

    def test_load_drops_malformed_chats(self):
        self.storage.set_item(
            CHATS_STORAGE_KEY,
            json.dumps(
                [
                    {
                        "id": "a",
                        "title": "Shipping",
                        "messages": [{"sender": "user", "text": "hi", "timestamp": 1.0}],
                    },
                    {
                        "id": "b",
                        "title": "Bad",
                        "messages": [{"sender": "robot", "text": "hi", "timestamp": 1.0}],
                    },
                    {"id": "a", "title": "Duplicate", "messages": []},
                    {"title": "No id"},
                    "garbage",
                ]
            ),
        )
        history = ChatHistory(self.storage)
        with self.assertLogs("utils.state", level="WARNING"):
            history.load()
        self.assertEqual([c.title for c in history.chats], ["Shipping"])
        self.assertEqual(history.current.id, "a")

    def test_unreadable_history_starts_fresh(self):
        self.storage.set_item(CHATS_STORAGE_KEY, "{broken")
        history = ChatHistory(self.storage)
        with self.assertLogs("utils.state", level="WARNING"):
            history.load()
        self.assertEqual(len(history.chats), 1)
        self.assertEqual(history.current.title, "New Chat")


if __name__ == "__main__":
    unittest.main()
