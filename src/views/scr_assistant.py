from typing import Optional

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, Input, Label, ListItem, ListView, Markdown

from db.models import Chat
from services.assistant import ask_assistant, is_configured
from utils.errors import StoreError
from utils.pure import truncate_words
from views.base_screen import BaseScreen
from views.modal_dialog import DialogModal


def _transcript(chat: Optional[Chat]) -> str:
    if chat is None or not chat.messages:
        return "*Ask me anything about our products.*"
    parts = []
    for message in chat.messages:
        if message.sender == "user":
            parts.append(f"**You:** {message.text}")
        else:
            parts.append(f"**Assistant:**\n\n{message.text}")
    return "\n\n".join(parts)


class AssistantScreen(BaseScreen):
    """
    Chat with the shopping assistant.

    Layout:
    - Left: conversations, newest first, with new/delete buttons.
    - Right: the current conversation and the question input.
    """

    SUB_TITLE = "Shopping Assistant"

    def compose(self) -> ComposeResult:
        yield from super().compose()
        with Horizontal(id="hort-assistant"):
            with Vertical(id="div-chats"):
                yield Button("+ New Chat", id="btn-new-chat")
                yield ListView(id="list-chats")
                yield Button("Delete Chat", id="btn-delete-chat", variant="error")
            with Vertical():
                with VerticalScroll(id="vertscroll-messages"):
                    yield Markdown("", id="md-messages")
                with Horizontal(id="hort-ask"):
                    yield Input(placeholder="Ask me anything...", id="input-question")
                    yield Button("Send", id="btn-send", variant="primary")

    def on_mount(self):
        self.app.state.chats.load()
        if not is_configured():
            self.notify(
                "Set STOREFRONT_ASSISTANT_URL and STOREFRONT_ASSISTANT_API_KEY to enable it.",
                title="Assistant Unavailable",
                severity="warning",
            )
        self.render_chats()

    @work(exclusive=True, group="render")  # exclusive, else two renders mount duplicate ids
    async def render_chats(self) -> None:
        history = self.app.state.chats
        current = history.current

        list_chats = self.query_one("#list-chats", ListView)
        await list_chats.clear()
        await list_chats.extend(
            [
                ListItem(Label(truncate_words(chat.title, 3)), id="list-chat-" + chat.id)
                for chat in history.chats
            ]
        )
        for item in list_chats.children:
            item.highlighted = current is not None and item.id == "list-chat-" + current.id

        await self.query_one("#md-messages", Markdown).update(_transcript(current))
        self.query_one("#vertscroll-messages").scroll_end(animate=False)

    @on(ListView.Selected, "#list-chats")
    def handle_chat_selected(self, event: ListView.Selected):
        if self.app.state.chats.select(event.item.id.removeprefix("list-chat-")):
            self.render_chats()

    @on(Button.Pressed, "#btn-new-chat")
    def handle_new_chat(self):
        self.app.state.chats.new_chat()
        self.render_chats()
        self.query_one("#input-question", Input).focus()

    @on(Button.Pressed, "#btn-delete-chat")
    @work()
    async def handle_delete_chat(self):
        current = self.app.state.chats.current
        if current is None:
            return
        if not await self.app.push_screen_wait(
            DialogModal(
                "Are you sure you want to delete this chat?",
                primary_text="Yes",
                secondary_text="No",
                tone="error",
            )
        ):
            return
        self.app.state.chats.delete(current.id)
        self.render_chats()

    @on(Input.Submitted, "#input-question")
    @on(Button.Pressed, "#btn-send")
    @work(exclusive=True, group="ask")
    async def handle_send(self):
        question_input = self.query_one("#input-question", Input)
        btn_send = self.query_one("#btn-send", Button)
        question = question_input.value

        history = self.app.state.chats
        chat_id = history.begin_exchange(question)
        if chat_id is None:
            return

        question_input.value = ""
        question_input.disabled = btn_send.disabled = True
        self.render_chats()
        try:
            answer = await ask_assistant(question)
        except StoreError as e:
            self.notify_error(e)
            answer = e.description
        finally:
            question_input.disabled = btn_send.disabled = False

        history.finish_exchange(chat_id, answer)
        self.render_chats()
        question_input.focus()
