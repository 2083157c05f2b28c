from __future__ import annotations

import pytest

from lightpad.editor.document_model import DocumentKind
from lightpad.editor.engine import (
    EditListener,
    HtmlDocumentEngine,
    LanguageExtension,
    TextBufferEngine,
    language_extensions,
)


def test_state_survives_detach_and_reattach() -> None:
    engine = TextBufferEngine()
    first = engine.create_state("one")
    second = engine.create_state("two")

    view = engine.attach(first)
    engine.insert_text(view, "!", position=3)
    stashed = engine.detach_state(view)
    engine.attach(second)

    assert engine.current_text(view) == "two"
    assert engine.state_text(stashed) == "one!"
    assert engine.state_text(None) == ""


def test_listeners_receive_text_and_cursor() -> None:
    engine = TextBufferEngine()
    texts: list[str] = []
    cursors: list[int] = []
    state = engine.create_state("abc", [EditListener(on_text=texts.append, on_cursor=cursors.append)])
    view = engine.attach(state)

    engine.insert_text(view, "x")
    engine.replace_text(view, "xabc")
    engine.set_cursor(view, 99)

    assert texts == ["xabc"]
    assert cursors == [4]
    assert engine.cursor_offset(view) == 4


def test_destroyed_view_is_replaced() -> None:
    engine = TextBufferEngine()
    view = engine.attach(engine.create_state(""))

    engine.destroy_view(view)

    assert engine.view is None
    with pytest.raises(RuntimeError):
        engine.current_text(view)
    assert engine.attach(engine.create_state("")) is not view


def test_html_engine_notifies_only_on_edits() -> None:
    engine = HtmlDocumentEngine()
    changes: list[str] = []
    engine.add_change_listener(changes.append)

    engine.load("<p>a</p>")
    engine.set_content("<p>a</p>")
    engine.set_content("<p>b</p>")

    assert changes == ["<p>b</p>"]
    assert engine.serialize() == "<p>b</p>"


@pytest.mark.parametrize(
    ("kind", "path", "language"),
    [
        (DocumentKind.CHECKLIST, "/x/list.todo", "checklist"),
        (DocumentKind.PLAIN_TEXT, "/x/README.md", "markdown"),
        (DocumentKind.PLAIN_TEXT, "/x/app.py", "python"),
        (DocumentKind.PLAIN_TEXT, None, "text"),
    ],
)
def test_language_extensions(kind: DocumentKind, path: str | None, language: str) -> None:
    assert language_extensions(kind, path) == [LanguageExtension(language)]
