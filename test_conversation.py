#!/usr/bin/env python3
"""
Tests for the transcript and its open assistant message handle.
"""

from treehole.conversation import EmotionTag, Transcript
from treehole.llm.models import MessageRole
from treehole.main import split_emotion_tag


def test_first_delta_opens_assistant_message():
    transcript = Transcript()
    transcript.add_user_message("hello")

    message = transcript.apply_delta("Hi")
    transcript.apply_delta(" there")

    assert transcript.open_message is message
    assert message.role == "assistant"
    assert message.content == "Hi there"
    assert len(transcript) == 2


def test_user_message_closes_open_reply():
    transcript = Transcript()
    transcript.add_user_message("one")
    first = transcript.apply_delta("a")
    transcript.add_user_message("two")
    second = transcript.apply_delta("b")

    assert first.id != second.id
    assert [m.content for m in transcript.messages] == ["one", "a", "two", "b"]


def test_closed_reply_is_not_appended_to():
    transcript = Transcript()
    transcript.add_user_message("one")
    transcript.apply_delta("a")
    transcript.close_open_message()
    transcript.apply_delta("b")

    assert [m.content for m in transcript.messages] == ["one", "a", "b"]


def test_record_finish_only_touches_open_reply():
    transcript = Transcript()
    transcript.record_finish("stop")
    transcript.add_user_message("one")
    reply = transcript.apply_delta("a")
    transcript.record_finish("stop")

    assert reply.finish_reason == "stop"
    assert transcript.messages[0].finish_reason is None


def test_reset_clears_everything():
    transcript = Transcript()
    transcript.add_user_message("one", EmotionTag.CALM)
    transcript.apply_delta("a")
    transcript.reset()

    assert len(transcript) == 0
    assert transcript.open_message is None


def test_messages_returns_a_copy():
    transcript = Transcript()
    transcript.add_user_message("one")
    transcript.messages.clear()
    assert len(transcript) == 1


def test_to_llm_messages():
    transcript = Transcript()
    transcript.add_user_message("one", EmotionTag.HAPPY)
    transcript.apply_delta("a")

    messages = transcript.to_llm_messages()
    assert [(m.role, m.content) for m in messages] == [
        (MessageRole.USER, "one"),
        (MessageRole.ASSISTANT, "a"),
    ]


def test_split_emotion_tag():
    assert split_emotion_tag("😢 rough day") == ("rough day", EmotionTag.SAD)
    assert split_emotion_tag("  plain text ") == ("plain text", None)
    assert split_emotion_tag("😌") == ("", EmotionTag.CALM)
