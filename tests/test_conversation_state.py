import json
import unittest

from jarvisagent.services.conversation import Conversation, ToolCallRequest, Turn


def _call(call_id: str, name: str = "get_emails", **arguments):
    return ToolCallRequest(id=call_id, name=name, arguments=arguments)


class ConversationStateTests(unittest.TestCase):
    def setUp(self):
        self.conversation = Conversation(conversation_id="conv-1", user_id="user-1")

    def test_turn_rejects_unknown_role(self):
        with self.assertRaises(ValueError):
            Turn(role="narrator", content="hi")

    def test_system_turns_are_never_stored(self):
        accepted = self.conversation.append(Turn.system("be nice"))

        self.assertFalse(accepted)
        self.assertEqual(len(self.conversation), 0)

    def test_tool_turn_without_assistant_call_is_dropped(self):
        self.conversation.append(Turn.user("hi"))

        with self.assertLogs("jarvisagent.services.conversation", level="WARNING"):
            accepted = self.conversation.append(Turn.tool_result("call-1", "get_emails", "[]"))

        self.assertFalse(accepted)
        self.assertEqual([t.role for t in self.conversation.turns], ["user"])

    def test_tool_turns_must_answer_pending_calls_once(self):
        self.conversation.append(Turn.user("check mail and calendar"))
        self.conversation.append(
            Turn.assistant("", [_call("a"), _call("b", "get_today_events")])
        )

        self.assertEqual(self.conversation.pending_tool_call_ids(), ["a", "b"])
        self.assertTrue(self.conversation.append(Turn.tool_result("a", "get_emails", "[]")))
        self.assertFalse(self.conversation.append(Turn.tool_result("a", "get_emails", "[]")))
        self.assertFalse(self.conversation.append(Turn.tool_result("zzz", "get_emails", "[]")))
        self.assertEqual(self.conversation.pending_tool_call_ids(), ["b"])
        self.assertTrue(
            self.conversation.append(Turn.tool_result("b", "get_today_events", "[]"))
        )
        self.assertEqual(self.conversation.pending_tool_call_ids(), [])

    def test_snapshot_prepends_system_prompt_without_storing_it(self):
        self.conversation.append(Turn.user("hello"))

        snapshot = self.conversation.snapshot("You are Jarvis")

        self.assertEqual([t.role for t in snapshot], ["system", "user"])
        self.assertEqual(snapshot[0].content, "You are Jarvis")
        self.assertEqual(len(self.conversation), 1)

    def test_to_message_serializes_tool_calls_in_wire_shape(self):
        turn = Turn.assistant("", [_call("call-9", "send_email", to="a@b.com")])

        message = turn.to_message()

        self.assertEqual(message["role"], "assistant")
        wire = message["tool_calls"][0]
        self.assertEqual(wire["id"], "call-9")
        self.assertEqual(wire["type"], "function")
        self.assertEqual(wire["function"]["name"], "send_email")
        self.assertEqual(json.loads(wire["function"]["arguments"]), {"to": "a@b.com"})

    def test_tool_result_message_carries_call_id_and_name(self):
        message = Turn.tool_result("call-1", "get_emails", "[]").to_message()

        self.assertEqual(
            message,
            {"role": "tool", "content": "[]", "tool_call_id": "call-1", "name": "get_emails"},
        )

    def test_truncate_keeps_newest_turns(self):
        for index in range(6):
            self.conversation.append(Turn.user(f"u{index}"))
            self.conversation.append(Turn.assistant(f"a{index}"))

        removed = self.conversation.truncate(4)

        self.assertEqual(removed, 8)
        self.assertEqual(
            [t.content for t in self.conversation.turns], ["u4", "a4", "u5", "a5"]
        )

    def test_truncate_never_leaves_orphan_tool_turns_at_the_front(self):
        self.conversation.append(Turn.user("mail and events"))
        self.conversation.append(
            Turn.assistant("", [_call("a"), _call("b", "get_today_events")])
        )
        self.conversation.append(Turn.tool_result("a", "get_emails", "[]"))
        self.conversation.append(Turn.tool_result("b", "get_today_events", "[]"))
        self.conversation.append(Turn.assistant("Nothing new."))

        self.conversation.truncate(2)

        roles = [t.role for t in self.conversation.turns]
        self.assertEqual(roles, ["assistant"])
        self.assertEqual(self.conversation.turns[-1].content, "Nothing new.")

    def test_truncate_rejects_negative_limit(self):
        with self.assertRaises(ValueError):
            self.conversation.truncate(-1)

    def test_restore_replays_turns_through_append_rules(self):
        restored = Conversation.restore(
            conversation_id="conv-2",
            user_id="user-1",
            turns=[
                Turn.system("stale prompt"),
                Turn.tool_result("orphan", "get_emails", "[]"),
                Turn.user("hi"),
                Turn.assistant("hello"),
            ],
        )

        self.assertEqual([t.role for t in restored.turns], ["user", "assistant"])


if __name__ == "__main__":
    unittest.main()
