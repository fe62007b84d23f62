"""Tests for IdentifierResolver against a stubbed Graph API."""

import asyncio
import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.graph import DirectoryError
from src.resolver import IdentifierResolver, MeetingCriteria, ResolvedIdentifier, ResourceKind
from src.resolver.resolver import _parse_timestamp
from tests._fakes import GraphStub

GUID = "11111111-2222-3333-4444-555555555555"
FALCON_ID = "aaaaaaaa-0000-0000-0000-000000000001"
ORG_ONLY_ID = "bbbbbbbb-0000-0000-0000-000000000002"
TOKEN = "delegated-token"


def _forbidden(request):
    return httpx.Response(403, json={"error": {"code": "Forbidden", "message": "admin consent required"}})


class ResolverTestCase(unittest.TestCase):
    def setUp(self):
        self.graph = GraphStub()
        self.resolver = IdentifierResolver(self.graph.factory())


class TestResolveTeam(ResolverTestCase):
    def test_canonical_id_makes_no_calls(self):
        self.assertEqual(asyncio.run(self.resolver.resolve_team(TOKEN, GUID)), GUID)
        self.assertEqual(self.graph.requests, [])

    def test_membership_match_is_case_insensitive(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": [
            {"id": "other", "displayName": "Project Eagle"},
            {"id": FALCON_ID, "displayName": "project falcon"},
        ]})
        self.assertEqual(asyncio.run(self.resolver.resolve_team(TOKEN, "Project Falcon")), FALCON_ID)
        self.assertEqual(self.graph.paths(), ["/me/joinedTeams"])

    def test_falls_back_to_org_listing(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": []})
        self.graph.add("GET", "/teams", {"value": [{"id": ORG_ONLY_ID, "displayName": "Finance"}]})
        self.assertEqual(asyncio.run(self.resolver.resolve_team(TOKEN, "FINANCE")), ORG_ONLY_ID)

    def test_no_match_anywhere_is_none(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": [{"id": "x", "displayName": "Falcon"}]})
        self.graph.add("GET", "/teams", {"value": [{"id": "y", "displayName": "Project Falcons"}]})
        self.assertIsNone(asyncio.run(self.resolver.resolve_team(TOKEN, "Project Falcon")))

    def test_org_listing_authorization_failure_is_ignored(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": []})
        self.graph.add("GET", "/teams", _forbidden)
        self.assertIsNone(asyncio.run(self.resolver.resolve_team(TOKEN, "Finance")))

    def test_membership_failure_propagates(self):
        self.graph.add("GET", "/me/joinedTeams", lambda r: httpx.Response(401, json={"error": {"code": "InvalidAuthenticationToken"}}))
        with self.assertRaises(DirectoryError) as ctx:
            asyncio.run(self.resolver.resolve_team(TOKEN, "Finance"))
        self.assertEqual(ctx.exception.status, 401)

    def test_duplicate_names_first_match_wins(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": [
            {"id": "first", "displayName": "Ops"},
            {"id": "second", "displayName": "ops"},
        ]})
        self.assertEqual(asyncio.run(self.resolver.resolve_team(TOKEN, "Ops")), "first")

    def test_empty_input(self):
        self.assertIsNone(asyncio.run(self.resolver.resolve_team(TOKEN, "")))


class TestResolveChannel(ResolverTestCase):
    def test_channel_name_within_named_team(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": [{"id": FALCON_ID, "displayName": "Project Falcon"}]})
        self.graph.add("GET", f"/teams/{FALCON_ID}/channels", {"value": [
            {"id": "19:general@thread.tacv2", "displayName": "General"},
            {"id": "19:launch@thread.tacv2", "displayName": "Launch Planning"},
        ]})
        resolved = asyncio.run(self.resolver.resolve_channel(TOKEN, "launch planning", "Project Falcon"))
        self.assertEqual(
            resolved,
            ResolvedIdentifier(kind=ResourceKind.CHANNEL, canonical_id="19:launch@thread.tacv2", scope_id=FALCON_ID),
        )

    def test_canonical_channel_and_team_make_no_calls(self):
        resolved = asyncio.run(self.resolver.resolve_channel(TOKEN, "19:abc@thread.tacv2", GUID))
        self.assertEqual(resolved.canonical_id, "19:abc@thread.tacv2")
        self.assertEqual(resolved.scope_id, GUID)
        self.assertEqual(self.graph.requests, [])

    def test_unknown_team_is_none(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": []})
        self.graph.add("GET", "/teams", {"value": []})
        self.assertIsNone(asyncio.run(self.resolver.resolve_channel(TOKEN, "General", "Nope")))

    def test_unknown_channel_is_none(self):
        self.graph.add("GET", f"/teams/{GUID}/channels", {"value": [{"id": "19:g@thread.tacv2", "displayName": "General"}]})
        self.assertIsNone(asyncio.run(self.resolver.resolve_channel(TOKEN, "Random", GUID)))


class TestResolveUser(ResolverTestCase):
    def _users(self, by_filter: dict):
        def respond(request):
            flt = request.url.params.get("$filter", "")
            for needle, users in by_filter.items():
                if needle in flt:
                    return httpx.Response(200, json={"value": users})
            return httpx.Response(200, json={"value": []})

        self.graph.add("GET", "/users", respond)

    def test_canonical_user(self):
        self.assertEqual(asyncio.run(self.resolver.resolve_user(TOKEN, GUID)), GUID)
        self.assertEqual(self.graph.requests, [])

    def test_email_prefix_match(self):
        self._users({"startswith(mail,'jane@contoso.com')": [{"id": "u-jane"}, {"id": "u-jane2"}]})
        self.assertEqual(asyncio.run(self.resolver.resolve_user(TOKEN, "jane@contoso.com")), "u-jane")

    def test_display_name_prefix_match(self):
        self._users({"startswith(displayName,'Jane')": [{"id": "u-jane"}]})
        self.assertEqual(asyncio.run(self.resolver.resolve_user(TOKEN, "Jane")), "u-jane")
        self.assertEqual(self.graph.paths(), ["/users"])

    def test_quotes_are_escaped_in_filter(self):
        self._users({"startswith(displayName,'O''Brien')": [{"id": "u-ob"}]})
        self.assertEqual(asyncio.run(self.resolver.resolve_user(TOKEN, "O'Brien")), "u-ob")

    def test_principal_name_fallback(self):
        self._users({})
        self.graph.add("GET", "/users/bob@contoso.com", {"id": "u-bob"})
        self.assertEqual(asyncio.run(self.resolver.resolve_user(TOKEN, "bob@contoso.com")), "u-bob")
        self.assertEqual(self.graph.paths(), ["/users", "/users", "/users/bob@contoso.com"])

    def test_principal_name_is_path_encoded(self):
        self._users({})
        self.graph.add("GET", "/users/jane?x/y", {"id": "u-jane"})
        self.assertEqual(asyncio.run(self.resolver.resolve_user(TOKEN, "jane?x/y")), "u-jane")
        self.assertEqual(self.graph.requests[-1].url.raw_path, b"/v1.0/users/jane%3Fx%2Fy")

    def test_not_found_anywhere_is_none(self):
        self._users({})
        self.assertIsNone(asyncio.run(self.resolver.resolve_user(TOKEN, "nobody@contoso.com")))

    def test_authorization_failure_propagates(self):
        self.graph.add("GET", "/users", _forbidden)
        with self.assertRaises(DirectoryError):
            asyncio.run(self.resolver.resolve_user(TOKEN, "Jane"))


class TestFindMeeting(ResolverTestCase):
    MEETINGS = [
        {"id": "m-daily", "subject": "Daily Sync", "startDateTime": "2026-03-01T09:00:00.0000000Z",
         "participants": {"organizer": {"identity": {"user": {"id": "u-ann"}}}}},
        {"id": "m-weekly", "subject": "Weekly Sync", "startDateTime": "2026-03-05T09:00:00.0000000Z",
         "participants": {"organizer": {"identity": {"user": {"id": "u-bob"}}}}},
        {"id": "m-standup", "subject": "Standup", "startDateTime": "2026-03-07T09:00:00Z",
         "participants": {"organizer": {"identity": {"user": {"id": "u-ann"}}}}},
        {"id": "m-undated", "subject": "Sync prep"},
    ]

    def setUp(self):
        super().setUp()
        self.graph.add("GET", "/me/onlineMeetings", {"value": self.MEETINGS})

    def find(self, **criteria):
        return asyncio.run(self.resolver.find_meeting_id(TOKEN, MeetingCriteria(**criteria)))

    def test_title_substring_most_recent(self):
        self.assertEqual(self.find(title="Sync"), "m-weekly")

    def test_no_criteria_returns_most_recent(self):
        self.assertEqual(self.find(), "m-standup")

    def test_after_filter_excludes_undated(self):
        self.assertEqual(self.find(title="sync", after=datetime(2026, 3, 2, tzinfo=timezone.utc)), "m-weekly")
        self.assertIsNone(self.find(title="sync", after=datetime(2026, 3, 6)))

    def test_organizer_filter(self):
        self.graph.add("GET", "/users", {"value": [{"id": "u-ann"}]})
        self.assertEqual(self.find(title="Sync", organizer="ann@contoso.com"), "m-daily")

    def test_unresolved_organizer_is_ignored(self):
        self.graph.add("GET", "/users", {"value": []})
        self.assertEqual(self.find(title="Sync", organizer="ghost@contoso.com"), "m-weekly")

    def test_short_and_long_fractions_parse(self):
        self.graph.add("GET", "/me/onlineMeetings", {"value": [
            {"id": "m-two", "subject": "Review", "startDateTime": "2026-04-01T09:00:00.12Z"},
            {"id": "m-four", "subject": "Review", "startDateTime": "2026-04-02T09:00:00.1234Z"},
            {"id": "m-none", "subject": "Review", "startDateTime": "2026-03-31T09:00:00Z"},
        ]})
        self.assertEqual(self.find(title="Review"), "m-four")
        self.assertEqual(self.find(title="Review", after=datetime(2026, 4, 1, tzinfo=timezone.utc)), "m-four")
        self.assertEqual(
            _parse_timestamp("2026-04-01T09:00:00.12Z"),
            datetime(2026, 4, 1, 9, 0, 0, 120000, tzinfo=timezone.utc),
        )
        self.assertEqual(
            _parse_timestamp("2026-04-01T09:00:00.1234567Z"),
            datetime(2026, 4, 1, 9, 0, 0, 123456, tzinfo=timezone.utc),
        )

    def test_no_match(self):
        self.assertIsNone(self.find(title="Retro"))

    def test_empty_meeting_list(self):
        self.graph.add("GET", "/me/onlineMeetings", {"value": []})
        self.assertIsNone(self.find())

    def test_resolve_meeting_by_title(self):
        self.assertEqual(asyncio.run(self.resolver.resolve_meeting(TOKEN, title="Standup")), "m-standup")


class TestResolveChat(ResolverTestCase):
    CHATS = [
        {"id": "19:one@thread.v2", "topic": "Release train", "members": [{"userId": "u-ann"}, {"userId": "u-bob"}]},
        {"id": "19:two@thread.v2", "topic": "Release retro", "members": [{"userId": "u-ann"}, {"userId": "u-cid"}]},
        {"id": "19:three@thread.v2", "topic": None, "members": [{"userId": "u-cid"}]},
    ]

    def setUp(self):
        super().setUp()
        self.graph.add("GET", "/me/chats", {"value": self.CHATS})

    def test_canonical_chat_id(self):
        self.assertEqual(asyncio.run(self.resolver.resolve_chat(TOKEN, "19:xyz@thread.v2")), "19:xyz@thread.v2")
        self.assertEqual(self.graph.requests, [])

    def test_topic_substring_first_match(self):
        self.assertEqual(asyncio.run(self.resolver.resolve_chat(TOKEN, "release")), "19:one@thread.v2")
        self.assertEqual(self.graph.requests[0].url.params["$expand"], "members")

    def test_topic_and_participants(self):
        self.graph.add("GET", "/users", {"value": [{"id": "u-cid"}]})
        chat_id = asyncio.run(self.resolver.find_chat_id(TOKEN, topic="release", participants=["cid@contoso.com"]))
        self.assertEqual(chat_id, "19:two@thread.v2")

    def test_unresolvable_participant_is_none(self):
        self.graph.add("GET", "/users", {"value": []})
        self.assertIsNone(asyncio.run(self.resolver.find_chat_id(TOKEN, participants=["ghost@contoso.com"])))


class TestGenericResolve(ResolverTestCase):
    def test_dispatch(self):
        team = asyncio.run(self.resolver.resolve(ResourceKind.TEAM, TOKEN, GUID))
        self.assertEqual(team, ResolvedIdentifier(kind=ResourceKind.TEAM, canonical_id=GUID))
        channel = asyncio.run(self.resolver.resolve(ResourceKind.CHANNEL, TOKEN, "19:c@thread.tacv2", scope=GUID))
        self.assertEqual(channel.scope_id, GUID)

    def test_not_found_is_none(self):
        self.graph.add("GET", "/me/joinedTeams", {"value": []})
        self.graph.add("GET", "/teams", {"value": []})
        self.assertIsNone(asyncio.run(self.resolver.resolve(ResourceKind.TEAM, TOKEN, "Nope")))


if __name__ == "__main__":
    unittest.main()
