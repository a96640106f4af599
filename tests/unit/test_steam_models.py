"""Tests for the Steam payload models and the session record type.

Validates recorded ``ISteamUser`` payloads against the pydantic models and
checks placeholder semantics and wire serialisation.
"""

from __future__ import annotations

import json
from pathlib import Path

import pydantic
import pytest

from steam_friend_graph.steam.models import (
    FriendListResponse,
    PlayerSummariesResponse,
    SteamProfile,
    SteamUser,
    VanityResolutionResponse,
)

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "api_responses" / "steam"


def _load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class TestPayloadModels:
    def test_player_summaries_fixture_validates(self) -> None:
        """Recorded GetPlayerSummaries payload maps onto SteamProfile fields."""
        payload = PlayerSummariesResponse.model_validate_json(
            _load_fixture("player_summaries_response.json")
        )
        robin, gabe = payload.response.players

        assert robin.steam_id == "76561197960435530"
        assert robin.persona_name == "Robin"
        assert robin.real_name == "Robin Walker"
        assert robin.country_code == "US"
        assert robin.time_created == 1063407589
        assert gabe.persona_name == "Rabscuttle"

    def test_empty_real_name_becomes_none(self) -> None:
        """An empty ``realname`` string is normalised to None."""
        payload = PlayerSummariesResponse.model_validate_json(
            _load_fixture("player_summaries_response.json")
        )
        assert payload.response.players[1].real_name is None

    def test_friend_list_fixture_validates(self) -> None:
        """Recorded GetFriendList payload yields ordered FriendEdge entries."""
        payload = FriendListResponse.model_validate_json(
            _load_fixture("friend_list_response.json")
        )
        friends = payload.friendslist.friends

        assert [f.steam_id for f in friends] == [
            "76561197960265731",
            "76561197960265738",
            "76561197960435530",
        ]
        assert friends[2].friend_since == 1248316934
        assert all(f.relationship == "friend" for f in friends)

    def test_vanity_fixtures_validate(self) -> None:
        """Both the match and the no-match ResolveVanityURL payloads validate."""
        match = VanityResolutionResponse.model_validate_json(
            _load_fixture("resolve_vanity_response.json")
        )
        no_match = VanityResolutionResponse.model_validate_json(
            _load_fixture("resolve_vanity_no_match_response.json")
        )

        assert match.response.success == 1
        assert match.response.steamid == "76561197960287930"
        assert no_match.response.success == 42
        assert no_match.response.steamid is None

    def test_empty_envelopes_default_to_empty_lists(self) -> None:
        """A body without the inner object decodes to an empty list."""
        assert FriendListResponse.model_validate_json("{}").friendslist.friends == []
        assert PlayerSummariesResponse.model_validate_json("{}").response.players == []


class TestSteamProfile:
    def test_placeholder_has_only_steam_id(self) -> None:
        """A placeholder profile reserves the ID and nothing else."""
        profile = SteamProfile.placeholder("76561197960287930")

        assert profile.is_placeholder
        assert profile.to_wire() == {"steamid": "76561197960287930"}

    def test_resolved_profile_is_not_placeholder(self) -> None:
        """A profile with a display name is not a placeholder."""
        profile = SteamProfile(steam_id="76561197960287930", persona_name="Rabscuttle")
        assert not profile.is_placeholder

    def test_to_wire_uses_steam_field_names(self) -> None:
        """to_wire() dumps aliases and omits unset attributes."""
        raw = json.loads(_load_fixture("player_summaries_response.json"))
        profile = SteamProfile.model_validate(raw["response"]["players"][0])

        wire = profile.to_wire()

        assert wire["steamid"] == "76561197960435530"
        assert wire["personaname"] == "Robin"
        assert wire["loccountrycode"] == "US"
        assert "persona_name" not in wire
        assert "primaryclanid" not in wire

    def test_profile_is_frozen(self) -> None:
        """Profiles are immutable once validated."""
        profile = SteamProfile.placeholder("76561197960287930")
        with pytest.raises(pydantic.ValidationError):
            profile.persona_name = "changed"  # type: ignore[misc]


class TestSteamUser:
    def test_placeholder_record_has_unknown_friends(self) -> None:
        """A fresh record has no fetched friend list."""
        user = SteamUser.placeholder("76561197960287930")

        assert user.steam_id == "76561197960287930"
        assert user.friends is None
        assert not user.has_friends

    def test_empty_friend_list_counts_as_fetched(self) -> None:
        """An empty list still marks the friend list as fetched."""
        user = SteamUser.placeholder("76561197960287930")
        user.friends = []
        assert user.has_friends

    def test_steam_id_is_read_only(self) -> None:
        """The record's identity cannot be reassigned."""
        user = SteamUser.placeholder("76561197960287930")
        with pytest.raises(AttributeError):
            user.steam_id = "76561197960435530"  # type: ignore[misc]
