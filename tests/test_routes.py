"""Tests for the JSON routes."""

from __future__ import annotations

import unittest
from unittest.mock import patch

from mockfirestore import MockFirestore

from kicktrack import create_app
from tests.conftest import make_teams, patch_mockfirestore


class RouteTestCase(unittest.TestCase):
    """Base test case with an app client over an in-memory Firestore."""

    def setUp(self) -> None:
        """Set up the app, the database and the stats mock."""
        patch_mockfirestore()
        self.mock_db = MockFirestore()
        client_patcher = patch(
            "firebase_admin.firestore.client", return_value=self.mock_db
        )
        client_patcher.start()
        self.addCleanup(client_patcher.stop)
        stats_patcher = patch("kicktrack.game.services.StatsService")
        self.mock_stats = stats_patcher.start()
        self.addCleanup(stats_patcher.stop)

        self.app = create_app(
            {"TESTING": True, "WTF_CSRF_ENABLED": False, "GAME_RANDOM_SEED": 1}
        )
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        """Reset the in-memory Firestore."""
        self.mock_db.reset()

    def login(self, user_id: str) -> None:
        """Log the test client in as ``user_id``."""
        with self.client.session_transaction() as sess:
            sess["user_id"] = user_id


class AuthRoutesTestCase(RouteTestCase):
    """Test case for authentication and error envelopes."""

    def test_login_required(self) -> None:
        """Test that anonymous requests get a 401 envelope."""
        for method, url in (
            ("post", "/games"),
            ("get", "/games/g1"),
            ("post", "/tournaments"),
            ("get", "/stats/players/a"),
        ):
            with self.subTest(url=url):
                response = getattr(self.client, method)(url, json={})
                self.assertEqual(response.status_code, 401)
                self.assertFalse(response.get_json()["success"])

    def test_unknown_route(self) -> None:
        """Test that unknown URLs get a JSON 404."""
        self.login("a")
        response = self.client.get("/nowhere")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["message"], "Not found.")

    def test_missing_document(self) -> None:
        """Test that a missing game is reported as 404."""
        self.login("a")
        response = self.client.get("/games/missing")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()["message"], "Game not found.")


class GameRoutesTestCase(RouteTestCase):
    """Test case for the game routes."""

    def setUp(self) -> None:
        """Log in and start a game."""
        super().setUp()
        self.login("a")
        response = self.client.post(
            "/games",
            json={
                "teams": make_teams(["a"], ["b"]),
                "target_score": 6,
                "venue_id": "none",
            },
        )
        self.assertEqual(response.status_code, 201)
        self.game = response.get_json()["data"]

    def _goal(self, **payload):
        body = {"team_index": 0, "scorer_id": "a", "position": "attack"}
        body.update(payload)
        return self.client.post(f"/games/{self.game['gameId']}/goals", json=body)

    def test_create_game(self) -> None:
        """Test the created game."""
        self.assertEqual(self.game["hostId"], "a")
        self.assertEqual(self.game["gameType"], "6")
        self.assertEqual(self.game["status"], "in_progress")

    def test_create_game_needs_teams(self) -> None:
        """Test that a game without teams is rejected."""
        response = self.client.post("/games", json={"target_score": 6})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/games",
            json={"teams": make_teams(["a"], ["b"]), "target_score": 7},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Target Score", response.get_json()["message"])

    def test_goal_and_undo(self) -> None:
        """Test scoring a goal and cancelling it."""
        response = self._goal()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["data"]["score"], [1, 0])

        response = self.client.delete(f"/games/{self.game['gameId']}/goals/last")
        self.assertEqual(response.get_json()["data"]["score"], [0, 0])

    def test_invalid_goal(self) -> None:
        """Test that bad goal payloads are rejected with a message."""
        response = self._goal(team_index=3)
        self.assertEqual(response.status_code, 400)
        self.assertIn("Error in Team", response.get_json()["message"])

        response = self._goal(team_index=1)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.get_json()["message"], "The scorer does not play for that team."
        )

    def test_only_host_can_score(self) -> None:
        """Test that another user cannot update the game."""
        self.login("b")
        response = self._goal(team_index=1, scorer_id="b")
        self.assertEqual(response.status_code, 403)
        # Anyone logged in can still watch it.
        response = self.client.get(f"/games/{self.game['gameId']}")
        self.assertEqual(response.status_code, 200)

    def test_end_game(self) -> None:
        """Test ending a game returns its results."""
        self._goal()
        response = self.client.post(f"/games/{self.game['gameId']}/end")
        data = response.get_json()["data"]
        self.assertEqual(data["game"]["winner"], 0)
        self.assertEqual(data["mvp"]["userId"], "a")

        response = self._goal()
        self.assertEqual(response.status_code, 409)

    def test_forfeit_and_abandon(self) -> None:
        """Test forfeiting, then that a finished game cannot be abandoned."""
        response = self.client.post(
            f"/games/{self.game['gameId']}/forfeit", json={"team_index": 0}
        )
        self.assertEqual(response.get_json()["data"]["winner"], 1)

        response = self.client.post(f"/games/{self.game['gameId']}/abandon")
        self.assertEqual(response.status_code, 409)


class TournamentRoutesTestCase(RouteTestCase):
    """Test case for the tournament routes."""

    def setUp(self) -> None:
        """Create a bracket tournament hosted by ``host``."""
        super().setUp()
        self.login("host")
        response = self.client.post(
            "/tournaments",
            json={"format": "1v1", "mode": "bracket", "host_name": "Host"},
        )
        self.assertEqual(response.status_code, 201)
        self.tournament = response.get_json()["data"]
        self.url = f"/tournaments/{self.tournament['tournamentId']}"

    def test_create_tournament(self) -> None:
        """Test the created lobby."""
        self.assertEqual(self.tournament["name"], "Tournoi de Host")
        self.assertEqual(self.tournament["mode"], "bracket")
        self.assertEqual(self.tournament["status"], "waiting")

    def test_invalid_mode(self) -> None:
        """Test that an unknown mode is rejected."""
        response = self.client.post("/tournaments", json={"mode": "swiss"})
        self.assertEqual(response.status_code, 400)

    def test_only_host_manages(self) -> None:
        """Test that a joined player cannot run the tournament."""
        self.login("p1")
        response = self.client.post(f"{self.url}/join", json={"username": "P1"})
        self.assertEqual(response.status_code, 200)
        for url in ("/team-setup", "/start", "/cancel"):
            with self.subTest(url=url):
                response = self.client.post(f"{self.url}{url}")
                self.assertEqual(response.status_code, 403)

        response = self.client.delete(f"{self.url}/players/p1")
        self.assertEqual(response.status_code, 200)
        players = response.get_json()["data"]["players"]
        self.assertEqual([p["userId"] for p in players], ["host"])

    def test_guests_and_teams(self) -> None:
        """Test adding a guest and editing teams in setup."""
        response = self.client.post(f"{self.url}/guests", json={"name": "Bob"})
        self.assertEqual(response.status_code, 201)
        guest = response.get_json()["data"]["players"][-1]

        response = self.client.post(f"{self.url}/team-setup")
        teams = response.get_json()["data"]["teams"]
        self.assertEqual(len(teams), 2)

        response = self.client.post(
            f"{self.url}/teams", json={"name": "Extra", "player_ids": [guest["userId"]]}
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.delete(f"{self.url}/teams/{teams[0]['teamId']}")
        self.assertEqual(len(response.get_json()["data"]["teams"]), 1)
        response = self.client.post(f"{self.url}/teams/auto")
        self.assertEqual(len(response.get_json()["data"]["teams"]), 2)

    def test_play_tournament(self) -> None:
        """Test a two-player bracket from lobby to champion."""
        self.login("p1")
        self.client.post(f"{self.url}/join")
        self.login("host")
        self.client.post(f"{self.url}/team-setup")
        response = self.client.post(f"{self.url}/start")
        self.assertEqual(response.get_json()["data"]["status"], "in_progress")

        match = self.client.get(f"{self.url}/next-match").get_json()["data"]
        response = self.client.post(f"{self.url}/matches/{match['matchId']}/start")
        self.assertEqual(response.status_code, 201)
        game = response.get_json()["data"]["game"]

        response = self.client.post(
            f"/games/{game['gameId']}/forfeit", json={"team_index": 1}
        )
        self.assertEqual(response.status_code, 200)

        tournament = self.client.get(self.url).get_json()["data"]
        self.assertEqual(tournament["status"], "completed")
        self.assertEqual(
            tournament["matches"][0]["winnerId"], match["team1"]["teamId"]
        )
        self.assertIsNone(self.client.get(f"{self.url}/next-match").get_json()["data"])

        response = self.client.post(f"{self.url}/matches/{match['matchId']}/sync")
        self.assertEqual(response.status_code, 200)
        response = self.client.post(f"{self.url}/cancel")
        self.assertEqual(response.status_code, 409)

    def test_delete_tournament(self) -> None:
        """Test that the host can delete the tournament."""
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(self.url).status_code, 404)


class StatsRoutesTestCase(RouteTestCase):
    """Test case for the stats routes."""

    def test_player_stats(self) -> None:
        """Test reading a player's statistics."""
        self.mock_db.collection("users").document("a").set(
            {"username": "a", "stats": {"totalGames": 3, "wins": 2}}
        )
        self.login("a")
        response = self.client.get("/stats/players/a?points=6&mode=1v1")
        self.assertEqual(response.status_code, 200)
        data = response.get_json()["data"]
        self.assertEqual(data["userId"], "a")
        self.assertEqual(data["stats"]["wins"], 2)
        self.assertEqual(data["advanced"]["gamesPlayed"], 0)
