from fastapi.testclient import TestClient

from fodinha.config import Settings
from server.app import create_app


def make_client() -> TestClient:
    return TestClient(create_app(Settings(reveal_delay=0.01)))


def test_health_reports_live_sessions():
    with make_client() as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "sessions": 0}


def test_create_join_and_ready_over_websocket():
    with make_client() as client:
        with client.websocket_connect("/ws") as host:
            hello = host.receive_json()
            assert hello["type"] == "connected"
            host_id = hello["playerId"]

            host.send_json({"type": "create_game", "playerName": "Ana", "maxPlayers": 2})
            state = host.receive_json()
            assert state["type"] == "game_state"
            assert state["playerId"] == host_id
            assert state["game"]["phase"] == "waiting"
            game_id = state["game"]["id"]

            with client.websocket_connect("/ws") as guest:
                guest.receive_json()
                guest.send_json({"type": "join_game", "gameId": game_id, "playerName": "Bia"})
                host_state = host.receive_json()
                guest_state = guest.receive_json()
                assert [p["name"] for p in host_state["game"]["players"]] == ["Ana", "Bia"]
                assert guest_state["game"]["id"] == game_id

                guest.send_json({"type": "set_ready", "ready": True})
                host_state = host.receive_json()
                guest.receive_json()
                assert [p["isReady"] for p in host_state["game"]["players"]] == [False, True]

                assert client.get("/health").json()["sessions"] == 1


def test_game_state_uses_camel_case_keys():
    with make_client() as client:
        with client.websocket_connect("/ws") as host:
            host.receive_json()
            host.send_json({"type": "create_game", "playerName": "Ana", "maxPlayers": 2})
            game = host.receive_json()["game"]

            assert game["maxPlayers"] == 2
            assert game["roundNumber"] == 1
            assert game["currentTrick"] == {"starterIndex": None, "plays": []}
            assert "current_player_index" not in game
            player = game["players"][0]
            assert player["handCount"] == 0
            assert player["isDealer"] is True
            assert player["bidConfirmed"] is False


def test_disconnect_leaves_the_session():
    with make_client() as client:
        with client.websocket_connect("/ws") as host:
            host.receive_json()
            host.send_json({"type": "create_game", "playerName": "Ana", "maxPlayers": 2})
            game_id = host.receive_json()["game"]["id"]

            with client.websocket_connect("/ws") as guest:
                guest.receive_json()
                guest.send_json({"type": "join_game", "gameId": game_id, "playerName": "Bia"})
                guest.receive_json()
                assert [p["name"] for p in host.receive_json()["game"]["players"]] == ["Ana", "Bia"]

            state = host.receive_json()
            assert state["type"] == "game_state"
            assert [p["name"] for p in state["game"]["players"]] == ["Ana"]
            assert client.get("/health").json()["sessions"] == 1

        assert client.get("/health").json() == {"status": "ok", "sessions": 0}


def test_errors_go_back_to_the_sender():
    with make_client() as client:
        with client.websocket_connect("/ws") as socket:
            socket.receive_json()

            socket.send_text("not json")
            assert socket.receive_json()["code"] == "invalid_message"

            socket.send_json({"type": "dance"})
            assert socket.receive_json()["code"] == "unknown_command"

            socket.send_json({"type": "start_game"})
            assert socket.receive_json()["code"] == "not_found"

            socket.send_json({"type": "join_game", "gameId": "NOPE1234", "playerName": "Ana"})
            assert socket.receive_json()["code"] == "not_found"


def test_full_table_rejects_a_third_player():
    with make_client() as client:
        with client.websocket_connect("/ws") as host:
            host.receive_json()
            host.send_json({"type": "create_game", "playerName": "Ana", "maxPlayers": 2})
            game_id = host.receive_json()["game"]["id"]

            with client.websocket_connect("/ws") as second, client.websocket_connect("/ws") as third:
                second.receive_json()
                third.receive_json()
                second.send_json({"type": "join_game", "gameId": game_id, "playerName": "Bia"})
                second.receive_json()
                host.receive_json()

                third.send_json({"type": "join_game", "gameId": game_id, "playerName": "Caio"})
                error = third.receive_json()
                assert error["type"] == "error"
                assert error["code"] == "game_full"


def test_start_requires_everyone_ready():
    with make_client() as client:
        with client.websocket_connect("/ws") as host:
            host.receive_json()
            host.send_json({"type": "create_game", "playerName": "Ana"})
            game_id = host.receive_json()["game"]["id"]
            with client.websocket_connect("/ws") as guest:
                guest.receive_json()
                guest.send_json({"type": "join_game", "gameId": game_id, "playerName": "Bia"})
                host.receive_json()
                guest.receive_json()

                host.send_json({"type": "start_game"})
                assert host.receive_json()["code"] == "players_not_ready"
