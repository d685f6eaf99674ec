"""
实时推送端到端测试：写操作 -> 事件总线 -> 分店范围广播
"""
import json
from pms.main import app
from pms.realtime.websocket import AUTH_ACK_EVENT


def _announce(ws, user_id, branch_id):
    ws.send_json({"type": "auth", "userId": user_id, "branchId": branch_id})
    ack = ws.receive_json()
    assert ack["event"] == AUTH_ACK_EVENT
    return ack


def test_auth_ack_normalizes_branch(client):
    with client.websocket_connect("/") as ws:
        ack = _announce(ws, 5, 3)
        assert ack["data"] == {"userId": "5", "branchId": "3"}
        assert len(app.state.connection_registry) == 1


def test_malformed_frame_keeps_connection_open(client):
    with client.websocket_connect("/") as ws:
        ws.send_text("{not json")
        ws.send_text(json.dumps(["auth"]))
        ack = _announce(ws, 1, 1)
        assert ack["data"]["branchId"] == "1"


def test_disconnect_unregisters(client):
    with client.websocket_connect("/") as ws:
        _announce(ws, 1, 1)
    # 断开处理在服务端事件循环中完成；新连接建立后旧连接已注销
    with client.websocket_connect("/") as ws:
        _announce(ws, 2, 1)
        assert len(app.state.connection_registry) == 1


def test_write_broadcasts_to_same_branch_only(client, front_desk, front_desk_headers, branch,
                                             other_branch, superadmin_headers):
    with client.websocket_connect("/") as local, client.websocket_connect("/") as remote:
        _announce(local, front_desk.id, branch.id)
        _announce(remote, 99, other_branch.id)

        response = client.post("/api/guests", headers=front_desk_headers, json={
            "first_name": "Ada", "last_name": "Lovelace",
        })
        assert response.status_code == 201

        message = local.receive_json()
        assert message["event"] == "data_update"
        assert message["data"] == {"type": "guests"}
        assert "timestamp" in message

        response = client.post("/api/guests", headers=superadmin_headers, json={
            "first_name": "Grace", "last_name": "Hopper", "branch_id": other_branch.id,
        })
        assert response.status_code == 201

        # remote 收到的第一条数据消息是其所在分店的那一条
        message = remote.receive_json()
        assert message["data"] == {"type": "guests"}
        assert app.state.event_bus.get_history("data.changed")[0].data["branch_id"] == other_branch.id


def test_permission_change_broadcasts_globally(client, superadmin_headers, branch, other_branch):
    with client.websocket_connect("/") as first, client.websocket_connect("/") as second:
        _announce(first, 1, branch.id)
        _announce(second, 2, other_branch.id)

        response = client.post("/api/roles", headers=superadmin_headers, json={"name": "Auditor"})
        assert response.status_code == 201

        assert first.receive_json()["data"] == {"type": "permissions"}
        assert second.receive_json()["data"] == {"type": "permissions"}

        role_id = response.json()["id"]
        client.delete(f"/api/roles/{role_id}", headers=superadmin_headers)
        assert first.receive_json()["data"] == {"type": "permissions"}


def test_reannounce_moves_connection_to_new_branch(client, front_desk_headers, branch, other_branch, room):
    with client.websocket_connect("/") as ws:
        _announce(ws, 1, other_branch.id)
        _announce(ws, 1, branch.id)
        client.patch(f"/api/rooms/{room.id}/status", headers=front_desk_headers, json={"status": "occupied"})
        assert ws.receive_json()["data"] == {"type": "rooms"}
