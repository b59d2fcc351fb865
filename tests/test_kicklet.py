import unittest
from unittest import mock

import requests

from domain.errors import PointsMirrorError
from infrastructure.kicklet import KickletPointsMirror


def _response(status=200, payload=None):
    response = mock.Mock()
    response.ok = 200 <= status < 400
    response.status_code = status
    response.text = ""
    response.json.return_value = payload if payload is not None else {}
    return response


class KickletPointsMirrorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = requests.Session()
        self.mirror = KickletPointsMirror(
            " secret ", "chan1", base_url="https://kicklet.test/api/", session=self.session
        )
        patcher = mock.patch.object(self.session, "request")
        self.request = patcher.start()
        self.addCleanup(patcher.stop)

    def test_auth_header(self):
        self.assertEqual(self.session.headers["Authorization"], "apitoken secret")

    def test_get_points_matches_username_case_insensitively(self):
        self.request.return_value = _response(
            payload={
                "ranking": [
                    {"viewerKickUsername": "alice_fan", "points": 5},
                    {"viewerKickUsername": "Alice", "points": 320},
                ]
            }
        )
        self.assertEqual(self.mirror.get_points("alice"), 320)

        method, url = self.request.call_args.args
        self.assertEqual((method, url), ("GET", "https://kicklet.test/api/stats/chan1/viewer/ranking"))
        self.assertEqual(self.request.call_args.kwargs["params"]["search"], "alice")

    def test_missing_viewer(self):
        self.request.return_value = _response(payload={"ranking": []})
        with self.assertRaises(PointsMirrorError):
            self.mirror.get_points("ghost")

    def test_point_changes(self):
        self.request.return_value = _response()
        self.mirror.add_points("alice", 10)
        self.mirror.remove_points("alice", 4)
        self.mirror.set_points("alice", 0)

        urls = [c.args[1] for c in self.request.call_args_list]
        self.assertEqual(
            urls,
            [
                "https://kicklet.test/api/stats/chan1/points/alice/add/10",
                "https://kicklet.test/api/stats/chan1/points/alice/remove/4",
                "https://kicklet.test/api/stats/chan1/points/alice/set/0",
            ],
        )
        self.assertTrue(all(c.args[0] == "PATCH" for c in self.request.call_args_list))

    def test_rejects_non_positive_change(self):
        with self.assertRaises(PointsMirrorError):
            self.mirror.add_points("alice", 0)
        self.request.assert_not_called()

    def test_http_error(self):
        self.request.return_value = _response(status=500)
        with self.assertLogs("infrastructure.kicklet", level="ERROR"):
            with self.assertRaises(PointsMirrorError):
                self.mirror.add_points("alice", 1)

    def test_connection_error(self):
        self.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(PointsMirrorError):
            self.mirror.get_points("alice")


if __name__ == "__main__":
    unittest.main()
