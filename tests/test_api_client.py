"""
Tests for annostudio/api: status-code mapping in ApiClient and the resource helpers on top of it.
"""

import unittest
from unittest import mock

import requests

from annostudio.api import annotations, auth, datasets, field_selection, merged_rows
from annostudio.api.base import ApiClient
from annostudio.exceptions import ApiError, AuthExpiredError, NotFoundError
from annostudio.models import DatasetMergedRows, ImageMetadata


def _response(status, body=None, text=""):
    resp = mock.Mock()
    resp.status_code = status
    resp.reason = "Reason"
    if body is None:
        resp.json.side_effect = ValueError("no json")
        resp.content = text.encode("utf-8")
        resp.text = text
    else:
        resp.json.return_value = body
        resp.content = b"{...}"
        resp.text = str(body)
    return resp


def _client(*responses, **kwargs):
    session = mock.Mock()
    session.request.side_effect = list(responses)
    return ApiClient("http://api.local/", token="tok", session=session, timeout=5, **kwargs), session


class TestApiClient(unittest.TestCase):

    def test_bearer_header_and_url(self):
        client, session = _client(_response(200, {"ok": True}))
        self.assertEqual(client.get("/datasets", params={"q": "x"}), {"ok": True})
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("GET", "http://api.local/datasets"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["params"], {"q": "x"})
        self.assertEqual(kwargs["timeout"], 5.0)

    def test_no_token_no_header(self):
        session = mock.Mock()
        session.request.return_value = _response(200, [])
        ApiClient("http://api.local", session=session).get("/x")
        self.assertNotIn("Authorization", session.request.call_args[1]["headers"])

    def test_401_calls_back_and_raises(self):
        expired = mock.Mock()
        client, _ = _client(_response(401, {"message": "Unauthorized"}), on_auth_expired=expired)
        with self.assertRaises(AuthExpiredError) as ctx:
            client.get("/users/profile")
        expired.assert_called_once_with()
        self.assertEqual(ctx.exception.status_code, 401)

    def test_404(self):
        client, _ = _client(_response(404, {"message": "Not found"}), _response(404, {"message": "Not found"}))
        with self.assertRaises(NotFoundError):
            client.get("/datasets/x")
        self.assertIsNone(client.get("/datasets/x", allow_404=True))

    def test_400_list_message_joined(self):
        client, _ = _client(_response(400, {"message": ["name too short", "type required"]}))
        with self.assertRaises(ApiError) as ctx:
            client.post("/datasets", json={})
        self.assertEqual(ctx.exception.message, "name too short; type required")
        self.assertEqual(str(ctx.exception), "[400] name too short; type required")

    def test_500_plain_text(self):
        client, _ = _client(_response(500, text="upstream exploded"))
        with self.assertRaises(ApiError) as ctx:
            client.get("/x")
        self.assertEqual(ctx.exception.message, "upstream exploded")
        self.assertEqual(ctx.exception.payload, "upstream exploded")

    def test_204_returns_none(self):
        client, _ = _client(_response(204, text=""))
        self.assertIsNone(client.delete("/datasets/1"))

    def test_transport_error(self):
        client, _ = _client(requests.ConnectionError("refused"))
        with self.assertRaises(ApiError) as ctx:
            client.get("/x")
        self.assertEqual(ctx.exception.status_code, 0)
        self.assertIn("Could not reach the server", ctx.exception.message)


class TestResources(unittest.TestCase):

    def test_login(self):
        client, session = _client(_response(200, {"accessToken": "abc", "user": {"_id": "u1", "email": "a@x.io"}}))
        result = auth.login(client, "a@x.io", "pw")
        self.assertEqual(result.access_token, "abc")
        self.assertEqual(result.user.id, "u1")
        self.assertEqual(session.request.call_args[1]["json"], {"email": "a@x.io", "password": "pw"})

    def test_missing_config_is_none(self):
        client, _ = _client(_response(404, {"message": "none"}))
        self.assertIsNone(field_selection.get_config(client, "ds1"))

    def test_update_progress_body(self):
        client, session = _client(_response(200, {}))
        field_selection.update_progress(client, "ds1", 4, 2)
        args, kwargs = session.request.call_args
        self.assertEqual(args, ("PATCH", "http://api.local/field-selection/dataset/ds1/progress"))
        self.assertEqual(kwargs["json"], {"lastViewedRow": 4, "completedRows": 2})

    def test_image_metadata_payload(self):
        payload = annotations.image_metadata_payload("ds1", 3, "photo", [ImageMetadata(url="http://x/1", caption="c")])
        self.assertEqual(payload["rowIndex"], 3)
        self.assertEqual(payload["images"][0], {"url": "http://x/1", "caption": "c", "isSelected": False, "order": 0})
        self.assertFalse(payload["isAiGenerated"])

    def test_row_field_annotation_path_is_quoted(self):
        client, session = _client(_response(404, {"message": "none"}))
        self.assertIsNone(annotations.row_field_annotation(client, "ds1", 2, "my field"))
        self.assertTrue(session.request.call_args[0][1].endswith("/row/2/field/my%20field"))


class TestPayloadHelpers(unittest.TestCase):

    def test_shared_with_cleared_unless_shared(self):
        shared = [{"userId": "u1", "email": "a@x.io"}]
        payload = datasets.build_update_payload(
            name=" n ", description="d ", dataset_type="text", access_type="private", shared_with=shared
        )
        self.assertEqual(payload["sharedWith"], [])
        self.assertEqual(payload["name"], "n")
        self.assertNotIn("imageAuthConfig", payload)
        payload = datasets.build_update_payload(
            name="n",
            description="",
            dataset_type=None,
            access_type="shared",
            shared_with=shared,
            image_auth={"isPrivate": True, "username": "u", "password": "p"},
        )
        self.assertEqual(payload["sharedWith"], shared)
        self.assertNotIn("datasetType", payload)
        self.assertTrue(payload["imageAuthConfig"]["isPrivate"])

    def test_combine_progress(self):
        data = DatasetMergedRows.model_validate(
            {"totalRows": 4, "mergedRows": [{"rowIndex": 0, "completed": True}, {"rowIndex": 1}]}
        )
        dp = merged_rows.combine_progress({"totalRows": 4, "completedRows": 1, "lastViewedRow": 1}, data)
        self.assertEqual((dp.total_rows, dp.completed_rows, dp.pending_rows), (4, 1, 4))
        self.assertAlmostEqual(dp.progress_percentage, 25.0)
        self.assertEqual(dp.last_viewed_row, 1)
        self.assertEqual([s.completed for s in dp.row_statuses], [True, False])

    def test_combine_progress_without_counters(self):
        dp = merged_rows.combine_progress({}, DatasetMergedRows(total_rows=3))
        self.assertEqual(dp.total_rows, 3)
        self.assertEqual(dp.progress_percentage, 0.0)
        self.assertEqual(dp.row_statuses, [])


if __name__ == "__main__":
    unittest.main()
